from __future__ import annotations

import logging
from typing import Any, Mapping, Optional
from uuid import uuid4

import httpx

from clipjobs.clients.s3_storage import S3StorageClient
from clipjobs.config import Settings
from clipjobs.credentials import EnvironmentCredentials
from clipjobs.errors import UpstreamError, ValidationError
from clipjobs.models.domain import Job, JobStatus

from .base import VideoProvider, is_url_handle

_VIDEO_KEYS = ("generated_video", "video_url", "url", "video")


class HuggingFaceProvider(VideoProvider):
    """Hugging Face inference router.

    Inference is synchronous, so the job finishes inside ``create_job``: the
    returned video is stored and its URL becomes the handle.
    """

    name = "huggingface"
    display_name = "Hugging Face"
    description = "Open source models, free tier without a key"
    credential_env = "HUGGINGFACE_API_KEY"
    requires_credential = False
    required_params = ("prompt", "model")

    def __init__(
        self,
        settings: Settings,
        credentials: EnvironmentCredentials,
        storage: S3StorageClient,
        transport: httpx.BaseTransport | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(settings, credentials, transport=transport, logger=logger)
        self.storage = storage

    def create_job(self, prompt: str, media_ref: Optional[str], options: Mapping[str, Any]) -> str:
        model = str(options["model"]).strip("/")
        headers = {"Content-Type": "application/json"}
        api_key = self._api_key()
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        else:
            self.log.warning("huggingface API key not set, using anonymous tier", extra={"model": model})

        payload: dict[str, Any] = {"inputs": prompt}
        duration = options.get("duration")
        if duration:
            payload["parameters"] = {"num_inference_steps": min(50, int(duration) * 5)}

        url = f"{self.settings.huggingface_base_url.rstrip('/')}/{model}"
        response = self._request("POST", url, action="create", headers=headers, json=payload)

        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if content_type.startswith("video/") or content_type == "application/octet-stream":
            key = f"{self.settings.media_prefix}/huggingface/{uuid4().hex}.mp4"
            video_url = self.storage.upload_bytes(key, response.content, content_type="video/mp4")
            self.log.info(
                "huggingface video stored",
                extra={"model": model, "key": key, "content_length": len(response.content)},
            )
            return video_url

        video_url = _find_video_url(self._json(response, "create"))
        if not video_url:
            raise UpstreamError("huggingface response did not include a video", upstream_status=response.status_code)
        return video_url

    def get_status(self, job_id: str) -> Job:
        if not is_url_handle(job_id):
            raise ValidationError("huggingface job handles are video URLs")
        return Job(id=job_id, provider=self.name, status=JobStatus.SUCCEEDED, result=job_id, progress=100)


def _find_video_url(payload: Any) -> Optional[str]:
    if isinstance(payload, list) and payload:
        payload = payload[0]
    if not isinstance(payload, dict):
        return None
    for key in _VIDEO_KEYS:
        value = payload.get(key)
        if isinstance(value, dict):
            value = value.get("url")
        if isinstance(value, str) and value.startswith(("http://", "https://")):
            return value
    return None
