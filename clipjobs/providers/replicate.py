from __future__ import annotations

from typing import Any, Mapping, Optional

from clipjobs.errors import UpstreamError
from clipjobs.models.domain import Job, JobStatus

from .base import VideoProvider, estimate_progress, normalize_status

# Replicate already speaks the shared vocabulary.
_VOCABULARY = {status.value: status for status in JobStatus}


def _split_model(model: str) -> tuple[str, str]:
    if "/" in model:
        owner, name = model.split("/", 1)
        return owner, name
    return "google", model


def _first_output(output: Any) -> Optional[str]:
    if isinstance(output, str):
        return output
    if isinstance(output, list) and output and isinstance(output[0], str):
        return output[0]
    return None


class ReplicateProvider(VideoProvider):
    name = "replicate"
    display_name = "Replicate"
    description = "High quality, paid (limited free tier)"
    credential_env = "REPLICATE_API_TOKEN"
    supports_audio = True

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._require_api_key()}",
            "Content-Type": "application/json",
        }

    def create_job(self, prompt: str, media_ref: Optional[str], options: Mapping[str, Any]) -> str:
        headers = self._headers()
        owner, model_name = _split_model(options.get("model") or self.settings.replicate_model)
        payload: dict[str, Any] = {
            "prompt": prompt,
            "duration": options.get("duration") or self.settings.default_duration,
            "resolution": options.get("resolution") or self.settings.default_resolution,
        }
        if media_ref:
            payload["audio"] = media_ref
        if options.get("style"):
            payload["style"] = options["style"]

        url = f"{self.settings.replicate_base_url.rstrip('/')}/models/{owner}/{model_name}/predictions"
        response = self._request("POST", url, action="create", headers=headers, json={"input": payload})
        body = self._json(response, "create")
        job_id = body.get("id") if isinstance(body, dict) else None
        if not job_id:
            raise UpstreamError("replicate create returned no prediction id", upstream_status=response.status_code)
        self.log.info("replicate prediction created", extra={"job_id": job_id, "model": f"{owner}/{model_name}"})
        return job_id

    def get_status(self, job_id: str) -> Job:
        url = f"{self.settings.replicate_base_url.rstrip('/')}/predictions/{job_id}"
        response = self._request("GET", url, action="status", headers=self._headers())
        body = self._json(response, "status")
        if not isinstance(body, dict):
            raise UpstreamError("replicate status returned an unexpected payload", upstream_status=response.status_code)
        error = body.get("error")
        error = str(error) if error else None
        status = normalize_status(body.get("status"), error, _VOCABULARY)
        return Job(
            id=body.get("id") or job_id,
            provider=self.name,
            status=status,
            result=_first_output(body.get("output")),
            error=error,
            progress=estimate_progress(status),
            logs=body.get("logs") or None,
        )
