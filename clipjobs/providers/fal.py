from __future__ import annotations

from typing import Any, Mapping, Optional

from clipjobs.errors import UpstreamError, ValidationError
from clipjobs.models.domain import Job, JobStatus

from .base import VideoProvider, estimate_progress, is_url_handle, normalize_status

_VOCABULARY = {
    "in_queue": JobStatus.STARTING,
    "queued": JobStatus.STARTING,
    "in_progress": JobStatus.PROCESSING,
    "processing": JobStatus.PROCESSING,
    "completed": JobStatus.SUCCEEDED,
    "ok": JobStatus.SUCCEEDED,
    "error": JobStatus.FAILED,
    "failed": JobStatus.FAILED,
    "cancelled": JobStatus.CANCELED,
    "canceled": JobStatus.CANCELED,
}


def extract_video_url(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    output = payload.get("output")
    if isinstance(output, dict):
        output = output.get("video")
    for candidate in (payload.get("video"), output):
        if isinstance(candidate, str) and candidate:
            return candidate
        if isinstance(candidate, dict) and candidate.get("url"):
            return candidate["url"]
        if isinstance(candidate, list) and candidate and isinstance(candidate[0], str):
            return candidate[0]
    video_url = payload.get("video_url")
    return video_url if isinstance(video_url, str) and video_url else None


def _app_id(model: str) -> str:
    return "/".join(model.strip("/").split("/")[:2])


class FalProvider(VideoProvider):
    """Fal queue API.

    Handles look like ``{app}:{request_id}`` so a poll needs nothing but the
    handle. When the create call already returns a video, that URL is the
    handle and polling it reports success immediately.
    """

    name = "fal"
    display_name = "Fal.ai"
    description = "Fast and reliable, daily free quota"
    credential_env = "FAL_API_KEY"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Key {self._require_api_key()}",
            "Content-Type": "application/json",
        }

    def create_job(self, prompt: str, media_ref: Optional[str], options: Mapping[str, Any]) -> str:
        headers = self._headers()
        model = (options.get("model") or self.settings.fal_model).strip("/")
        payload: dict[str, Any] = {
            "prompt": prompt,
            "duration": str(options.get("duration") or self.settings.default_duration),
        }
        if media_ref:
            payload["audio_url"] = media_ref
        if options.get("aspect_ratio"):
            payload["aspect_ratio"] = options["aspect_ratio"]

        url = f"{self.settings.fal_queue_url.rstrip('/')}/{model}"
        response = self._request("POST", url, action="create", headers=headers, json=payload)
        body = self._json(response, "create")

        video_url = extract_video_url(body)
        if video_url:
            self.log.info("fal returned video synchronously", extra={"model": model})
            return video_url
        request_id = body.get("request_id") if isinstance(body, dict) else None
        if not request_id:
            raise UpstreamError("fal create returned no request id", upstream_status=response.status_code)
        self.log.info("fal request queued", extra={"job_id": request_id, "model": model})
        return f"{_app_id(model)}:{request_id}"

    def get_status(self, job_id: str) -> Job:
        if is_url_handle(job_id):
            return Job(id=job_id, provider=self.name, status=JobStatus.SUCCEEDED, result=job_id, progress=100)

        app_id, _, request_id = job_id.rpartition(":")
        if not app_id or not request_id:
            raise ValidationError("malformed fal job handle")

        headers = self._headers()
        base = f"{self.settings.fal_queue_url.rstrip('/')}/{app_id}/requests/{request_id}"
        response = self._request("GET", f"{base}/status", action="status", headers=headers, params={"logs": 1})
        body = self._json(response, "status")
        if not isinstance(body, dict):
            raise UpstreamError("fal status returned an unexpected payload", upstream_status=response.status_code)

        error = body.get("error")
        error = str(error) if error else None
        status = normalize_status(body.get("status"), error, _VOCABULARY)
        result: Optional[str] = None
        if status is JobStatus.SUCCEEDED:
            result_response = self._request("GET", base, action="result", headers=headers)
            result = extract_video_url(self._json(result_response, "result"))
            if not result:
                status = JobStatus.FAILED
                error = "fal request completed without a video URL"

        return Job(
            id=job_id,
            provider=self.name,
            status=status,
            result=result,
            error=error,
            progress=estimate_progress(status),
            logs=_format_logs(body.get("logs")),
        )


def _format_logs(logs: Any) -> Optional[str]:
    if not logs:
        return None
    if isinstance(logs, list):
        lines = [entry.get("message", "") if isinstance(entry, dict) else str(entry) for entry in logs]
        return "\n".join(line for line in lines if line) or None
    return str(logs)
