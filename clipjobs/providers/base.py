"""Video generation provider interface.

Each provider implements the same two-call pattern:
  create job -> opaque handle, then status(handle) -> normalized Job.
No provider keeps state between calls.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

import httpx

from clipjobs.clients.http import send
from clipjobs.config import Settings
from clipjobs.credentials import EnvironmentCredentials
from clipjobs.errors import CredentialMissing, UpstreamError, ValidationError
from clipjobs.models.domain import Job, JobStatus, ProviderInfo
from clipjobs.validation import validate_video_settings

_PROGRESS_ESTIMATES = {
    JobStatus.STARTING: 10,
    JobStatus.PROCESSING: 50,
    JobStatus.SUCCEEDED: 100,
    JobStatus.FAILED: 0,
    JobStatus.CANCELED: 0,
}


def normalize_status(
    native_status: Any,
    error: Optional[str],
    vocabulary: Mapping[str, JobStatus],
) -> JobStatus:
    """Map a provider status onto the shared five-state set.

    An error reported alongside a non-terminal (or unknown) status wins and
    yields FAILED. Unknown statuses without an error count as PROCESSING.
    """
    status = vocabulary.get(str(native_status or "").strip().lower())
    if error and (status is None or not status.is_terminal):
        return JobStatus.FAILED
    if status is None:
        return JobStatus.PROCESSING
    return status


def estimate_progress(status: JobStatus) -> int:
    return _PROGRESS_ESTIMATES[status]


def is_url_handle(job_id: str) -> bool:
    return job_id.startswith(("http://", "https://", "/"))


class VideoProvider(ABC):
    name: str = ""
    display_name: str = ""
    description: str = ""
    credential_env: Optional[str] = None
    requires_credential: bool = True
    supports_audio: bool = False
    required_params: tuple[str, ...] = ("prompt", "media_ref")

    def __init__(
        self,
        settings: Settings,
        credentials: EnvironmentCredentials,
        transport: httpx.BaseTransport | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings
        self.credentials = credentials
        self.timeout = settings.http_timeout
        self.transport = transport
        self.log = logger or logging.getLogger(__name__)

    def info(self) -> ProviderInfo:
        return ProviderInfo(
            provider=self.name,
            name=self.display_name or self.name,
            description=self.description,
            kind="video",
            requires_api_key=self.requires_credential,
            api_key_env=self.credential_env,
            supports_audio=self.supports_audio,
        )

    def available(self) -> bool:
        if not self.requires_credential:
            return True
        return self.credentials.has(self.credential_env)

    def validate(self, prompt: Optional[str], media_ref: Optional[str], options: Mapping[str, Any]) -> None:
        values: dict[str, Any] = dict(options)
        values["prompt"] = prompt
        values["media_ref"] = media_ref
        missing = [param for param in self.required_params if not str(values.get(param) or "").strip()]
        if missing:
            raise ValidationError(f"{self.name} requires: {', '.join(missing)}")
        validate_video_settings(options)

    @abstractmethod
    def create_job(self, prompt: str, media_ref: Optional[str], options: Mapping[str, Any]) -> str:
        """Start remote work and return the provider's job handle."""

    @abstractmethod
    def get_status(self, job_id: str) -> Job:
        """Query the provider and return a normalized snapshot."""

    def _api_key(self) -> Optional[str]:
        return self.credentials.get(self.credential_env)

    def _require_api_key(self) -> str:
        api_key = self._api_key()
        if not api_key:
            raise CredentialMissing(self.name, self.credential_env)
        return api_key

    def _request(self, method: str, url: str, *, action: str, **kwargs: Any) -> httpx.Response:
        return send(
            method,
            url,
            service=self.name,
            action=action,
            timeout=self.timeout,
            transport=self.transport,
            logger=self.log,
            **kwargs,
        )

    def _json(self, response: httpx.Response, action: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"{self.name} {action} returned invalid JSON", upstream_status=response.status_code) from exc
