from __future__ import annotations


class ClipJobsError(Exception):
    """Base error carrying the HTTP status and code reported to callers."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ClipJobsError):
    """Bad or missing input. Never retried."""

    status_code = 400
    code = "validation_error"


class CredentialMissing(ClipJobsError):
    """A provider credential is not configured."""

    status_code = 400
    code = "credential_missing"

    def __init__(self, provider: str, env_name: str | None) -> None:
        hint = f" (set {env_name})" if env_name else ""
        super().__init__(f"{provider} requires an API key{hint}")
        self.provider = provider
        self.env_name = env_name


ProviderUnavailable = CredentialMissing


class UpstreamRateLimited(ClipJobsError):
    """The provider signalled throttling; callers should back off."""

    status_code = 429
    code = "upstream_rate_limited"

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamError(ClipJobsError):
    status_code = 500
    code = "upstream_error"

    def __init__(self, message: str, upstream_status: int | None = None) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status


UpstreamRejected = UpstreamError


class TransientNetworkError(ClipJobsError):
    """The outbound call itself failed. Safe to retry; not a job failure."""

    status_code = 500
    code = "transient_network_error"


class NotFound(ClipJobsError):
    status_code = 404
    code = "not_found"


class EngineUnavailable(ClipJobsError):
    """The video engine binary could not be located or started."""

    status_code = 500
    code = "engine_unavailable"


class EngineError(ClipJobsError):
    status_code = 500
    code = "engine_error"
