import httpx
import pytest

from clipjobs.clients.s3_storage import S3StorageClient
from clipjobs.config import Settings
from clipjobs.credentials import EnvironmentCredentials
from clipjobs.errors import (
    CredentialMissing,
    TransientNetworkError,
    UpstreamError,
    UpstreamRateLimited,
    ValidationError,
)
from clipjobs.models.domain import JobStatus, TERMINAL_STATUSES
from clipjobs.providers.base import normalize_status
from clipjobs.providers.fal import FalProvider
from clipjobs.providers.huggingface import HuggingFaceProvider
from clipjobs.providers.registry import build_registry
from clipjobs.providers.replicate import ReplicateProvider
from clipjobs.services.job_service import JobService

settings = Settings()
credentials = EnvironmentCredentials(
    {
        "REPLICATE_API_TOKEN": "r8_0123456789abcdef",
        "FAL_API_KEY": "fal-key-0123456789",
    }
)


def _storage() -> S3StorageClient:
    return S3StorageClient(bucket="clipjobs", access_key="", secret_key="")


def test_error_with_non_terminal_status_is_failed():
    vocabulary = {"processing": JobStatus.PROCESSING, "succeeded": JobStatus.SUCCEEDED}
    assert normalize_status("processing", "GPU out of memory", vocabulary) is JobStatus.FAILED
    assert normalize_status("mystery", "boom", vocabulary) is JobStatus.FAILED
    assert normalize_status("mystery", None, vocabulary) is JobStatus.PROCESSING
    assert normalize_status("SUCCEEDED", None, vocabulary) is JobStatus.SUCCEEDED


def test_terminal_statuses_never_leave_terminal_state():
    vocabulary = {status.value: status for status in JobStatus}
    for terminal in TERMINAL_STATUSES:
        for error in (None, "late error"):
            assert normalize_status(terminal.value, error, vocabulary).is_terminal
    assert not JobStatus.STARTING.is_terminal
    assert not JobStatus.PROCESSING.is_terminal


def test_replicate_create_and_status():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "POST":
            assert request.url.path == "/v1/models/google/veo-3.1/predictions"
            assert request.headers["authorization"] == "Bearer r8_0123456789abcdef"
            return httpx.Response(201, json={"id": "abc123", "status": "starting"})
        return httpx.Response(
            200,
            json={"id": "abc123", "status": "succeeded", "output": ["https://cdn/v.mp4"], "logs": "done"},
        )

    provider = ReplicateProvider(settings, credentials, transport=httpx.MockTransport(handler))
    assert provider.create_job("prompt", "https://cdn/a.mp3", {}) == "abc123"
    job = provider.get_status("abc123")
    assert job.status is JobStatus.SUCCEEDED
    assert job.result == "https://cdn/v.mp4"
    assert job.progress == 100
    assert len(seen) == 2


def test_poll_is_idempotent():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "abc", "status": "processing", "output": None, "error": None})

    provider = ReplicateProvider(settings, credentials, transport=httpx.MockTransport(handler))
    assert provider.get_status("abc") == provider.get_status("abc")


def test_replicate_rate_limit_and_upstream_error_are_distinct():
    def throttled(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"Retry-After": "7"}, json={"detail": "throttled"})

    def rejected(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"detail": "invalid input"})

    provider = ReplicateProvider(settings, credentials, transport=httpx.MockTransport(throttled))
    with pytest.raises(UpstreamRateLimited) as exc_info:
        provider.create_job("prompt", "https://cdn/a.mp3", {})
    assert exc_info.value.retry_after == 7

    provider = ReplicateProvider(settings, credentials, transport=httpx.MockTransport(rejected))
    with pytest.raises(UpstreamError) as exc_info:
        provider.create_job("prompt", "https://cdn/a.mp3", {})
    assert not isinstance(exc_info.value, UpstreamRateLimited)
    assert "invalid input" in str(exc_info.value)
    assert exc_info.value.upstream_status == 422


def test_timeout_is_transient_not_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    provider = ReplicateProvider(settings, credentials, transport=httpx.MockTransport(handler))
    with pytest.raises(TransientNetworkError):
        provider.get_status("abc")


def test_fal_queue_lifecycle():
    statuses = iter(["IN_QUEUE", "IN_PROGRESS", "COMPLETED"])

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        assert request.headers["authorization"] == "Key fal-key-0123456789"
        if request.method == "POST":
            return httpx.Response(200, json={"request_id": "req-1", "status": "IN_QUEUE"})
        if path.endswith("/status"):
            assert path == "/fal-ai/kling-video/requests/req-1/status"
            return httpx.Response(200, json={"status": next(statuses)})
        return httpx.Response(200, json={"video": {"url": "https://fal.media/out.mp4"}})

    provider = FalProvider(settings, credentials, transport=httpx.MockTransport(handler))
    handle = provider.create_job("prompt", "https://cdn/a.mp3", {})
    assert handle == "fal-ai/kling-video:req-1"
    assert provider.get_status(handle).status is JobStatus.STARTING
    assert provider.get_status(handle).status is JobStatus.PROCESSING
    done = provider.get_status(handle)
    assert done.status is JobStatus.SUCCEEDED
    assert done.result == "https://fal.media/out.mp4"


def test_fal_error_takes_precedence():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "IN_PROGRESS", "error": "content policy violation"})

    provider = FalProvider(settings, credentials, transport=httpx.MockTransport(handler))
    job = provider.get_status("fal-ai/kling-video:req-2")
    assert job.status is JobStatus.FAILED
    assert job.error == "content policy violation"


def test_fal_synchronous_result_is_its_own_handle():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"video": {"url": "https://fal.media/now.mp4"}})

    provider = FalProvider(settings, credentials, transport=httpx.MockTransport(handler))
    handle = provider.create_job("prompt", "https://cdn/a.mp3", {})
    job = provider.get_status(handle)
    assert job.status is JobStatus.SUCCEEDED
    assert job.result == "https://fal.media/now.mp4"


def test_fal_malformed_handle():
    provider = FalProvider(settings, credentials, transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    with pytest.raises(ValidationError):
        provider.get_status("no-separator")


def test_huggingface_stores_video_bytes():
    storage = _storage()

    def handler(request: httpx.Request) -> httpx.Response:
        assert "authorization" not in request.headers
        return httpx.Response(200, headers={"content-type": "video/mp4"}, content=b"\x00\x00fakevideo")

    provider = HuggingFaceProvider(
        settings,
        EnvironmentCredentials({}),
        storage,
        transport=httpx.MockTransport(handler),
    )
    assert provider.available()
    handle = provider.create_job("a cat surfing", None, {"model": "Lightricks/LTX-Video"})
    assert handle.startswith("/media/")
    content, content_type = storage.download(handle[len("/media/"):])
    assert content == b"\x00\x00fakevideo"
    assert content_type == "video/mp4"

    job = provider.get_status(handle)
    assert job.status is JobStatus.SUCCEEDED
    with pytest.raises(ValidationError):
        provider.get_status("opaque-id")


def test_every_provider_validates_before_network():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    registry = build_registry(settings, credentials, _storage(), transport=httpx.MockTransport(handler))
    service = JobService(registry, settings)
    for name in registry.names():
        with pytest.raises(ValidationError):
            service.submit(name, "", None, {})
    with pytest.raises(ValidationError):
        service.submit("replicate", "prompt", "https://cdn/a.mp3", {"duration": 7})
    for options in ({"model": 5}, {"model": "  "}, {"aspect_ratio": 1.78}):
        with pytest.raises(ValidationError):
            service.submit("fal", "prompt", "https://cdn/a.mp3", options)
    with pytest.raises(ValidationError):
        service.submit("huggingface", "prompt", None, {"model": 5})
    assert calls == []


def test_submit_without_credential():
    registry = build_registry(settings, EnvironmentCredentials({}), _storage(), transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    service = JobService(registry, settings)
    with pytest.raises(CredentialMissing):
        service.submit("fal", "prompt", "https://cdn/a.mp3", {})


def test_registry_accepts_new_providers():
    class EchoProvider(ReplicateProvider):
        name = "echo"
        requires_credential = False

        def create_job(self, prompt, media_ref, options):
            return f"echo-{prompt}"

    registry = build_registry(settings, credentials, _storage())
    registry.register(EchoProvider(settings, credentials))
    service = JobService(registry, settings)
    assert service.submit("echo", "hi", "https://cdn/a.mp3") == "echo-hi"


def test_registry_lookup_and_membership_ignore_case_and_spacing():
    registry = build_registry(settings, credentials, _storage())
    assert registry.get(" Replicate ").name == "replicate"
    assert " Replicate " in registry
    assert "FAL" in registry
    assert "kling" not in registry
    assert None not in registry
