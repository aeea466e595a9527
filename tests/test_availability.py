import pytest

from clipjobs.clients.s3_storage import S3StorageClient
from clipjobs.config import Settings
from clipjobs.credentials import EnvironmentCredentials
from clipjobs.errors import ValidationError
from clipjobs.providers.registry import build_registry
from clipjobs.services.availability import AvailabilityService


def _service(environ):
    credentials = EnvironmentCredentials(environ)
    storage = S3StorageClient(bucket="clipjobs", access_key="", secret_key="")
    return AvailabilityService(build_registry(Settings(), credentials, storage), credentials)


@pytest.mark.parametrize("value", [None, "", "   \t"])
def test_absent_or_blank_credential_is_unavailable(value):
    environ = {} if value is None else {"REPLICATE_API_TOKEN": value}
    assert _service(environ).available("replicate", "video") is False


def test_configured_credential_is_available():
    assert _service({"FAL_API_KEY": "fal-123"}).available("fal", "video") is True


def test_credential_free_providers_are_always_available():
    service = _service({})
    assert service.available("huggingface", "video") is True
    assert service.available("edgetts", "tts") is True
    assert service.available("elevenlabs", "tts") is False


def test_environment_is_read_on_every_call():
    environ = {}
    service = _service(environ)
    assert service.available("replicate") is False
    environ["REPLICATE_API_TOKEN"] = "r8_late"
    assert service.available("replicate") is True


def test_unknown_provider_and_type_raise():
    service = _service({})
    with pytest.raises(ValidationError):
        service.available("sora", "video")
    with pytest.raises(ValidationError):
        service.available("replicate", "tts")
    with pytest.raises(ValidationError):
        service.catalog("image")


def test_catalog_lists_every_provider():
    catalog = _service({"ELEVENLABS_API_KEY": "el-key"}).catalog("tts")
    by_id = {entry.provider: entry for entry in catalog}
    assert set(by_id) == {"elevenlabs", "edgetts", "google", "azure"}
    assert by_id["elevenlabs"].available is True
    assert by_id["google"].available is False
