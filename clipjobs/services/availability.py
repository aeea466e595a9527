from __future__ import annotations

from typing import List

from clipjobs.credentials import EnvironmentCredentials
from clipjobs.errors import ValidationError
from clipjobs.models.api import ProviderAvailability
from clipjobs.models.domain import ProviderInfo
from clipjobs.providers.registry import ProviderRegistry

TTS_PROVIDERS: List[ProviderInfo] = [
    ProviderInfo(
        provider="elevenlabs",
        name="ElevenLabs",
        description="High quality AI speech synthesis",
        kind="tts",
        requires_api_key=True,
        api_key_env="ELEVENLABS_API_KEY",
    ),
    ProviderInfo(
        provider="edgetts",
        name="Edge TTS",
        description="Microsoft Edge TTS, free and unlimited",
        kind="tts",
        requires_api_key=False,
        is_free=True,
        free_limit="unlimited",
    ),
    ProviderInfo(
        provider="google",
        name="Google Cloud TTS",
        description="1-4 million characters free per month",
        kind="tts",
        requires_api_key=True,
        api_key_env="GOOGLE_TTS_API_KEY",
        is_free=True,
        free_limit="1-4M characters/month",
    ),
    ProviderInfo(
        provider="azure",
        name="Azure Speech",
        description="500,000 characters free per month",
        kind="tts",
        requires_api_key=True,
        api_key_env="AZURE_SPEECH_KEY",
        is_free=True,
        free_limit="500K characters/month",
    ),
]

PROVIDER_TYPES = ("video", "tts")


class AvailabilityService:
    """Credential gate. Evaluated on every call; results are never cached."""

    def __init__(self, registry: ProviderRegistry, credentials: EnvironmentCredentials) -> None:
        self.registry = registry
        self.credentials = credentials

    def available(self, provider_id: str, kind: str = "video") -> bool:
        return self._is_available(self._info(provider_id, kind))

    def catalog(self, kind: str = "video") -> List[ProviderAvailability]:
        return [
            ProviderAvailability(**info.model_dump(), available=self._is_available(info))
            for info in self._infos(kind)
        ]

    def _infos(self, kind: str) -> List[ProviderInfo]:
        if kind not in PROVIDER_TYPES:
            raise ValidationError(f"invalid type, must be one of: {', '.join(PROVIDER_TYPES)}")
        if kind == "video":
            return [provider.info() for provider in self.registry]
        return list(TTS_PROVIDERS)

    def _info(self, provider_id: str, kind: str) -> ProviderInfo:
        for info in self._infos(kind):
            if info.provider == provider_id:
                return info
        raise ValidationError(f"unknown {kind} provider: {provider_id}")

    def _is_available(self, info: ProviderInfo) -> bool:
        if not info.requires_api_key:
            return True
        return self.credentials.has(info.api_key_env)
