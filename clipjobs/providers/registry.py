from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional

import httpx

from clipjobs.clients.s3_storage import S3StorageClient
from clipjobs.config import Settings
from clipjobs.credentials import EnvironmentCredentials
from clipjobs.errors import ValidationError

from .base import VideoProvider
from .fal import FalProvider
from .huggingface import HuggingFaceProvider
from .replicate import ReplicateProvider


class ProviderRegistry:
    def __init__(self) -> None:
        self._providers: Dict[str, VideoProvider] = {}

    def register(self, provider: VideoProvider) -> VideoProvider:
        if not provider.name:
            raise ValueError("provider name is required")
        self._providers[self._key(provider.name)] = provider
        return provider

    def get(self, name: str | None) -> VideoProvider:
        provider = self._providers.get(self._key(name))
        if provider is None:
            raise ValidationError(f"unknown video provider: {name}")
        return provider

    def names(self) -> List[str]:
        return list(self._providers)

    def __iter__(self) -> Iterator[VideoProvider]:
        return iter(list(self._providers.values()))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._key(name) in self._providers

    @staticmethod
    def _key(name: str | None) -> str:
        return (name or "").strip().lower()


def build_registry(
    settings: Settings,
    credentials: EnvironmentCredentials,
    storage: S3StorageClient,
    transport: httpx.BaseTransport | None = None,
    logger: Optional[logging.Logger] = None,
) -> ProviderRegistry:
    registry = ProviderRegistry()
    registry.register(ReplicateProvider(settings, credentials, transport=transport, logger=logger))
    registry.register(FalProvider(settings, credentials, transport=transport, logger=logger))
    registry.register(HuggingFaceProvider(settings, credentials, storage, transport=transport, logger=logger))
    return registry
