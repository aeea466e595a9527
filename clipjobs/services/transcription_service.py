from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional

import httpx

from clipjobs.clients.s3_storage import S3StorageClient
from clipjobs.clients.whisper import WhisperClient
from clipjobs.config import Settings
from clipjobs.credentials import EnvironmentCredentials
from clipjobs.errors import EngineUnavailable, ValidationError
from clipjobs.media import filters
from clipjobs.media.engine import FFmpegEngine
from clipjobs.media.sources import fetch_media
from clipjobs.models.api import TranscriptionRequest

HUGGINGFACE_KEY_ENV = "HUGGINGFACE_API_KEY"


class TranscriptionService:
    """Speech-to-text for generated clips and voiceovers.

    Video sources are reduced to a mono audio track first. When the video
    engine is not installed the clip is sent as-is and the model decodes it.
    """

    def __init__(
        self,
        engine: FFmpegEngine,
        storage: S3StorageClient,
        settings: Settings,
        credentials: EnvironmentCredentials,
        transport: httpx.BaseTransport | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.engine = engine
        self.storage = storage
        self.settings = settings
        self.credentials = credentials
        self.transport = transport
        self.log = logger or logging.getLogger(__name__)

    def transcribe(self, payload: TranscriptionRequest) -> tuple[str, str]:
        if payload.audio_base64:
            audio = _decode_audio(payload.audio_base64)
        else:
            media = fetch_media(
                payload.media_url or "",
                self.storage,
                timeout=self.settings.http_timeout,
                transport=self.transport,
                logger=self.log,
                field="media_url",
            )
            audio = self._extract_audio(media)

        client = WhisperClient(
            api_key=self.credentials.get(HUGGINGFACE_KEY_ENV),
            model=self.settings.whisper_model,
            base_url=self.settings.huggingface_base_url,
            timeout=self.settings.http_timeout,
            transport=self.transport,
            logger=self.log,
        )
        return client.transcribe(audio, payload.language), client.model

    def _extract_audio(self, media: bytes) -> bytes:
        try:
            return self.engine.run([media], filters.extract_audio_args(), output_suffix=".mp3")
        except EngineUnavailable:
            self.log.warning("video engine unavailable, sending source media for transcription")
            return media


def _decode_audio(encoded: str) -> bytes:
    if encoded.startswith("data:"):
        encoded = encoded.partition(",")[2]
    try:
        audio = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("audio_base64 is not valid base64") from exc
    if not audio:
        raise ValidationError("audio_base64 is empty")
    return audio
