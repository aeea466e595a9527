from __future__ import annotations

import logging
from typing import Any, List, Optional
from uuid import uuid4

import httpx

from clipjobs.clients.gemini import GeminiClient, GeminiServiceUnavailable
from clipjobs.clients.s3_storage import S3StorageClient
from clipjobs.clients.tts import ElevenLabsClient
from clipjobs.config import Settings
from clipjobs.credentials import EnvironmentCredentials
from clipjobs.errors import CredentialMissing
from clipjobs.models.api import AudioRequest, PromptSuggestionRequest, VoicePreviewRequest
from clipjobs.models.domain import StoredObject
from clipjobs.validation import validate_text, validate_voice_id

GEMINI_KEY_ENV = "GEMINI_API_KEY"
ELEVENLABS_KEY_ENV = "ELEVENLABS_API_KEY"

PREVIEW_TEXTS = {
    "en": "Hello, this is a voice preview. How do you like this voice?",
    "tr": "Merhaba, bu bir ses önizlemesidir. Bu sesi nasıl buldunuz?",
}


class TextService:
    """Prompt suggestions and voiceover synthesis feeding the video jobs."""

    def __init__(
        self,
        storage: S3StorageClient,
        settings: Settings,
        credentials: EnvironmentCredentials,
        transport: httpx.BaseTransport | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.storage = storage
        self.settings = settings
        self.credentials = credentials
        self.transport = transport
        self.log = logger or logging.getLogger(__name__)

    def suggest_prompt(self, payload: PromptSuggestionRequest) -> tuple[str, str]:
        text = validate_text(payload.text)
        gemini = GeminiClient(
            api_key=self.credentials.get(GEMINI_KEY_ENV),
            model=self.settings.gemini_model,
            timeout=self.settings.http_timeout,
            transport=self.transport,
            logger=self.log,
        )
        if not gemini.enabled():
            return GeminiClient.fallback_prompt(text, payload.style), "template"
        try:
            return gemini.suggest_prompt(text, payload.context, payload.style), self.settings.gemini_model
        except GeminiServiceUnavailable:
            self.log.warning("gemini unavailable, using template prompt", extra={"model": self.settings.gemini_model})
            return GeminiClient.fallback_prompt(text, payload.style), "template"

    def list_voices(self) -> List[dict[str, Any]]:
        return self._elevenlabs(None).list_voices()

    def synthesize(self, payload: AudioRequest) -> StoredObject:
        text = validate_text(payload.text)
        voice_id = validate_voice_id(payload.voice_id) or self.settings.elevenlabs_voice_id
        audio = self._elevenlabs(voice_id).synthesize(text)
        return self._store_audio("audio", audio)

    def preview_voice(self, payload: VoicePreviewRequest) -> StoredObject:
        """Speak a short fixed sentence in the requested language; unknown languages use English."""
        voice_id = validate_voice_id(payload.voice_id)
        text = PREVIEW_TEXTS.get(payload.language.strip().lower(), PREVIEW_TEXTS["en"])
        audio = self._elevenlabs(voice_id).synthesize(text)
        return self._store_audio("audio/previews", audio)

    def _store_audio(self, folder: str, audio: bytes) -> StoredObject:
        key = f"{self.settings.media_prefix}/{folder}/{uuid4().hex}.mp3"
        url = self.storage.upload_bytes(key, audio, content_type="audio/mpeg")
        return StoredObject(key=key, url=url, size=len(audio), content_type="audio/mpeg")

    def _elevenlabs(self, voice_id: Optional[str]) -> ElevenLabsClient:
        api_key = self.credentials.get(ELEVENLABS_KEY_ENV)
        if not api_key:
            raise CredentialMissing("elevenlabs", ELEVENLABS_KEY_ENV)
        return ElevenLabsClient(
            api_key=api_key,
            voice_id=voice_id,
            model_id=self.settings.elevenlabs_model_id,
            base_url=self.settings.elevenlabs_base_url,
            timeout=self.settings.http_timeout,
            transport=self.transport,
            logger=self.log,
        )
