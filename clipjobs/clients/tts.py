from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx

from clipjobs.clients.http import send

_PREMADE_CATEGORIES = ("premade", "premium", "")


class ElevenLabsClient:
    """ElevenLabs REST client: speech synthesis and the voice catalog."""

    def __init__(
        self,
        api_key: str | None,
        voice_id: str | None = None,
        model_id: str = "eleven_multilingual_v2",
        base_url: str = "https://api.elevenlabs.io",
        timeout: float = 30.0,
        stability: float = 0.5,
        similarity_boost: float = 0.75,
        transport: httpx.BaseTransport | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.voice_id = (voice_id or "").strip()
        self.model_id = model_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.voice_settings = {"stability": stability, "similarity_boost": similarity_boost}
        self.transport = transport
        self.log = logger or logging.getLogger(__name__)

    def synthesize(self, text: str) -> bytes:
        if not self.voice_id:
            raise ValueError("voice_id is required for synthesis")
        response = self._send(
            "POST",
            f"/v1/text-to-speech/{self.voice_id}",
            "synthesize",
            json={"text": text, "model_id": self.model_id, "voice_settings": self.voice_settings},
            accept="audio/mpeg",
        )
        audio = response.content
        self.log.info(
            "elevenlabs synthesis completed",
            extra={"voice_id": self.voice_id, "model_id": self.model_id, "content_length": len(audio)},
        )
        return audio

    def list_voices(self) -> List[dict[str, Any]]:
        """Voices with premade voices first, then those with a preview, then by name."""
        body = self._send("GET", "/v1/voices", "voices", accept="application/json").json()
        voices = [_voice(entry) for entry in (body.get("voices") or []) if isinstance(entry, dict)]
        voices.sort(
            key=lambda voice: (
                (voice["category"] or "") not in _PREMADE_CATEGORIES,
                not voice["preview_url"],
                voice["name"].lower(),
            )
        )
        return voices

    def _send(self, method: str, path: str, action: str, accept: str, **kwargs: Any) -> httpx.Response:
        headers = {"xi-api-key": self.api_key, "Content-Type": "application/json", "Accept": accept}
        return send(
            method,
            f"{self.base_url}{path}",
            service="elevenlabs",
            action=action,
            timeout=self.timeout,
            transport=self.transport,
            logger=self.log,
            headers=headers,
            **kwargs,
        )


def _voice(entry: dict[str, Any]) -> dict[str, Any]:
    labels = entry.get("labels") or {}
    samples = entry.get("samples") or []
    preview = entry.get("preview_url") or (samples[0].get("preview_url") if samples and isinstance(samples[0], dict) else None)
    return {
        "voice_id": entry.get("voice_id") or entry.get("id") or "",
        "name": entry.get("name") or "Unknown",
        "category": entry.get("category") or labels.get("category"),
        "description": entry.get("description") or labels.get("description"),
        "preview_url": preview,
        "labels": labels,
    }
