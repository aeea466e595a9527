from __future__ import annotations

import base64
import logging
from typing import Any, Optional

import httpx

from clipjobs.clients.http import send
from clipjobs.errors import UpstreamError


class WhisperClient:
    def __init__(
        self,
        api_key: str | None,
        model: str = "openai/whisper-large-v3",
        base_url: str = "https://router.huggingface.co/hf-inference/models",
        timeout: float = 120.0,
        transport: httpx.BaseTransport | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.model = model.strip("/")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.log = logger or logging.getLogger(__name__)

    def transcribe(self, audio: bytes, language: str | None = None) -> str:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload: dict[str, Any] = {"inputs": base64.b64encode(audio).decode("ascii")}
        if language:
            payload["parameters"] = {"generate_kwargs": {"language": language}}

        response = send(
            "POST",
            f"{self.base_url}/{self.model}",
            service="huggingface",
            action="transcribe",
            timeout=self.timeout,
            transport=self.transport,
            logger=self.log,
            headers=headers,
            json=payload,
        )
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamError("whisper returned invalid JSON", upstream_status=response.status_code) from exc
        text = _transcript(body)
        if text is None:
            raise UpstreamError("whisper response did not include a transcript", upstream_status=response.status_code)
        self.log.info(
            "whisper transcription completed",
            extra={"model": self.model, "language": language, "characters": len(text)},
        )
        return text.strip()


def _transcript(body: Any) -> Optional[str]:
    if isinstance(body, str):
        return body
    if isinstance(body, list) and body:
        body = body[0]
    if isinstance(body, dict) and isinstance(body.get("text"), str):
        return body["text"]
    return None
