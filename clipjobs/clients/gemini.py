from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from clipjobs.clients.http import send
from clipjobs.errors import UpstreamError


class GeminiServiceUnavailable(Exception):
    """Raised when Gemini responds with 503."""


class GeminiClient:
    def __init__(
        self,
        api_key: str | None,
        model: str = "models/gemini-pro",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.model = model
        self.timeout = timeout
        self.transport = transport
        self.log = logger or logging.getLogger(__name__)

    def enabled(self) -> bool:
        return bool(self.api_key)

    def suggest_prompt(self, text: str, context: str | None = None, style: str | None = None) -> str:
        if not self.enabled():
            return self.fallback_prompt(text, style)

        prompt = self._build_prompt(text, context, style)
        url = f"https://generativelanguage.googleapis.com/v1beta/{self.model}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": 0.7,
                "topP": 0.95,
                "topK": 40,
            },
        }
        headers = {"x-goog-api-key": self.api_key}
        try:
            response = send(
                "POST",
                url,
                service="gemini",
                action="generate",
                timeout=self.timeout,
                transport=self.transport,
                logger=self.log,
                headers=headers,
                json=payload,
            )
        except UpstreamError as exc:
            if exc.upstream_status == 503:
                raise GeminiServiceUnavailable("Gemini service unavailable") from exc
            raise
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamError("gemini generate returned invalid JSON", upstream_status=response.status_code) from exc
        try:
            return self._extract_text(body).strip()
        except ValueError:
            self.log.warning("gemini response missing text, falling back", extra={"model": self.model})
            return self.fallback_prompt(text, style)

    def _extract_text(self, payload: Any) -> str:
        candidates = payload.get("candidates") if isinstance(payload, dict) else None
        if not candidates or not isinstance(candidates, list) or not isinstance(candidates[0], dict):
            raise ValueError("Gemini response does not include candidates")
        content = candidates[0].get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not parts or not isinstance(parts, list) or not isinstance(parts[0], dict):
            raise ValueError("Gemini response missing content parts")
        text = parts[0].get("text")
        if not text or not isinstance(text, str):
            raise ValueError("Gemini response missing text payload")
        return text

    def _build_prompt(self, text: str, context: Optional[str], style: Optional[str]) -> str:
        parts = [
            "Write one vivid prompt for a short vertical influencer video.",
            "Describe the presenter, setting, camera movement and lighting in under 80 words.",
            f"Voiceover script: {text}",
        ]
        if style:
            parts.append(f"Style: {style}.")
        if context:
            parts.append(f"Additional context: {context}")
        parts.append("Respond with the prompt only, no quotes or commentary.")
        return " ".join(parts)

    @staticmethod
    def fallback_prompt(text: str, style: Optional[str] = None) -> str:
        mood = style or "professional"
        excerpt = " ".join(text.split()[:40])
        return (
            f"A {mood} influencer speaking directly to the camera in a bright, modern setting, "
            f"vertical 9:16 framing, natural lighting, subtle camera movement, talking about: {excerpt}"
        )
