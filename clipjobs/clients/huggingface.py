from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import httpx

from clipjobs.clients.http import send
from clipjobs.errors import UpstreamError

# Status codes meaning "this model is not served here", so the next one is tried.
_MODEL_GONE = (404, 410)
_IMAGE_KEYS = ("image", "generated_image")


@dataclass
class GeneratedImage:
    content: bytes
    content_type: str
    model: str


class HuggingFaceImageClient:
    """Text-to-image through the Hugging Face inference router."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://router.huggingface.co/hf-inference/models",
        timeout: float = 120.0,
        transport: httpx.BaseTransport | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.api_key = (api_key or "").strip()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.log = logger or logging.getLogger(__name__)

    def text_to_image(
        self,
        prompt: str,
        models: Sequence[str],
        width: int = 1024,
        height: int = 1024,
        reference_url: str | None = None,
    ) -> GeneratedImage:
        """Try each model in order. A 404/410 moves on to the next model; any
        other failure is raised for the model that produced it."""
        candidates = _unique(models)
        if not candidates:
            raise ValueError("at least one model is required")
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        else:
            self.log.warning("huggingface API key not set, using anonymous tier")

        parameters: dict[str, Any] = {"width": width, "height": height}
        if reference_url:
            parameters["image"] = reference_url
        payload = {"inputs": prompt, "parameters": parameters}

        last_error: UpstreamError | None = None
        for model in candidates:
            try:
                response = send(
                    "POST",
                    f"{self.base_url}/{model.strip('/')}",
                    service="huggingface",
                    action="text-to-image",
                    timeout=self.timeout,
                    transport=self.transport,
                    logger=self.log,
                    headers=headers,
                    json=payload,
                )
            except UpstreamError as exc:
                if exc.upstream_status not in _MODEL_GONE:
                    raise
                self.log.info("image model not served, trying next", extra={"model": model})
                last_error = exc
                continue
            content, content_type = self._decode(response)
            if model != candidates[0]:
                self.log.info("image generated with fallback model", extra={"requested": candidates[0], "model": model})
            return GeneratedImage(content=content, content_type=content_type, model=model)

        tried = ", ".join(candidates)
        raise UpstreamError(
            f"no image model available, tried: {tried}",
            upstream_status=last_error.upstream_status if last_error else None,
        )

    def _decode(self, response: httpx.Response) -> tuple[bytes, str]:
        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if content_type.startswith("image/"):
            return response.content, content_type
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamError("huggingface returned an unreadable image response") from exc
        encoded = _find_image(body)
        if not encoded:
            raise UpstreamError("huggingface response did not include an image")
        return _decode_data_url(encoded)


def _unique(models: Sequence[Optional[str]]) -> List[str]:
    seen: List[str] = []
    for model in models:
        model = (model or "").strip()
        if model and model not in seen:
            seen.append(model)
    return seen


def _find_image(body: Any) -> Optional[str]:
    if isinstance(body, list) and body:
        body = body[0]
    if not isinstance(body, dict):
        return None
    for key in _IMAGE_KEYS:
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _decode_data_url(value: str) -> tuple[bytes, str]:
    content_type = "image/png"
    if value.startswith("data:"):
        header, _, value = value.partition(",")
        content_type = header[5:].split(";")[0] or content_type
    try:
        return base64.b64decode(value, validate=True), content_type
    except (binascii.Error, ValueError) as exc:
        raise UpstreamError("huggingface returned an invalid base64 image") from exc
