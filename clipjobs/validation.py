from __future__ import annotations

import re
from typing import Any, Mapping

from clipjobs.errors import ValidationError

MIN_TEXT_LENGTH = 10
MAX_TEXT_LENGTH = 5000

VALID_DURATIONS = (5, 8, 15, 30)
VALID_RESOLUTIONS = ("720p", "1080p", "4K")
VALID_STYLES = ("professional", "friendly", "energetic", "calm", "dramatic")

_CONTROL_CHARS = re.compile(r"[\x00-\x1F\x7F]")
_WHITESPACE = re.compile(r"\s+")
_HARMFUL_PATTERNS = (
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
)
_VOICE_ID = re.compile(r"^[a-zA-Z0-9]{21}$")
_STRING_OPTIONS = ("model", "aspect_ratio")


def sanitize_text(text: str) -> str:
    text = _CONTROL_CHARS.sub("", text.strip())
    return _WHITESPACE.sub(" ", text)


def validate_text(text: str | None) -> str:
    """Return the sanitized text or raise ValidationError."""
    if not text or not isinstance(text, str):
        raise ValidationError("text is required")
    sanitized = sanitize_text(text)
    if len(sanitized) < MIN_TEXT_LENGTH:
        raise ValidationError(f"text must contain at least {MIN_TEXT_LENGTH} characters")
    if len(sanitized) > MAX_TEXT_LENGTH:
        raise ValidationError(f"text must contain at most {MAX_TEXT_LENGTH} characters")
    for pattern in _HARMFUL_PATTERNS:
        if pattern.search(sanitized):
            raise ValidationError("text rejected for security reasons")
    return sanitized


def validate_voice_id(voice_id: str | None) -> str | None:
    if not voice_id:
        return None
    if not _VOICE_ID.match(voice_id):
        raise ValidationError("voice_id must be 21 alphanumeric characters")
    return voice_id


def validate_video_settings(options: Mapping[str, Any]) -> None:
    for name in _STRING_OPTIONS:
        value = options.get(name)
        if value is not None and (not isinstance(value, str) or not value.strip()):
            raise ValidationError(f"{name} must be a non-empty string")
    duration = options.get("duration")
    if duration is not None:
        if isinstance(duration, bool) or not isinstance(duration, (int, float)) or duration not in VALID_DURATIONS:
            allowed = ", ".join(str(value) for value in VALID_DURATIONS)
            raise ValidationError(f"invalid duration, allowed values: {allowed} seconds")
    resolution = options.get("resolution")
    if resolution is not None and resolution not in VALID_RESOLUTIONS:
        raise ValidationError(f"invalid resolution, allowed values: {', '.join(VALID_RESOLUTIONS)}")
    style = options.get("style")
    if style is not None and style not in VALID_STYLES:
        raise ValidationError(f"invalid style, allowed values: {', '.join(VALID_STYLES)}")

