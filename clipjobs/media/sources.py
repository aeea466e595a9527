from __future__ import annotations

import logging
from typing import Optional

import httpx

from clipjobs.clients.http import send
from clipjobs.clients.s3_storage import S3StorageClient
from clipjobs.errors import ValidationError


def fetch_media(
    url: str,
    storage: S3StorageClient,
    *,
    timeout: float = 30.0,
    transport: httpx.BaseTransport | None = None,
    logger: Optional[logging.Logger] = None,
    field: str = "video_url",
) -> bytes:
    """Read a clip from local media storage or download it over http(s)."""
    url = (url or "").strip()
    local_prefix = f"{storage.local_url_prefix}/"
    if url.startswith(local_prefix):
        content, _ = storage.download(url[len(local_prefix):])
        return content
    if not url.startswith(("http://", "https://")):
        raise ValidationError(f"{field} must be an http(s) URL or a stored media path")
    response = send(
        "GET",
        url,
        service="media",
        action="download",
        timeout=timeout,
        transport=transport,
        logger=logger,
    )
    return response.content
