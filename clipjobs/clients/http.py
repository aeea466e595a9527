from __future__ import annotations

import logging
import math
from typing import Any, Optional

import httpx

from clipjobs.errors import TransientNetworkError, UpstreamError, UpstreamRateLimited


def send(
    method: str,
    url: str,
    *,
    service: str,
    action: str,
    timeout: float = 30.0,
    transport: httpx.BaseTransport | None = None,
    logger: Optional[logging.Logger] = None,
    **kwargs: Any,
) -> httpx.Response:
    """Issue one request and translate failures into the service error taxonomy.

    429 -> UpstreamRateLimited, other 4xx/5xx -> UpstreamError,
    connection problems and timeouts -> TransientNetworkError.
    """
    log = logger or logging.getLogger(__name__)
    with httpx.Client(timeout=timeout, transport=transport, follow_redirects=True) as client:
        try:
            response = client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            body = error_message(exc.response)
            log.error(
                "upstream HTTP error",
                extra={"service": service, "action": action, "status": status, "body": body},
            )
            if status == 429:
                raise UpstreamRateLimited(
                    f"{service} rate limit exceeded, retry later: {body}",
                    retry_after=retry_after(exc.response),
                ) from exc
            raise UpstreamError(f"{service} {action} failed ({status}): {body}", upstream_status=status) from exc
        except httpx.TransportError as exc:
            log.warning(
                "upstream request failed",
                extra={"service": service, "action": action, "error": str(exc)},
            )
            raise TransientNetworkError(f"{service} {action} request failed: {exc}") from exc
    return response


def error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(payload, dict):
        for key in ("detail", "error", "message", "title"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and value.get("message"):
                return str(value["message"])
    return str(payload)[:500]


def retry_after(response: httpx.Response) -> float | None:
    header = response.headers.get("retry-after")
    if not header:
        return None
    try:
        value = float(header)
    except ValueError:
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value
