from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Tuple

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from clipjobs.config import Settings
from clipjobs.errors import NotFound, UpstreamError

_MISSING_CODES = ("NoSuchKey", "404", "NotFound")


@dataclass
class _MemoryObject:
    content: bytes
    content_type: str
    stored_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class S3StorageClient:
    """Object storage for generated media and library documents.

    Without bucket credentials objects live in a process-local dict and are
    served through the service's own ``/media`` route.
    """

    def __init__(
        self,
        bucket: str,
        access_key: str | None,
        secret_key: str | None,
        endpoint_url: str | None = None,
        region_name: str | None = None,
        public_url: str | None = None,
        addressing_style: str | None = None,
        local_url_prefix: str = "/media",
    ) -> None:
        self.bucket = (bucket or "").strip()
        self.endpoint_url = (endpoint_url or "").rstrip("/") or None
        self.public_url_base = (public_url or "").rstrip("/")
        self.local_url_prefix = local_url_prefix.rstrip("/")
        self._objects: Dict[str, _MemoryObject] = {}
        self._lock = Lock()
        self._client = None

        access_key = (access_key or "").strip()
        secret_key = (secret_key or "").strip()
        if self.bucket and access_key and secret_key:
            self._client = boto3.client(
                "s3",
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=(region_name or "").strip() or None,
                endpoint_url=self.endpoint_url,
                config=BotoConfig(s3={"addressing_style": (addressing_style or "virtual").lower()}),
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3StorageClient":
        return cls(
            bucket=settings.s3_bucket,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key,
            endpoint_url=settings.s3_endpoint_url,
            region_name=settings.s3_region,
            public_url=settings.s3_public_url,
            addressing_style=settings.s3_addressing_style,
        )

    def is_configured(self) -> bool:
        return self._client is not None

    def upload_json(self, path: str, payload: Any) -> str:
        body = json.dumps(payload, ensure_ascii=False, default=str).encode("utf-8")
        return self.upload_bytes(path, body, content_type="application/json")

    def upload_bytes(self, path: str, content: bytes, content_type: str = "application/octet-stream") -> str:
        key = self._normalize_path(path)
        if self._client is None:
            with self._lock:
                self._objects[key] = _MemoryObject(content, content_type)
        else:
            self._call("upload", self._client.put_object, Bucket=self.bucket, Key=key, Body=content, ContentType=content_type)
        return self.public_url(key)

    def download(self, path: str) -> Tuple[bytes, str]:
        """Return ``(content, content_type)``; a missing key raises NotFound."""
        key = self._normalize_path(path)
        if self._client is None:
            with self._lock:
                stored = self._objects.get(key)
            if stored is None:
                raise NotFound(f"object not found: {key}")
            return stored.content, stored.content_type
        response = self._call("download", self._client.get_object, Bucket=self.bucket, Key=key)
        return response["Body"].read(), response.get("ContentType") or "application/octet-stream"

    def download_json(self, path: str) -> Any:
        content, _ = self.download(path)
        return json.loads(content.decode("utf-8"))

    def delete(self, path: str) -> bool:
        """Remove a key. Deleting a missing key is a no-op that returns False."""
        key = self._normalize_path(path)
        if self._client is None:
            with self._lock:
                return self._objects.pop(key, None) is not None
        try:
            self._call("head", self._client.head_object, Bucket=self.bucket, Key=key)
        except NotFound:
            return False
        self._call("delete", self._client.delete_object, Bucket=self.bucket, Key=key)
        return True

    def list_files(self, prefix: str | None = None) -> List[dict[str, Any]]:
        key_prefix = self._normalize_path(prefix)
        if self._client is None:
            with self._lock:
                snapshot = sorted(self._objects.items())
            return [
                self._describe(key, len(stored.content), stored.stored_at)
                for key, stored in snapshot
                if key.startswith(key_prefix)
            ]

        paginator = self._client.get_paginator("list_objects_v2")
        pages = paginator.paginate(Bucket=self.bucket, Prefix=key_prefix)
        files: List[dict[str, Any]] = []
        try:
            for page in pages:
                for obj in page.get("Contents", []):
                    files.append(self._describe(obj["Key"], obj.get("Size"), obj.get("LastModified")))
        except (BotoCoreError, ClientError) as exc:  # pragma: no cover
            raise UpstreamError(f"S3 list failed: {exc}") from exc
        return files

    def public_url(self, path: str) -> str:
        key = self._normalize_path(path)
        if self.public_url_base:
            return f"{self.public_url_base}/{key}"
        if self._client is not None and self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket}/{key}"
        return f"{self.local_url_prefix}/{key}"

    def _describe(self, key: str, size: int | None, last_modified: datetime | None) -> dict[str, Any]:
        return {"key": key, "size": size, "last_modified": last_modified, "url": self.public_url(key)}

    def _call(self, action: str, method: Any, **kwargs: Any) -> Any:
        try:
            return method(**kwargs)
        except ClientError as exc:  # pragma: no cover - AWS error surface
            if exc.response.get("Error", {}).get("Code") in _MISSING_CODES:
                raise NotFound(f"object not found: {kwargs.get('Key')}") from exc
            raise UpstreamError(f"S3 {action} failed: {exc}") from exc
        except BotoCoreError as exc:  # pragma: no cover
            raise UpstreamError(f"S3 {action} failed: {exc}") from exc

    @staticmethod
    def _normalize_path(path: str | None) -> str:
        if not path:
            return ""
        return "/".join(part for part in path.strip().split("/") if part)
