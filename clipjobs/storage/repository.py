from __future__ import annotations

import copy
from threading import Lock
from typing import Any, Dict, List

from clipjobs.clients.s3_storage import S3StorageClient
from clipjobs.errors import NotFound


class KeyValueStore:
    """JSON document store used by the library.

    ``delete`` on a missing key is a no-op that returns False.
    """

    def get(self, key: str) -> Any | None: ...  # pragma: no cover

    def put(self, key: str, value: Any) -> None: ...  # pragma: no cover

    def delete(self, key: str) -> bool: ...  # pragma: no cover

    def list(self, prefix: str = "") -> List[str]: ...  # pragma: no cover


class MemoryStore(KeyValueStore):
    def __init__(self) -> None:
        self._items: Dict[str, Any] = {}
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            value = self._items.get(key)
            return copy.deepcopy(value) if value is not None else None

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._items[key] = copy.deepcopy(value)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._items.pop(key, None) is not None

    def list(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(key for key in self._items if key.startswith(prefix))


class ObjectStore(KeyValueStore):
    """Stores each key as a JSON object under ``prefix`` in the bucket."""

    def __init__(self, storage: S3StorageClient, prefix: str = "library") -> None:
        self.storage = storage
        self.prefix = prefix.strip("/")

    def get(self, key: str) -> Any | None:
        try:
            return self.storage.download_json(self._path(key))
        except NotFound:
            return None

    def put(self, key: str, value: Any) -> None:
        self.storage.upload_json(self._path(key), value)

    def delete(self, key: str) -> bool:
        return self.storage.delete(self._path(key))

    def list(self, prefix: str = "") -> List[str]:
        base = f"{self.prefix}/" if self.prefix else ""
        keys = []
        for item in self.storage.list_files(f"{base}{prefix}"):
            key = item["key"]
            if key.startswith(base) and key.endswith(".json"):
                keys.append(key[len(base):-len(".json")])
        return sorted(keys)

    def _path(self, key: str) -> str:
        base = f"{self.prefix}/" if self.prefix else ""
        return f"{base}{key}.json"
