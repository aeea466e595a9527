from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from clipjobs.errors import NotFound, ValidationError
from clipjobs.models.api import CollectionCreateRequest, CollectionUpdateRequest, HistoryCreateRequest
from clipjobs.models.domain import Collection, HistoryItem
from clipjobs.storage.repository import KeyValueStore

HISTORY_PREFIX = "history/"
COLLECTIONS_PREFIX = "collections/"


class LibraryService:
    """Generated-video history and user collections. Last write wins."""

    def __init__(
        self,
        store: KeyValueStore,
        history_limit: int = 50,
        collections_limit: int = 20,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.history_limit = max(1, history_limit)
        self.collections_limit = max(1, collections_limit)
        self.log = logger or logging.getLogger(__name__)

    def add_history(self, payload: HistoryCreateRequest) -> HistoryItem:
        item = HistoryItem(id=f"video_{uuid4().hex}", **payload.model_dump())
        self._save_history(item)
        for stale in self.list_history()[self.history_limit:]:
            self.store.delete(HISTORY_PREFIX + stale.id)
            self.log.debug("history item evicted", extra={"video_id": stale.id})
        return item

    def list_history(self) -> List[HistoryItem]:
        items = [self._load_history(key) for key in self.store.list(HISTORY_PREFIX)]
        present = [item for item in items if item is not None]
        present.sort(key=lambda item: item.created_at, reverse=True)
        return present

    def favorites(self) -> List[HistoryItem]:
        return [item for item in self.list_history() if item.is_favorite]

    def get_history(self, video_id: str) -> HistoryItem:
        item = self._load_history(HISTORY_PREFIX + video_id)
        if item is None:
            raise NotFound("video not found in history")
        return item

    def toggle_favorite(self, video_id: str) -> HistoryItem:
        item = self.get_history(video_id)
        item.is_favorite = not item.is_favorite
        self._save_history(item)
        return item

    def delete_history(self, video_id: str) -> bool:
        return self.store.delete(HISTORY_PREFIX + video_id)

    def clear_history(self) -> int:
        removed = 0
        for key in self.store.list(HISTORY_PREFIX):
            if self.store.delete(key):
                removed += 1
        return removed

    def create_collection(self, payload: CollectionCreateRequest) -> Collection:
        if len(self.store.list(COLLECTIONS_PREFIX)) >= self.collections_limit:
            raise ValidationError(f"at most {self.collections_limit} collections are allowed")
        collection = Collection(id=f"collection_{uuid4().hex}", name=payload.name.strip(), description=payload.description)
        if payload.color:
            collection.color = payload.color
        if payload.icon:
            collection.icon = payload.icon
        self._save_collection(collection)
        return collection

    def list_collections(self) -> List[Collection]:
        items = [self._load_collection(key) for key in self.store.list(COLLECTIONS_PREFIX)]
        present = [item for item in items if item is not None]
        present.sort(key=lambda item: item.updated_at, reverse=True)
        return present

    def get_collection(self, collection_id: str) -> Collection:
        collection = self._load_collection(COLLECTIONS_PREFIX + collection_id)
        if collection is None:
            raise NotFound("collection not found")
        return collection

    def update_collection(self, collection_id: str, payload: CollectionUpdateRequest) -> Collection:
        collection = self.get_collection(collection_id)
        updates = payload.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in updates:
            updates["name"] = updates["name"].strip()
        collection = collection.model_copy(update=updates)
        collection.updated_at = datetime.utcnow()
        self._save_collection(collection)
        return collection

    def delete_collection(self, collection_id: str) -> bool:
        return self.store.delete(COLLECTIONS_PREFIX + collection_id)

    def add_video(self, collection_id: str, video_id: str) -> Collection:
        collection = self.get_collection(collection_id)
        if video_id not in collection.video_ids:
            collection.video_ids.append(video_id)
            collection.updated_at = datetime.utcnow()
            self._save_collection(collection)
        return collection

    def remove_video(self, collection_id: str, video_id: str) -> Collection:
        collection = self.get_collection(collection_id)
        if video_id in collection.video_ids:
            collection.video_ids.remove(video_id)
            collection.updated_at = datetime.utcnow()
            self._save_collection(collection)
        return collection

    def collections_for_video(self, video_id: str) -> List[Collection]:
        return [collection for collection in self.list_collections() if video_id in collection.video_ids]

    def _save_history(self, item: HistoryItem) -> None:
        self.store.put(HISTORY_PREFIX + item.id, item.model_dump(mode="json"))

    def _load_history(self, key: str) -> HistoryItem | None:
        data = self.store.get(key)
        return HistoryItem.model_validate(data) if data is not None else None

    def _save_collection(self, collection: Collection) -> None:
        self.store.put(COLLECTIONS_PREFIX + collection.id, collection.model_dump(mode="json"))

    def _load_collection(self, key: str) -> Collection | None:
        data = self.store.get(key)
        return Collection.model_validate(data) if data is not None else None
