from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    STARTING = "starting"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELED})


class Job(BaseModel):
    """Normalized snapshot of a remote generation job.

    Built fresh from the provider on every poll; nothing is stored locally.
    """

    id: str
    provider: str
    status: JobStatus
    result: Optional[str] = None
    error: Optional[str] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    logs: Optional[str] = None


class ProviderInfo(BaseModel):
    provider: str
    name: str
    description: str
    kind: str
    requires_api_key: bool
    api_key_env: Optional[str] = None
    supports_audio: bool = False
    is_free: bool = False
    free_limit: Optional[str] = None


class VideoSettings(BaseModel):
    duration: Optional[int] = None
    resolution: Optional[str] = None
    style: Optional[str] = None


class HistoryItem(BaseModel):
    id: str
    video_url: str
    audio_url: Optional[str] = None
    text: str
    voice_id: Optional[str] = None
    voice_name: Optional[str] = None
    provider: Optional[str] = None
    settings: Optional[VideoSettings] = None
    thumbnail: Optional[str] = None
    is_favorite: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Collection(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    color: str = "purple"
    icon: str = "folder"
    video_ids: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class StoredObject(BaseModel):
    key: str
    url: str
    size: Optional[int] = None
    content_type: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
