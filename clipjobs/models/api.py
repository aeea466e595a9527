from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, validator

from .domain import Collection, HistoryItem, Job, ProviderInfo, VideoSettings


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    code: str


class JobSubmitRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: str = Field(default="replicate", validation_alias="provider")
    prompt: Optional[str] = Field(default=None, validation_alias="prompt")
    media_ref: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("mediaRef", "media_ref", "audioUrl"),
    )
    options: dict[str, Any] = Field(default_factory=dict, validation_alias="options")


class JobSubmitResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    job_id: str = Field(serialization_alias="jobId")
    provider: str
    poll_interval_seconds: float = Field(serialization_alias="pollIntervalSeconds")
    max_poll_attempts: int = Field(serialization_alias="maxPollAttempts")


class JobStatusResponse(Job):
    success: bool = True


class ProviderAvailability(ProviderInfo):
    available: bool


class ProviderListResponse(BaseModel):
    success: bool = True
    type: str
    items: List[ProviderAvailability]


class ProviderCheckResponse(BaseModel):
    success: bool = True
    available: bool
    provider: str
    type: str


class HistoryCreateRequest(BaseModel):
    video_url: str
    audio_url: Optional[str] = None
    text: str
    voice_id: Optional[str] = None
    voice_name: Optional[str] = None
    provider: Optional[str] = None
    settings: Optional[VideoSettings] = None
    thumbnail: Optional[str] = None
    is_favorite: bool = False

    @validator("video_url")
    def validate_video_url(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("video_url must not be empty")
        return value.strip()


class HistoryItemResponse(BaseModel):
    success: bool = True
    item: HistoryItem


class HistoryListResponse(BaseModel):
    success: bool = True
    items: List[HistoryItem]


class FavoriteResponse(BaseModel):
    success: bool = True
    id: str
    is_favorite: bool


class DeleteResponse(BaseModel):
    success: bool = True
    deleted: bool


class CollectionCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None


class CollectionUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None


class CollectionVideoRequest(BaseModel):
    video_id: str = Field(..., min_length=1)


class CollectionResponse(BaseModel):
    success: bool = True
    collection: Collection


class CollectionListResponse(BaseModel):
    success: bool = True
    items: List[Collection]


class EditRequest(BaseModel):
    video_url: str = Field(..., min_length=1)


class FilterRequest(EditRequest):
    filter: Literal["brightness", "contrast", "saturation", "blur", "sharpen", "vintage", "blackwhite", "sepia"]
    intensity: int = Field(default=50, ge=0, le=100)


class ColorCorrectionOptions(BaseModel):
    brightness: Optional[float] = Field(default=None, ge=-100, le=100)
    contrast: Optional[float] = Field(default=None, ge=-100, le=100)
    saturation: Optional[float] = Field(default=None, ge=-100, le=100)
    exposure: Optional[float] = Field(default=None, ge=-100, le=100)
    temperature: Optional[float] = Field(default=None, ge=-100, le=100)
    tint: Optional[float] = Field(default=None, ge=-100, le=100)
    shadows: Optional[float] = Field(default=None, ge=-100, le=100)
    highlights: Optional[float] = Field(default=None, ge=-100, le=100)
    gamma: Optional[float] = Field(default=None, ge=0, le=100)


class ColorCorrectionRequest(EditRequest):
    options: ColorCorrectionOptions


class SpeedRequest(EditRequest):
    speed: float = Field(..., gt=0)


class CropRequest(EditRequest):
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    x: int = Field(default=0, ge=0)
    y: int = Field(default=0, ge=0)


class RotateRequest(EditRequest):
    degrees: Literal[90, 180, 270]


class TrimRequest(EditRequest):
    start: float = Field(..., ge=0)
    end: float = Field(..., gt=0)

    @validator("end")
    def validate_end(cls, value: float, values: dict[str, Any]) -> float:
        start = values.get("start")
        if start is not None and value <= start:
            raise ValueError("end must be greater than start")
        return value


class MergeRequest(BaseModel):
    video_urls: List[str] = Field(..., min_length=2, max_length=10)
    with_audio: bool = True


Quality = Literal["low", "medium", "high"]


class CompressRequest(EditRequest):
    quality: Quality = "medium"
    target_size_mb: Optional[float] = Field(default=None, gt=0, le=4096)


class ConvertRequest(EditRequest):
    format: Literal["mp4", "webm", "gif", "mov"]
    quality: Quality = "medium"


class ExportRequest(EditRequest):
    format: Literal["mp4", "webm", "gif"] = "mp4"
    quality: Quality = "medium"
    frame_rate: Optional[int] = Field(default=None, ge=1, le=120)
    width: Optional[int] = Field(default=None, gt=0, le=7680)
    height: Optional[int] = Field(default=None, gt=0, le=4320)


class EditResponse(BaseModel):
    success: bool = True
    video_url: str
    key: str
    content_type: str = "video/mp4"


class PromptSuggestionRequest(BaseModel):
    text: str
    context: Optional[str] = None
    style: Optional[str] = None


class PromptSuggestionResponse(BaseModel):
    success: bool = True
    suggestion: str
    model: str


class AudioRequest(BaseModel):
    text: str
    voice_id: Optional[str] = None


class AudioResponse(BaseModel):
    success: bool = True
    audio_url: str
    key: str
    provider: str


class Voice(BaseModel):
    voice_id: str
    name: str
    category: Optional[str] = None
    description: Optional[str] = None
    preview_url: Optional[str] = None
    labels: dict[str, Any] = Field(default_factory=dict)


class VoiceListResponse(BaseModel):
    success: bool = True
    voices: List[Voice]


class VoicePreviewRequest(BaseModel):
    voice_id: str = Field(..., min_length=1)
    language: str = "en"


AspectRatio = Literal["1:1", "4:3", "16:9", "9:16", "21:9"]


class ImageRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=2000)
    model: Optional[str] = None
    aspect_ratio: Optional[AspectRatio] = None
    width: Optional[int] = Field(default=None, ge=64, le=4096)
    height: Optional[int] = Field(default=None, ge=64, le=4096)
    style: Optional[str] = None
    additional_prompt: Optional[str] = None
    reference_image_url: Optional[str] = None

    @validator("prompt")
    def validate_prompt(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be empty")
        return value.strip()


class AvatarRequest(ImageRequest):
    style: Optional[Literal["realistic", "cartoon", "anime", "professional", "artistic"]] = None


class PoseVariationRequest(BaseModel):
    source_image_url: str = Field(..., min_length=1)
    prompt: str = Field(..., min_length=1, max_length=2000)
    model: Optional[str] = None
    pose: Optional[str] = None
    camera_angle: Optional[str] = None
    strength: float = Field(default=0.7, gt=0, le=1)
    aspect_ratio: Optional[AspectRatio] = None


class ImageResponse(BaseModel):
    success: bool = True
    image_url: str
    key: str
    model: str


class TranscriptionRequest(BaseModel):
    media_url: Optional[str] = None
    audio_base64: Optional[str] = Field(default=None, validate_default=True)
    language: Optional[str] = Field(default=None, min_length=2, max_length=8)

    @validator("audio_base64")
    def validate_single_source(cls, value: Optional[str], values: dict[str, Any]) -> Optional[str]:
        if bool(value) == bool(values.get("media_url")):
            raise ValueError("provide exactly one of media_url or audio_base64")
        return value


class TranscriptionResponse(BaseModel):
    success: bool = True
    transcript: str
    model: str


class BatchSubmitRequest(BaseModel):
    items: List[JobSubmitRequest] = Field(..., min_length=1)


class BatchItemResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    index: int
    success: bool
    provider: str
    job_id: Optional[str] = Field(default=None, serialization_alias="jobId")
    error: Optional[str] = None
    code: Optional[str] = None


class BatchSubmitResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    submitted: int
    failed: int
    items: List[BatchItemResult]
    poll_interval_seconds: float = Field(serialization_alias="pollIntervalSeconds")
    max_poll_attempts: int = Field(serialization_alias="maxPollAttempts")
