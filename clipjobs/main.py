from __future__ import annotations

import logging
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from clipjobs.clients.s3_storage import S3StorageClient
from clipjobs.config import Settings, get_settings
from clipjobs.credentials import EnvironmentCredentials, get_credentials
from clipjobs.errors import ClipJobsError, UpstreamRateLimited
from clipjobs.media.engine import FFmpegEngine, get_engine
from clipjobs.models.api import (
    AudioRequest,
    AudioResponse,
    AvatarRequest,
    BatchSubmitRequest,
    BatchSubmitResponse,
    CollectionCreateRequest,
    CollectionListResponse,
    CollectionResponse,
    CollectionUpdateRequest,
    CollectionVideoRequest,
    ColorCorrectionRequest,
    CompressRequest,
    ConvertRequest,
    CropRequest,
    DeleteResponse,
    EditResponse,
    ErrorResponse,
    ExportRequest,
    FavoriteResponse,
    FilterRequest,
    HistoryCreateRequest,
    HistoryItemResponse,
    HistoryListResponse,
    ImageRequest,
    ImageResponse,
    JobStatusResponse,
    JobSubmitRequest,
    JobSubmitResponse,
    MergeRequest,
    PoseVariationRequest,
    PromptSuggestionRequest,
    PromptSuggestionResponse,
    ProviderCheckResponse,
    ProviderListResponse,
    RotateRequest,
    SpeedRequest,
    TranscriptionRequest,
    TranscriptionResponse,
    TrimRequest,
    VoiceListResponse,
    VoicePreviewRequest,
)
from clipjobs.models.domain import StoredObject
from clipjobs.providers.registry import ProviderRegistry, build_registry
from clipjobs.services.availability import AvailabilityService
from clipjobs.services.edit_service import EditService
from clipjobs.services.image_service import ImageService
from clipjobs.services.job_service import JobService
from clipjobs.services.library_service import LibraryService
from clipjobs.services.text_service import TextService
from clipjobs.services.transcription_service import TranscriptionService
from clipjobs.storage.repository import KeyValueStore, MemoryStore, ObjectStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
log = logging.getLogger(__name__)

app = FastAPI(title="clipjobs")

_storage: S3StorageClient | None = None
_library_store: KeyValueStore | None = None


def _error_response(status_code: int, message: str, code: str, headers: Optional[dict[str, str]] = None) -> JSONResponse:
    body = ErrorResponse(error=message, code=code)
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


@app.exception_handler(ClipJobsError)
def handle_clipjobs_error(request: Request, exc: ClipJobsError) -> JSONResponse:
    headers = None
    if isinstance(exc, UpstreamRateLimited) and exc.retry_after:
        headers = {"Retry-After": str(int(exc.retry_after))}
    if exc.status_code >= 500:
        log.error("request failed", extra={"path": request.url.path, "code": exc.code, "error": exc.message})
    return _error_response(exc.status_code, exc.message, exc.code, headers)


@app.exception_handler(RequestValidationError)
def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "invalid request"
    return _error_response(status.HTTP_400_BAD_REQUEST, message, "validation_error")


@app.exception_handler(Exception)
def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled error", extra={"path": request.url.path})
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "internal error", "internal_error")


def get_transport() -> httpx.BaseTransport | None:
    return None


def get_storage(settings: Settings = Depends(get_settings)) -> S3StorageClient:
    global _storage
    if _storage is None:
        _storage = S3StorageClient.from_settings(settings)
    return _storage


def get_registry(
    settings: Settings = Depends(get_settings),
    credentials: EnvironmentCredentials = Depends(get_credentials),
    storage: S3StorageClient = Depends(get_storage),
    transport: httpx.BaseTransport | None = Depends(get_transport),
) -> ProviderRegistry:
    return build_registry(settings, credentials, storage, transport=transport)


def get_job_service(
    registry: ProviderRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
) -> JobService:
    return JobService(registry=registry, settings=settings)


def get_availability(
    registry: ProviderRegistry = Depends(get_registry),
    credentials: EnvironmentCredentials = Depends(get_credentials),
) -> AvailabilityService:
    return AvailabilityService(registry=registry, credentials=credentials)


def get_library_store(
    settings: Settings = Depends(get_settings),
    storage: S3StorageClient = Depends(get_storage),
) -> KeyValueStore:
    global _library_store
    if _library_store is None:
        if storage.is_configured():
            _library_store = ObjectStore(storage, prefix=settings.library_prefix)
        else:
            _library_store = MemoryStore()
    return _library_store


def get_library_service(
    store: KeyValueStore = Depends(get_library_store),
    settings: Settings = Depends(get_settings),
) -> LibraryService:
    return LibraryService(
        store=store,
        history_limit=settings.history_limit,
        collections_limit=settings.collections_limit,
    )


def get_edit_service(
    engine: FFmpegEngine = Depends(get_engine),
    storage: S3StorageClient = Depends(get_storage),
    settings: Settings = Depends(get_settings),
    transport: httpx.BaseTransport | None = Depends(get_transport),
) -> EditService:
    return EditService(engine=engine, storage=storage, settings=settings, transport=transport)


def get_text_service(
    storage: S3StorageClient = Depends(get_storage),
    settings: Settings = Depends(get_settings),
    credentials: EnvironmentCredentials = Depends(get_credentials),
    transport: httpx.BaseTransport | None = Depends(get_transport),
) -> TextService:
    return TextService(storage=storage, settings=settings, credentials=credentials, transport=transport)


def get_image_service(
    storage: S3StorageClient = Depends(get_storage),
    settings: Settings = Depends(get_settings),
    credentials: EnvironmentCredentials = Depends(get_credentials),
    transport: httpx.BaseTransport | None = Depends(get_transport),
) -> ImageService:
    return ImageService(storage=storage, settings=settings, credentials=credentials, transport=transport)


def get_transcription_service(
    engine: FFmpegEngine = Depends(get_engine),
    storage: S3StorageClient = Depends(get_storage),
    settings: Settings = Depends(get_settings),
    credentials: EnvironmentCredentials = Depends(get_credentials),
    transport: httpx.BaseTransport | None = Depends(get_transport),
) -> TranscriptionService:
    return TranscriptionService(
        engine=engine,
        storage=storage,
        settings=settings,
        credentials=credentials,
        transport=transport,
    )


@app.post("/jobs", response_model=JobSubmitResponse, status_code=status.HTTP_202_ACCEPTED)
def submit_job(
    payload: JobSubmitRequest,
    service: JobService = Depends(get_job_service),
    settings: Settings = Depends(get_settings),
) -> JobSubmitResponse:
    job_id = service.submit(payload.provider, payload.prompt, payload.media_ref, payload.options)
    return JobSubmitResponse(
        job_id=job_id,
        provider=payload.provider,
        poll_interval_seconds=settings.poll_interval_seconds,
        max_poll_attempts=settings.poll_max_attempts,
    )


@app.post("/jobs:batch", response_model=BatchSubmitResponse, status_code=status.HTTP_202_ACCEPTED)
def submit_batch(
    payload: BatchSubmitRequest,
    service: JobService = Depends(get_job_service),
    settings: Settings = Depends(get_settings),
) -> BatchSubmitResponse:
    results = service.submit_batch(payload.items)
    submitted = sum(1 for result in results if result.success)
    return BatchSubmitResponse(
        submitted=submitted,
        failed=len(results) - submitted,
        items=results,
        poll_interval_seconds=settings.poll_interval_seconds,
        max_poll_attempts=settings.poll_max_attempts,
    )


@app.get("/jobs/{job_id:path}/status", response_model=JobStatusResponse, response_model_exclude_none=True)
def job_status(
    job_id: str,
    provider: str = Query(default="replicate"),
    service: JobService = Depends(get_job_service),
) -> JobStatusResponse:
    job = service.poll(job_id, provider)
    return JobStatusResponse(**job.model_dump())


@app.get("/providers", response_model=ProviderListResponse)
def list_providers(
    type: str = Query(default="video"),
    availability: AvailabilityService = Depends(get_availability),
) -> ProviderListResponse:
    return ProviderListResponse(type=type, items=availability.catalog(type))


@app.get("/providers/check", response_model=ProviderCheckResponse)
def check_provider(
    provider: str = Query(...),
    type: str = Query(default="video"),
    availability: AvailabilityService = Depends(get_availability),
) -> ProviderCheckResponse:
    return ProviderCheckResponse(available=availability.available(provider, type), provider=provider, type=type)


@app.post("/prompts:suggest", response_model=PromptSuggestionResponse)
def suggest_prompt(
    payload: PromptSuggestionRequest,
    service: TextService = Depends(get_text_service),
) -> PromptSuggestionResponse:
    suggestion, model = service.suggest_prompt(payload)
    return PromptSuggestionResponse(suggestion=suggestion, model=model)


@app.post("/audio", response_model=AudioResponse, status_code=status.HTTP_201_CREATED)
def generate_audio(
    payload: AudioRequest,
    service: TextService = Depends(get_text_service),
) -> AudioResponse:
    stored = service.synthesize(payload)
    return AudioResponse(audio_url=stored.url, key=stored.key, provider="elevenlabs")


@app.post("/audio:preview", response_model=AudioResponse, status_code=status.HTTP_201_CREATED)
def preview_voice(
    payload: VoicePreviewRequest,
    service: TextService = Depends(get_text_service),
) -> AudioResponse:
    stored = service.preview_voice(payload)
    return AudioResponse(audio_url=stored.url, key=stored.key, provider="elevenlabs")


@app.post("/transcripts", response_model=TranscriptionResponse)
def transcribe(
    payload: TranscriptionRequest,
    service: TranscriptionService = Depends(get_transcription_service),
) -> TranscriptionResponse:
    transcript, model = service.transcribe(payload)
    return TranscriptionResponse(transcript=transcript, model=model)


def _image_response(result: tuple[StoredObject, str]) -> ImageResponse:
    stored, model = result
    return ImageResponse(image_url=stored.url, key=stored.key, model=model)


@app.post("/images", response_model=ImageResponse, status_code=status.HTTP_201_CREATED)
def generate_image(payload: ImageRequest, service: ImageService = Depends(get_image_service)) -> ImageResponse:
    return _image_response(service.generate_image(payload))


@app.post("/images:avatar", response_model=ImageResponse, status_code=status.HTTP_201_CREATED)
def generate_avatar(payload: AvatarRequest, service: ImageService = Depends(get_image_service)) -> ImageResponse:
    return _image_response(service.generate_avatar(payload))


@app.post("/images:pose", response_model=ImageResponse, status_code=status.HTTP_201_CREATED)
def generate_pose_variation(
    payload: PoseVariationRequest,
    service: ImageService = Depends(get_image_service),
) -> ImageResponse:
    return _image_response(service.generate_pose_variation(payload))


@app.get("/voices", response_model=VoiceListResponse)
def list_voices(service: TextService = Depends(get_text_service)) -> VoiceListResponse:
    return VoiceListResponse(voices=service.list_voices())


@app.get("/history", response_model=HistoryListResponse)
def list_history(
    favorites: bool = Query(default=False),
    library: LibraryService = Depends(get_library_service),
) -> HistoryListResponse:
    items = library.favorites() if favorites else library.list_history()
    return HistoryListResponse(items=items)


@app.post("/history", response_model=HistoryItemResponse, status_code=status.HTTP_201_CREATED)
def add_history(
    payload: HistoryCreateRequest,
    library: LibraryService = Depends(get_library_service),
) -> HistoryItemResponse:
    return HistoryItemResponse(item=library.add_history(payload))


@app.delete("/history", response_model=DeleteResponse)
def clear_history(library: LibraryService = Depends(get_library_service)) -> DeleteResponse:
    return DeleteResponse(deleted=library.clear_history() > 0)


@app.get("/history/{video_id}", response_model=HistoryItemResponse)
def get_history_item(
    video_id: str,
    library: LibraryService = Depends(get_library_service),
) -> HistoryItemResponse:
    return HistoryItemResponse(item=library.get_history(video_id))


@app.post("/history/{video_id}/favorite:toggle", response_model=FavoriteResponse)
def toggle_favorite(
    video_id: str,
    library: LibraryService = Depends(get_library_service),
) -> FavoriteResponse:
    item = library.toggle_favorite(video_id)
    return FavoriteResponse(id=item.id, is_favorite=item.is_favorite)


@app.delete("/history/{video_id}", response_model=DeleteResponse)
def delete_history_item(
    video_id: str,
    library: LibraryService = Depends(get_library_service),
) -> DeleteResponse:
    return DeleteResponse(deleted=library.delete_history(video_id))


@app.get("/collections", response_model=CollectionListResponse)
def list_collections(
    video_id: Optional[str] = Query(default=None),
    library: LibraryService = Depends(get_library_service),
) -> CollectionListResponse:
    items = library.collections_for_video(video_id) if video_id else library.list_collections()
    return CollectionListResponse(items=items)


@app.post("/collections", response_model=CollectionResponse, status_code=status.HTTP_201_CREATED)
def create_collection(
    payload: CollectionCreateRequest,
    library: LibraryService = Depends(get_library_service),
) -> CollectionResponse:
    return CollectionResponse(collection=library.create_collection(payload))


@app.get("/collections/{collection_id}", response_model=CollectionResponse)
def get_collection(
    collection_id: str,
    library: LibraryService = Depends(get_library_service),
) -> CollectionResponse:
    return CollectionResponse(collection=library.get_collection(collection_id))


@app.patch("/collections/{collection_id}", response_model=CollectionResponse)
def update_collection(
    collection_id: str,
    payload: CollectionUpdateRequest,
    library: LibraryService = Depends(get_library_service),
) -> CollectionResponse:
    return CollectionResponse(collection=library.update_collection(collection_id, payload))


@app.delete("/collections/{collection_id}", response_model=DeleteResponse)
def delete_collection(
    collection_id: str,
    library: LibraryService = Depends(get_library_service),
) -> DeleteResponse:
    return DeleteResponse(deleted=library.delete_collection(collection_id))


@app.post("/collections/{collection_id}/videos", response_model=CollectionResponse)
def add_collection_video(
    collection_id: str,
    payload: CollectionVideoRequest,
    library: LibraryService = Depends(get_library_service),
) -> CollectionResponse:
    return CollectionResponse(collection=library.add_video(collection_id, payload.video_id))


@app.delete("/collections/{collection_id}/videos/{video_id}", response_model=CollectionResponse)
def remove_collection_video(
    collection_id: str,
    video_id: str,
    library: LibraryService = Depends(get_library_service),
) -> CollectionResponse:
    return CollectionResponse(collection=library.remove_video(collection_id, video_id))


def _edit_response(stored: StoredObject) -> EditResponse:
    return EditResponse(video_url=stored.url, key=stored.key, content_type=stored.content_type)


@app.post("/edits:filter", response_model=EditResponse)
def apply_filter(payload: FilterRequest, service: EditService = Depends(get_edit_service)) -> EditResponse:
    return _edit_response(service.apply_filter(payload))


@app.post("/edits:color", response_model=EditResponse)
def color_correct(payload: ColorCorrectionRequest, service: EditService = Depends(get_edit_service)) -> EditResponse:
    return _edit_response(service.color_correct(payload))


@app.post("/edits:speed", response_model=EditResponse)
def change_speed(payload: SpeedRequest, service: EditService = Depends(get_edit_service)) -> EditResponse:
    return _edit_response(service.change_speed(payload))


@app.post("/edits:crop", response_model=EditResponse)
def crop_video(payload: CropRequest, service: EditService = Depends(get_edit_service)) -> EditResponse:
    return _edit_response(service.crop(payload))


@app.post("/edits:rotate", response_model=EditResponse)
def rotate_video(payload: RotateRequest, service: EditService = Depends(get_edit_service)) -> EditResponse:
    return _edit_response(service.rotate(payload))


@app.post("/edits:trim", response_model=EditResponse)
def trim_video(payload: TrimRequest, service: EditService = Depends(get_edit_service)) -> EditResponse:
    return _edit_response(service.trim(payload))


@app.post("/edits:merge", response_model=EditResponse)
def merge_videos(payload: MergeRequest, service: EditService = Depends(get_edit_service)) -> EditResponse:
    return _edit_response(service.merge(payload))


@app.post("/edits:compress", response_model=EditResponse)
def compress_video(payload: CompressRequest, service: EditService = Depends(get_edit_service)) -> EditResponse:
    return _edit_response(service.compress(payload))


@app.post("/edits:convert", response_model=EditResponse)
def convert_video(payload: ConvertRequest, service: EditService = Depends(get_edit_service)) -> EditResponse:
    return _edit_response(service.convert(payload))


@app.post("/edits:export", response_model=EditResponse)
def export_video(payload: ExportRequest, service: EditService = Depends(get_edit_service)) -> EditResponse:
    return _edit_response(service.export(payload))


@app.get("/media/{key:path}")
def get_media(key: str, storage: S3StorageClient = Depends(get_storage)) -> Response:
    content, content_type = storage.download(key)
    return Response(content=content, media_type=content_type)
