from __future__ import annotations

import logging
from typing import List, Optional, Sequence
from uuid import uuid4

import httpx

from clipjobs.clients.s3_storage import S3StorageClient
from clipjobs.config import Settings
from clipjobs.media import filters
from clipjobs.media.engine import FFmpegEngine
from clipjobs.media.sources import fetch_media
from clipjobs.models.api import (
    ColorCorrectionRequest,
    CompressRequest,
    ConvertRequest,
    CropRequest,
    ExportRequest,
    FilterRequest,
    MergeRequest,
    RotateRequest,
    SpeedRequest,
    TrimRequest,
)
from clipjobs.models.domain import StoredObject


class EditService:
    """Single-shot edits: fetch the source clip, run one transform, store the result."""

    def __init__(
        self,
        engine: FFmpegEngine,
        storage: S3StorageClient,
        settings: Settings,
        transport: httpx.BaseTransport | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.engine = engine
        self.storage = storage
        self.settings = settings
        self.transport = transport
        self.log = logger or logging.getLogger(__name__)

    def apply_filter(self, payload: FilterRequest) -> StoredObject:
        graph = filters.preset_filter(payload.filter, payload.intensity)
        return self._transform([payload.video_url], filters.video_filter_args(graph), "filter")

    def color_correct(self, payload: ColorCorrectionRequest) -> StoredObject:
        graph = filters.color_correction_filter(payload.options.model_dump())
        return self._transform([payload.video_url], filters.video_filter_args(graph), "color")

    def change_speed(self, payload: SpeedRequest) -> StoredObject:
        return self._transform([payload.video_url], filters.speed_args(payload.speed), "speed")

    def crop(self, payload: CropRequest) -> StoredObject:
        args = filters.crop_args(payload.width, payload.height, payload.x, payload.y)
        return self._transform([payload.video_url], args, "crop")

    def rotate(self, payload: RotateRequest) -> StoredObject:
        return self._transform([payload.video_url], filters.rotate_args(payload.degrees), "rotate")

    def trim(self, payload: TrimRequest) -> StoredObject:
        return self._transform([payload.video_url], filters.trim_args(payload.start, payload.end), "trim")

    def merge(self, payload: MergeRequest) -> StoredObject:
        args = filters.concat_args(len(payload.video_urls), with_audio=payload.with_audio)
        return self._transform(payload.video_urls, args, "merge")

    def compress(self, payload: CompressRequest) -> StoredObject:
        args = filters.compress_args(payload.quality, payload.target_size_mb)
        return self._transform([payload.video_url], args, "compress")

    def convert(self, payload: ConvertRequest) -> StoredObject:
        args = filters.convert_args(payload.format, payload.quality)
        return self._transform([payload.video_url], args, "convert", output_format=payload.format)

    def export(self, payload: ExportRequest) -> StoredObject:
        args = filters.export_args(
            payload.format,
            payload.quality,
            frame_rate=payload.frame_rate,
            width=payload.width,
            height=payload.height,
        )
        return self._transform([payload.video_url], args, "export", output_format=payload.format)

    def _transform(
        self,
        sources: Sequence[str],
        args: List[str],
        operation: str,
        output_format: str = "mp4",
    ) -> StoredObject:
        inputs = [self._fetch(url) for url in sources]
        output = self.engine.run(inputs, args, output_suffix=f".{output_format}")
        content_type = filters.FORMAT_CONTENT_TYPES[output_format]
        key = f"{self.settings.media_prefix}/edits/{operation}/{uuid4().hex}.{output_format}"
        url = self.storage.upload_bytes(key, output, content_type=content_type)
        self.log.info(
            "edit completed",
            extra={"operation": operation, "key": key, "content_length": len(output)},
        )
        return StoredObject(key=key, url=url, size=len(output), content_type=content_type)

    def _fetch(self, url: str) -> bytes:
        return fetch_media(
            url,
            self.storage,
            timeout=self.settings.http_timeout,
            transport=self.transport,
            logger=self.log,
        )
