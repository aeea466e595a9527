from __future__ import annotations

import logging
from typing import List, Optional, Sequence
from uuid import uuid4

import httpx

from clipjobs.clients.huggingface import GeneratedImage, HuggingFaceImageClient
from clipjobs.clients.s3_storage import S3StorageClient
from clipjobs.config import Settings
from clipjobs.credentials import EnvironmentCredentials
from clipjobs.models.api import AvatarRequest, ImageRequest, PoseVariationRequest
from clipjobs.models.domain import StoredObject

HUGGINGFACE_KEY_ENV = "HUGGINGFACE_API_KEY"

ASPECT_SIZES = {
    "1:1": (1024, 1024),
    "4:3": (1024, 768),
    "16:9": (1920, 1080),
    "9:16": (1080, 1920),
    "21:9": (2560, 1080),
}
DEFAULT_SIZE = (1024, 1024)

REFERENCE_HINT = "same character as reference avatar, consistent appearance, same style"
POSE_HINT = (
    "same character, same person, same face, same body, same clothing, same style, "
    "{consistency} appearance, only the pose and camera angle are different, "
    "high quality, detailed, professional photography"
)
IDENTITY_HINT = (
    "maintaining character identity, consistent facial features, "
    "consistent body proportions, consistent clothing style"
)

_EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp", "image/gif": "gif"}


def compose_prompt(
    prompt: str,
    style: Optional[str] = None,
    additional: Optional[str] = None,
    with_reference: bool = False,
) -> str:
    parts = [prompt.strip()]
    if with_reference:
        parts.append(REFERENCE_HINT)
    if style:
        parts.append(f"{style} style")
    if additional:
        parts.append(additional.strip())
    return ", ".join(part for part in parts if part)


def image_size(aspect_ratio: Optional[str], width: Optional[int] = None, height: Optional[int] = None) -> tuple[int, int]:
    """Aspect ratio wins over explicit dimensions; both absent gives 1024x1024."""
    if aspect_ratio:
        return ASPECT_SIZES[aspect_ratio]
    if width and height:
        return width, height
    return DEFAULT_SIZE


def pose_prompt(prompt: str, pose: Optional[str], camera_angle: Optional[str], strength: float) -> str:
    parts = [prompt.strip()]
    if pose:
        parts.append(pose.strip())
    if camera_angle:
        parts.append(f"{camera_angle.strip()} camera angle")
    if strength < 0.5:
        consistency = "very similar"
    elif strength < 0.8:
        consistency = "similar"
    else:
        consistency = "somewhat similar"
    parts.append(POSE_HINT.format(consistency=consistency))
    return ", ".join(parts)


class ImageService:
    """Still images for presenters: general images, avatars and pose variations."""

    def __init__(
        self,
        storage: S3StorageClient,
        settings: Settings,
        credentials: EnvironmentCredentials,
        transport: httpx.BaseTransport | None = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.storage = storage
        self.settings = settings
        self.credentials = credentials
        self.transport = transport
        self.log = logger or logging.getLogger(__name__)

    def generate_image(self, payload: ImageRequest) -> tuple[StoredObject, str]:
        prompt = compose_prompt(
            payload.prompt,
            payload.style,
            payload.additional_prompt,
            with_reference=bool(payload.reference_image_url),
        )
        size = image_size(payload.aspect_ratio, payload.width, payload.height)
        return self._generate(
            "image",
            prompt,
            self._models(payload.model, self.settings.image_models),
            size,
            payload.reference_image_url,
        )

    def generate_avatar(self, payload: AvatarRequest) -> tuple[StoredObject, str]:
        prompt = compose_prompt(
            payload.prompt,
            payload.style,
            payload.additional_prompt,
            with_reference=bool(payload.reference_image_url),
        )
        size = image_size(payload.aspect_ratio, payload.width, payload.height)
        return self._generate(
            "avatar",
            prompt,
            self._models(payload.model, self.settings.avatar_models),
            size,
            payload.reference_image_url,
        )

    def generate_pose_variation(self, payload: PoseVariationRequest) -> tuple[StoredObject, str]:
        base = pose_prompt(payload.prompt, payload.pose, payload.camera_angle, payload.strength)
        prompt = compose_prompt(base, additional=IDENTITY_HINT, with_reference=True)
        return self._generate(
            "pose",
            prompt,
            self._models(payload.model, self.settings.image_models),
            image_size(payload.aspect_ratio),
            payload.source_image_url,
        )

    def _models(self, requested: Optional[str], defaults: Sequence[str]) -> List[str]:
        return [requested, *defaults] if requested else list(defaults)

    def _generate(
        self,
        kind: str,
        prompt: str,
        models: Sequence[str],
        size: tuple[int, int],
        reference_url: Optional[str],
    ) -> tuple[StoredObject, str]:
        client = HuggingFaceImageClient(
            api_key=self.credentials.get(HUGGINGFACE_KEY_ENV),
            base_url=self.settings.huggingface_base_url,
            timeout=self.settings.http_timeout,
            transport=self.transport,
            logger=self.log,
        )
        width, height = size
        image = client.text_to_image(prompt, models, width=width, height=height, reference_url=reference_url)
        return self._store(kind, image), image.model

    def _store(self, kind: str, image: GeneratedImage) -> StoredObject:
        extension = _EXTENSIONS.get(image.content_type, "png")
        key = f"{self.settings.media_prefix}/images/{kind}/{uuid4().hex}.{extension}"
        url = self.storage.upload_bytes(key, image.content, content_type=image.content_type)
        self.log.info(
            "image stored",
            extra={"kind": kind, "model": image.model, "key": key, "content_length": len(image.content)},
        )
        return StoredObject(key=key, url=url, size=len(image.content), content_type=image.content_type)
