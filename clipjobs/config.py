from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CLIPJOBS_", env_file=".env", env_file_encoding="utf-8")

    app_name: str = "clipjobs"
    host: str = "0.0.0.0"
    port: int = 8100

    http_timeout: float = 30.0

    # Polling contract advertised to callers
    poll_interval_seconds: float = 3.0
    poll_max_attempts: int = 200

    # Generation providers
    replicate_base_url: str = "https://api.replicate.com/v1"
    replicate_model: str = "google/veo-3.1"
    fal_queue_url: str = "https://queue.fal.run"
    fal_model: str = "fal-ai/kling-video/v2.5-turbo/pro/text-to-video"
    huggingface_base_url: str = "https://router.huggingface.co/hf-inference/models"
    default_duration: int = 8
    default_resolution: str = "1080p"

    # Image models are tried in order until one is not 404/410
    image_models: list[str] = [
        "runwayml/stable-diffusion-v1-5",
        "CompVis/stable-diffusion-v1-4",
        "stabilityai/stable-diffusion-xl-base-1.0",
        "stabilityai/sdxl-turbo",
        "SG161222/Realistic_Vision_V5.1_noVAE",
        "black-forest-labs/FLUX.1-schnell",
        "black-forest-labs/FLUX.1-dev",
    ]
    avatar_models: list[str] = [
        "black-forest-labs/FLUX.1-dev",
        "black-forest-labs/FLUX.1-schnell",
        "stabilityai/stable-diffusion-xl-base-1.0",
        "stabilityai/sdxl-turbo",
        "runwayml/stable-diffusion-v1-5",
        "CompVis/stable-diffusion-v1-4",
    ]
    whisper_model: str = "openai/whisper-large-v3"

    batch_max_items: int = 10

    # Text helpers
    gemini_model: str = "models/gemini-pro"
    elevenlabs_base_url: str = "https://api.elevenlabs.io"
    elevenlabs_voice_id: str = "21m00Tcm4TlvDq8ikWAM"
    elevenlabs_model_id: str = "eleven_multilingual_v2"

    # Object storage configuration
    s3_endpoint_url: str = ""
    s3_region: str | None = None
    s3_public_url: str = ""
    s3_bucket: str = "clipjobs"
    s3_access_key: str = ""
    s3_secret_key: str = ""
    s3_addressing_style: str = "virtual"
    media_prefix: str = "media"
    library_prefix: str = "library"

    history_limit: int = 50
    collections_limit: int = 20

    ffmpeg_binary: str = "ffmpeg"
    ffmpeg_timeout: float = 300.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
