"""Application-wide configuration management using Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration shared across services.

    Environment variables override every field (``FIGMA_ACCESS_TOKEN``,
    ``EXPORT_BATCH_SIZE`` and so on).
    """

    model_config = SettingsConfigDict(env_file=".env", env_nested_delimiter="__", extra="ignore")

    environment: str = "development"
    service_name: str = "figma-export"
    log_level: str = "INFO"

    # Design-file service
    figma_api_base: str = "https://api.figma.com/v1"
    figma_access_token: Optional[str] = None
    figma_token_cache_seconds: float = 300.0

    # System settings store (holds the access token); None disables it
    database_url: Optional[str] = None

    # HTTP
    http_timeout_seconds: float = 30.0

    # Node export pipeline
    export_inline_limit_bytes: int = 512 * 1024
    export_max_image_bytes: int = 4 * 1024 * 1024  # service-side ceiling, informational
    export_batch_size: int = 5
    export_raster_scale: float = 1.0
    export_file_timeout_seconds: float = 60.0

    # Demo mode (no credential configured)
    demo_image_url: Optional[str] = "https://via.placeholder.com/1920x1080/4F46E5/ffffff?text=Demo+Slide"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache configuration for the current process."""

    return Settings()  # type: ignore[arg-type]


settings = get_settings()
