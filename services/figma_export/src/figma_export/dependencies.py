"""Dependency wiring for the export service."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

import httpx

from common.config import settings

from .pipeline.exporter import NodeExporter
from .storage import SystemSettingsStorage
from .tokens import FigmaTokenProvider


@lru_cache(maxsize=1)
def get_settings_storage() -> Optional[SystemSettingsStorage]:
    if settings.database_url:
        return SystemSettingsStorage(settings.database_url)
    return None


@lru_cache(maxsize=1)
def get_token_provider() -> FigmaTokenProvider:
    return FigmaTokenProvider(
        storage=get_settings_storage(),
        env_token=settings.figma_access_token,
        cache_seconds=settings.figma_token_cache_seconds,
    )


def get_transport() -> Optional[httpx.AsyncBaseTransport]:
    """HTTP transport for outbound calls; ``None`` uses the network."""
    return None


@lru_cache(maxsize=1)
def get_exporter() -> NodeExporter:
    return NodeExporter(
        get_token_provider(),
        api_base=settings.figma_api_base,
        inline_limit_bytes=settings.export_inline_limit_bytes,
        batch_size=settings.export_batch_size,
        raster_scale=settings.export_raster_scale,
        file_timeout=settings.export_file_timeout_seconds,
        http_timeout=settings.http_timeout_seconds,
        demo_image_url=settings.demo_image_url,
    )


__all__ = ["get_exporter", "get_settings_storage", "get_token_provider", "get_transport"]
