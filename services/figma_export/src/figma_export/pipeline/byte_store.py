"""Image byte download, size gating and per-file memoization."""

from __future__ import annotations

import asyncio
import base64
from typing import Dict, Optional

from common.logging import get_logger

from ..client import DownloadedImage, FigmaClient
from ..errors import UPSTREAM_ERRORS
from ..metrics import ExportMetrics
from ..models import ByteCacheEntry, ImageKey

logger = get_logger(__name__)

INLINE_LIMIT_BYTES = 512 * 1024
MAX_IMAGE_BYTES = 4 * 1024 * 1024  # service-side raster export ceiling, not enforced here
DEFAULT_CONTENT_TYPE = "image/png"


def encode_data_uri(content: bytes, content_type: Optional[str] = None) -> str:
    """Render bytes as a ``data:<type>;base64,...`` URI."""
    media_type = (content_type or "").split(";", 1)[0].strip() or DEFAULT_CONTENT_TYPE
    return f"data:{media_type};base64,{base64.b64encode(content).decode('ascii')}"


class ImageByteStore:
    """Fetch image bytes once per ImageKey for one file's export.

    ``resolve`` is memoized by key: a repeated key returns the first result
    without a network call even when the URL differs (a freshly signed URL
    for the same asset). Concurrent callers for the same key share one
    in-flight download. Images at or above ``inline_limit_bytes`` are flagged
    oversized instead of being base64-encoded.
    """

    def __init__(
        self,
        client: FigmaClient,
        *,
        inline_limit_bytes: int = INLINE_LIMIT_BYTES,
        metrics: Optional[ExportMetrics] = None,
    ) -> None:
        self._client = client
        self._inline_limit_bytes = inline_limit_bytes
        self._metrics = metrics or ExportMetrics()
        self._entries: Dict[ImageKey, "asyncio.Task[ByteCacheEntry]"] = {}

    async def resolve(self, key: ImageKey, url: str) -> ByteCacheEntry:
        pending = self._entries.get(key)
        if pending is not None:
            self._metrics.record_cache(hit=True)
            return await asyncio.shield(pending)

        self._metrics.record_cache(hit=False)
        task = asyncio.ensure_future(self._load(key, url))
        self._entries[key] = task
        return await task

    def cached(self, key: ImageKey) -> Optional[ByteCacheEntry]:
        task = self._entries.get(key)
        if task is None or not task.done() or task.cancelled():
            return None
        return task.result()

    def encode(self, image: DownloadedImage) -> ByteCacheEntry:
        if image.size >= self._inline_limit_bytes:
            return ByteCacheEntry(inline_data=None, oversized=True)
        return ByteCacheEntry(inline_data=encode_data_uri(image.content, image.content_type))

    async def _load(self, key: ImageKey, url: str) -> ByteCacheEntry:
        try:
            image = await self._client.download(url)
        except UPSTREAM_ERRORS as exc:
            logger.warning("Image download failed", image_key=str(key), url=url, error=str(exc))
            self._metrics.record_download_failure()
            return ByteCacheEntry()

        entry = self.encode(image)
        self._metrics.record_download(image.size, oversized=entry.oversized)
        if entry.oversized:
            logger.info(
                "Image exceeds inline limit, leaving it to be fetched by URL",
                image_key=str(key),
                size=image.size,
                limit=self._inline_limit_bytes,
            )
        return entry

    async def aclose(self) -> None:
        """Cancel downloads still in flight."""
        pending = [task for task in self._entries.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def __len__(self) -> int:
        return len(self._entries)


__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "INLINE_LIMIT_BYTES",
    "MAX_IMAGE_BYTES",
    "ImageByteStore",
    "encode_data_uri",
]
