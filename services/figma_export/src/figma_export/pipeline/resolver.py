"""Tiered image-map resolution for one file.

The service has no single reliable image lookup, so resolution cascades:

* bulk fills: one request for every image-fill URL in the file, keyed by
  imageRef. Tried first; an empty answer still counts as success.
* node raster: only when the bulk lookup errors. Rasterizes the requested
  top-level nodes so every image in them has at least an approximation.
* descendant raster: alongside the node raster. Scans the node documents
  for descendants carrying image fills, rasterizes them in batches, and
  records each URL under the node id and under every imageRef that node
  carries.

Later tiers overwrite earlier ones on merge.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional, Sequence

from common.logging import get_logger

from ..client import FigmaClient
from ..errors import UPSTREAM_ERRORS
from ..metrics import ExportMetrics
from ..models import BaseNode, ImageKey, ImageResolutionMap, ResolutionTier
from .fetcher import NodeTreeFetcher

logger = get_logger(__name__)

BATCH_SIZE = 5
RASTER_SCALE = 1.0
RASTER_FORMAT = "png"


def partition_batches(ids: Sequence[str], size: int = BATCH_SIZE) -> List[List[str]]:
    """Split ids into consecutive batches of at most ``size``."""
    if size < 1:
        raise ValueError("batch size must be positive")
    return [list(ids[start:start + size]) for start in range(0, len(ids), size)]


def discover_image_nodes(roots: Iterable[Optional[BaseNode]]) -> Dict[str, List[str]]:
    """Map node id -> imageRefs for every node carrying IMAGE fills with a ref."""
    discovered: Dict[str, List[str]] = {}
    for root in roots:
        if root is None:
            continue
        for node in root.walk():
            refs = [paint.image_ref for paint in node.image_paints() if paint.image_ref]
            if refs:
                discovered.setdefault(node.id, [])
                discovered[node.id].extend(ref for ref in refs if ref not in discovered[node.id])
    return discovered


class FileImageMapResolver:
    """Build the ImageKey -> URL map a file's requested nodes need."""

    def __init__(
        self,
        client: FigmaClient,
        fetcher: NodeTreeFetcher,
        *,
        batch_size: int = BATCH_SIZE,
        raster_scale: float = RASTER_SCALE,
        metrics: Optional[ExportMetrics] = None,
    ) -> None:
        self._client = client
        self._fetcher = fetcher
        self._batch_size = batch_size
        self._raster_scale = raster_scale
        self._metrics = metrics or ExportMetrics()

    async def resolve(self, file_id: str, node_ids: Sequence[str]) -> ImageResolutionMap:
        resolution = ImageResolutionMap()
        try:
            resolution.merge(await self._bulk_fills(file_id))
        except UPSTREAM_ERRORS as exc:
            self._metrics.record_tier(ResolutionTier.BULK_FILLS, success=False)
            logger.warning(
                "Bulk image-fill lookup failed, falling back to raster export",
                file_id=file_id,
                error=str(exc),
            )
        else:
            self._metrics.record_tier(ResolutionTier.BULK_FILLS, success=True)
            return resolution

        resolution.merge(await self._node_rasters(file_id, node_ids))
        resolution.merge(await self._descendant_rasters(file_id, node_ids))
        logger.info(
            "Image map resolved via raster fallback",
            file_id=file_id,
            entries=len(resolution),
        )
        return resolution

    async def _bulk_fills(self, file_id: str) -> ImageResolutionMap:
        images = await self._client.get_image_fills(file_id)
        resolution = ImageResolutionMap()
        for image_ref, url in images.items():
            resolution.record(ImageKey.ref(image_ref), url, ResolutionTier.BULK_FILLS)
        logger.info("Bulk image fills resolved", file_id=file_id, images=len(resolution))
        return resolution

    async def _node_rasters(self, file_id: str, node_ids: Sequence[str]) -> ImageResolutionMap:
        resolution = ImageResolutionMap()
        try:
            images = await self._client.get_images(
                file_id, list(dict.fromkeys(node_ids)), format=RASTER_FORMAT, scale=self._raster_scale
            )
        except UPSTREAM_ERRORS as exc:
            self._metrics.record_tier(ResolutionTier.NODE_RASTER, success=False)
            logger.warning("Node raster export failed", file_id=file_id, error=str(exc))
            return resolution

        self._metrics.record_tier(ResolutionTier.NODE_RASTER, success=True)
        for node_id, url in images.items():
            resolution.record(ImageKey.node(node_id), url, ResolutionTier.NODE_RASTER)
        return resolution

    async def _descendant_rasters(self, file_id: str, node_ids: Sequence[str]) -> ImageResolutionMap:
        resolution = ImageResolutionMap()
        try:
            documents = await self._fetcher.fetch(file_id, node_ids)
        except UPSTREAM_ERRORS as exc:
            self._metrics.record_tier(ResolutionTier.DESCENDANT_RASTER, success=False)
            logger.warning("Descendant discovery failed", file_id=file_id, error=str(exc))
            return resolution

        discovered = discover_image_nodes(documents.values())
        if not discovered:
            self._metrics.record_tier(ResolutionTier.DESCENDANT_RASTER, success=True)
            return resolution

        batches = partition_batches(list(discovered), self._batch_size)
        logger.info(
            "Exporting image-bearing descendants",
            file_id=file_id,
            nodes=len(discovered),
            batches=len(batches),
        )
        results = await asyncio.gather(
            *(
                self._export_batch(file_id, index, len(batches), batch, discovered)
                for index, batch in enumerate(batches)
            )
        )
        exported = [batch_resolution for batch_resolution in results if batch_resolution is not None]
        for batch_resolution in exported:
            resolution.merge(batch_resolution)

        # The tier succeeds when any batch answered, even with no URLs
        self._metrics.record_tier(ResolutionTier.DESCENDANT_RASTER, success=bool(exported))
        return resolution

    async def _export_batch(
        self,
        file_id: str,
        index: int,
        total: int,
        batch: List[str],
        discovered: Dict[str, List[str]],
    ) -> Optional[ImageResolutionMap]:
        """Export one batch; ``None`` when the batch request failed."""
        try:
            images = await self._client.get_images(
                file_id, batch, format=RASTER_FORMAT, scale=self._raster_scale
            )
        except UPSTREAM_ERRORS as exc:
            self._metrics.record_batch_failure()
            logger.warning(
                "Raster export batch failed",
                file_id=file_id,
                batch=index + 1,
                batches=total,
                node_ids=batch,
                error=str(exc),
            )
            return None

        resolution = ImageResolutionMap()
        for node_id, url in images.items():
            resolution.record(ImageKey.node(node_id), url, ResolutionTier.DESCENDANT_RASTER)
            for image_ref in discovered.get(node_id, []):
                resolution.record(ImageKey.ref(image_ref), url, ResolutionTier.DESCENDANT_RASTER)
        return resolution


__all__ = [
    "BATCH_SIZE",
    "FileImageMapResolver",
    "discover_image_nodes",
    "partition_batches",
]
