"""Attach resolved image URLs and bytes to a fetched node tree."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from common.logging import get_logger

from ..metrics import ExportMetrics
from ..models import BaseNode, ByteCacheEntry, ImageKey, ImagePaint, ImageResolutionMap
from .byte_store import ImageByteStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class _Fallback:
    """Whole-node raster covering a subtree."""

    key: ImageKey
    url: str


class TreeEnricher:
    """Resolve every IMAGE fill in a subtree, in place.

    Per fill, in order of preference:

    1. ``imageRef`` with an entry in the resolution map.
    2. A URL the fill already carries.
    3. The nearest node-level raster (the node's own, else an ancestor's);
       the fill is marked ``isNodeExport`` since it is an approximation.
    4. Nothing: the fill is left as is.

    Fills of a node and children of a node are processed concurrently; a node
    is done once all of them have settled.
    """

    def __init__(
        self,
        resolution: ImageResolutionMap,
        store: ImageByteStore,
        *,
        metrics: Optional[ExportMetrics] = None,
    ) -> None:
        self._resolution = resolution
        self._store = store
        self._metrics = metrics or ExportMetrics()

    async def enrich(self, node: BaseNode) -> BaseNode:
        await self._enrich_node(node, None)
        return node

    async def _enrich_node(self, node: BaseNode, inherited: Optional[_Fallback]) -> None:
        fallback = inherited
        node_key = ImageKey.node(node.id)
        node_url = self._resolution.url_for(node_key)
        if node_url:
            fallback = _Fallback(key=node_key, url=node_url)

        await asyncio.gather(
            *(self._enrich_paint(node, paint, fallback) for paint in node.image_paints()),
            *(self._enrich_node(child, fallback) for child in node.children),
        )

    async def _enrich_paint(
        self, node: BaseNode, paint: ImagePaint, fallback: Optional[_Fallback]
    ) -> None:
        if paint.image_ref:
            ref_key = ImageKey.ref(paint.image_ref)
            ref_url = self._resolution.url_for(ref_key)
            if ref_url:
                paint.image_url = ref_url
                self._apply(paint, await self._store.resolve(ref_key, ref_url))
                return

        if paint.image_url:
            url_key = ImageKey.url(paint.image_url)
            self._apply(paint, await self._store.resolve(url_key, paint.image_url))
            return

        if fallback is not None:
            paint.image_url = fallback.url
            paint.is_node_export = True
            self._apply(paint, await self._store.resolve(fallback.key, fallback.url))
            return

        self._metrics.record_unresolved_fill()
        logger.debug("Image fill left unresolved", node_id=node.id, image_ref=paint.image_ref)

    @staticmethod
    def _apply(paint: ImagePaint, entry: ByteCacheEntry) -> None:
        if entry.inline_data is not None:
            paint.image_data = entry.inline_data
        if entry.oversized:
            paint.oversized = True


__all__ = ["TreeEnricher"]
