"""Group export requests by file, run the per-file pipeline, assemble results."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Protocol, Sequence

import httpx

from common.config import settings
from common.logging import get_logger, log_context

from ..client import FigmaClient
from ..errors import UPSTREAM_ERRORS, FileAccessError
from ..metrics import ExportMetrics
from ..models import BaseNode, ExportedNode, ExportResult, ImageKey, SlideRef
from .byte_store import ImageByteStore
from .demo import build_demo_result
from .enricher import TreeEnricher
from .fetcher import NodeTreeFetcher
from .resolver import FileImageMapResolver

logger = get_logger(__name__)


class TokenSource(Protocol):
    def get_token(self) -> Optional[str]: ...


def group_by_file(slides: Sequence[SlideRef]) -> Dict[str, List[str]]:
    """file id -> requested node ids, both in first-seen order. Duplicates are kept."""
    groups: Dict[str, List[str]] = {}
    for slide in slides:
        groups.setdefault(slide.file_id, []).append(slide.node_id)
    return groups


class NodeExporter:
    """Export (file, node) pairs as enriched node trees.

    Files are processed concurrently and independently, each under its own
    deadline. A file that fails entirely is logged and skipped; its siblings
    still contribute. When no access token is configured the pipeline is
    bypassed and a demo payload is returned instead.
    """

    def __init__(
        self,
        token_provider: TokenSource,
        *,
        api_base: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        inline_limit_bytes: Optional[int] = None,
        batch_size: Optional[int] = None,
        raster_scale: Optional[float] = None,
        file_timeout: Optional[float] = None,
        http_timeout: Optional[float] = None,
        demo_image_url: Optional[str] = None,
    ) -> None:
        self._token_provider = token_provider
        self._api_base = api_base if api_base is not None else settings.figma_api_base
        self._transport = transport
        self._inline_limit_bytes = (
            inline_limit_bytes if inline_limit_bytes is not None else settings.export_inline_limit_bytes
        )
        self._batch_size = batch_size if batch_size is not None else settings.export_batch_size
        self._raster_scale = raster_scale if raster_scale is not None else settings.export_raster_scale
        self._file_timeout = file_timeout if file_timeout is not None else settings.export_file_timeout_seconds
        self._http_timeout = http_timeout if http_timeout is not None else settings.http_timeout_seconds
        self._demo_image_url = demo_image_url if demo_image_url is not None else settings.demo_image_url

    async def export(
        self, slides: Sequence[SlideRef], metrics: Optional[ExportMetrics] = None
    ) -> ExportResult:
        metrics = metrics or ExportMetrics()
        token = self._token_provider.get_token()
        if not token:
            logger.warning("No Figma access token configured, returning demo payload", slides=len(slides))
            return await build_demo_result(
                slides,
                image_url=self._demo_image_url,
                transport=self._transport,
                timeout=self._http_timeout,
            )

        groups = group_by_file(slides)
        logger.info("Exporting nodes", files=len(groups), slides=len(slides))

        async with FigmaClient(
            token, base_url=self._api_base, timeout=self._http_timeout, transport=self._transport
        ) as client:
            per_file = await asyncio.gather(
                *(
                    self._export_file_guarded(client, file_id, node_ids, metrics)
                    for file_id, node_ids in groups.items()
                )
            )

        nodes = [node for file_nodes in per_file for node in file_nodes]
        logger.info(
            "Node export finished",
            requested=len(slides),
            exported=len(nodes),
            metrics=metrics.snapshot(),
        )
        return ExportResult(nodes=nodes)

    async def _export_file_guarded(
        self,
        client: FigmaClient,
        file_id: str,
        node_ids: List[str],
        metrics: ExportMetrics,
    ) -> List[ExportedNode]:
        try:
            with log_context(file_id=file_id):
                return await asyncio.wait_for(
                    self.export_file(client, file_id, node_ids, metrics), timeout=self._file_timeout
                )
        except FileAccessError as exc:
            logger.error(
                "Figma file not accessible, skipping",
                file_id=file_id,
                status=exc.status_code,
                error=str(exc),
            )
        except UPSTREAM_ERRORS as exc:
            logger.error("Figma file export failed, skipping", file_id=file_id, error=str(exc))
        except asyncio.TimeoutError:
            logger.error(
                "Figma file export timed out, skipping",
                file_id=file_id,
                timeout=self._file_timeout,
            )
            metrics.record_file("timeout")
            return []
        metrics.record_file("failed")
        return []

    async def export_file(
        self,
        client: FigmaClient,
        file_id: str,
        node_ids: List[str],
        metrics: ExportMetrics,
    ) -> List[ExportedNode]:
        """Resolve, fetch and enrich one file's nodes, in request order."""
        fetcher = NodeTreeFetcher(client)
        resolver = FileImageMapResolver(
            client,
            fetcher,
            batch_size=self._batch_size,
            raster_scale=self._raster_scale,
            metrics=metrics,
        )
        resolution = await resolver.resolve(file_id, node_ids)
        documents = await fetcher.fetch(file_id, node_ids)

        store = ImageByteStore(client, inline_limit_bytes=self._inline_limit_bytes, metrics=metrics)
        enricher = TreeEnricher(resolution, store, metrics=metrics)
        try:
            await asyncio.gather(
                *(enricher.enrich(document) for document in documents.values() if document is not None)
            )
        finally:
            await store.aclose()

        exported: List[ExportedNode] = []
        emitted: set = set()
        for node_id in node_ids:
            document: Optional[BaseNode] = documents.get(node_id)
            if document is None:
                logger.warning("Requested node not found", file_id=file_id, node_id=node_id)
                metrics.record_node(found=False)
                continue
            if node_id in emitted:
                document = document.model_copy(deep=True)
            emitted.add(node_id)
            metrics.record_node(found=True)
            exported.append(
                ExportedNode(
                    file_id=file_id,
                    node_id=node_id,
                    node=document,
                    image_url=resolution.url_for(ImageKey.node(node_id)),
                )
            )

        metrics.record_file("ok")
        logger.info(
            "Figma file exported",
            file_id=file_id,
            requested=len(node_ids),
            exported=len(exported),
            images_cached=len(store),
        )
        return exported


__all__ = ["NodeExporter", "TokenSource", "group_by_file"]
