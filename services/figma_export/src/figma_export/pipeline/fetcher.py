"""Fetch and decode node documents for one file."""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple

from pydantic import ValidationError

from common.logging import get_logger

from ..client import FigmaClient
from ..models import BaseNode, parse_node
from ..urls import normalize_node_id

logger = get_logger(__name__)

NodeDocuments = Dict[str, Optional[BaseNode]]


class NodeTreeFetcher:
    """Retrieve full node subtrees (geometry, paints, text, vector paths).

    Results are kept for the fetcher's lifetime, so the image resolver's
    descendant scan and the export itself share a single request per file.
    Ids missing from the response map to ``None``; only a failure of the
    whole request raises.
    """

    def __init__(self, client: FigmaClient) -> None:
        self._client = client
        self._documents: Dict[Tuple[str, Tuple[str, ...]], NodeDocuments] = {}

    async def fetch(self, file_id: str, node_ids: Sequence[str]) -> NodeDocuments:
        unique_ids = tuple(dict.fromkeys(node_ids))
        cache_key = (file_id, unique_ids)
        cached = self._documents.get(cache_key)
        if cached is not None:
            return cached

        payload = await self._client.get_nodes(file_id, unique_ids)
        documents: NodeDocuments = {}
        for node_id in unique_ids:
            wrapper = payload.get(node_id) or payload.get(normalize_node_id(node_id))
            documents[node_id] = self._decode(file_id, node_id, wrapper)

        self._documents[cache_key] = documents
        logger.info(
            "Fetched node documents",
            file_id=file_id,
            requested=len(unique_ids),
            found=sum(1 for doc in documents.values() if doc is not None),
        )
        return documents

    def _decode(self, file_id: str, node_id: str, wrapper: Any) -> Optional[BaseNode]:
        document = wrapper.get("document") if isinstance(wrapper, dict) else None
        if not document:
            return None
        try:
            return parse_node(document)
        except ValidationError as exc:
            logger.warning(
                "Node document could not be decoded",
                file_id=file_id,
                node_id=node_id,
                errors=exc.error_count(),
            )
            return None


__all__ = ["NodeDocuments", "NodeTreeFetcher"]
