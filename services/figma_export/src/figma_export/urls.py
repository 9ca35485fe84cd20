"""Figma URL parsing helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote

_FILE_URL = re.compile(
    r"https://(?:www\.)?figma\.com/(?:file|design)/(?P<file_id>[a-zA-Z0-9]+)(?:/[^?#]*)?(?:\?(?P<query>[^#]*))?"
)
_NODE_ID_PARAM = re.compile(r"(?:^|&)node-id=(?P<node_id>[^&]+)")


@dataclass(frozen=True)
class FigmaUrl:
    file_id: str
    node_id: Optional[str] = None


def normalize_node_id(node_id: str) -> str:
    """Convert URL-form node ids (``1-23`` or ``1%3A23``) to API form (``1:23``)."""
    return unquote(node_id).replace("-", ":")


def parse_figma_url(url: str) -> Optional[FigmaUrl]:
    """Extract file id and optional node id from a figma.com file/design URL."""
    match = _FILE_URL.match(url.strip())
    if not match:
        return None

    node_id = None
    query = match.group("query")
    if query:
        node_match = _NODE_ID_PARAM.search(query)
        if node_match:
            node_id = normalize_node_id(node_match.group("node_id"))
    return FigmaUrl(file_id=match.group("file_id"), node_id=node_id)


__all__ = ["FigmaUrl", "normalize_node_id", "parse_figma_url"]
