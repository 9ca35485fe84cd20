"""Placeholder export payload served when no access token is configured."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import httpx

from common.http import http_client
from common.logging import get_logger

from ..models import ExportedNode, ExportResult, SlideRef, parse_node
from .byte_store import encode_data_uri

logger = get_logger(__name__)

DEMO_WARNING = (
    "Running in demo mode. Configure a Figma access token (FIGMA_ACCESS_TOKEN or "
    "PUT /api/figma/token) for real exports."
)
SLIDE_WIDTH = 1920
SLIDE_HEIGHT = 1080
_BACKGROUND = {"type": "SOLID", "color": {"r": 0.95, "g": 0.95, "b": 0.95}}
_MISSING_IMAGE = {"type": "SOLID", "color": {"r": 0.9, "g": 0.9, "b": 0.9}}


async def fetch_demo_image(
    url: Optional[str],
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = 30.0,
) -> Optional[str]:
    """Download the demo background as a data URI; ``None`` if unavailable."""
    if not url:
        return None
    try:
        async with http_client(timeout=timeout, transport=transport) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Demo image download failed", url=url, error=str(exc))
        return None
    return encode_data_uri(response.content, response.headers.get("content-type"))


def demo_node(slide: SlideRef, index: int, image_data: Optional[str]) -> Dict[str, Any]:
    background_fill = (
        {"type": "IMAGE", "imageData": image_data, "scaleMode": "FILL"} if image_data else _MISSING_IMAGE
    )
    return {
        "id": slide.node_id,
        "name": f"Demo Slide {index + 1}",
        "type": "FRAME",
        "x": 0,
        "y": 0,
        "width": SLIDE_WIDTH,
        "height": SLIDE_HEIGHT,
        "fills": [_BACKGROUND],
        "children": [
            {
                "id": f"{slide.node_id}-bg",
                "name": "Background",
                "type": "RECTANGLE",
                "x": 0,
                "y": 0,
                "width": SLIDE_WIDTH,
                "height": SLIDE_HEIGHT,
                "fills": [background_fill],
            },
            {
                "id": f"{slide.node_id}-text",
                "name": "Title",
                "type": "TEXT",
                "characters": f"Slide {index + 1} (demo mode)",
                "style": {"fontSize": 48, "fontName": {"family": "Inter", "style": "Bold"}},
                "x": 100,
                "y": 100,
                "width": 800,
                "height": 100,
            },
        ],
    }


async def build_demo_result(
    slides: Sequence[SlideRef],
    *,
    image_url: Optional[str],
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = 30.0,
) -> ExportResult:
    image_data = await fetch_demo_image(image_url, transport=transport, timeout=timeout)
    nodes: List[ExportedNode] = [
        ExportedNode(
            file_id=slide.file_id,
            node_id=slide.node_id,
            node=parse_node(demo_node(slide, index, image_data)),
            image_url=None,
            image_data=image_data,
        )
        for index, slide in enumerate(slides)
    ]
    return ExportResult(nodes=nodes, warning=DEMO_WARNING)


__all__ = ["DEMO_WARNING", "build_demo_result", "demo_node", "fetch_demo_image"]
