"""Raster preview and image-to-base64 endpoints."""

from __future__ import annotations

from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import AliasChoices, BaseModel, Field

from common.logging import get_logger

from ..client import FigmaClient
from ..dependencies import get_token_provider, get_transport
from ..errors import UPSTREAM_ERRORS, FigmaAPIError
from ..pipeline.byte_store import encode_data_uri
from ..tokens import FigmaTokenProvider

logger = get_logger(__name__)

router = APIRouter(prefix="/api/figma", tags=["figma"])

MIN_SCALE = 0.1
MAX_SCALE = 4.0
DEFAULT_PREVIEW_SCALE = 0.5
PREVIEW_FORMATS = ("jpg", "png")

_PLACEHOLDER_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="400" height="300">'
    '<rect width="100%" height="100%" fill="{background}"/>'
    '<text x="50%" y="50%" dominant-baseline="middle" text-anchor="middle" fill="{color}" '
    'font-family="Arial, Helvetica, sans-serif" font-size="20">{label}</text></svg>'
)


class ImageProxyRequest(BaseModel):
    file_id: str = Field(min_length=1, validation_alias=AliasChoices("fileId", "file_id"))
    node_id: str = Field(min_length=1, validation_alias=AliasChoices("nodeId", "node_id"))
    scale: float = DEFAULT_PREVIEW_SCALE


def clamp_scale(scale: Optional[float]) -> float:
    if scale is None:
        return DEFAULT_PREVIEW_SCALE
    return min(MAX_SCALE, max(MIN_SCALE, scale))


def placeholder_svg(label: str, *, error: bool = False, max_age: int = 300) -> Response:
    """Inline SVG stand-in so thumbnails never render as broken images."""
    background, color = ("#fee2e2", "#dc2626") if error else ("#f3f4f6", "#6b7280")
    return Response(
        content=_PLACEHOLDER_SVG.format(background=background, color=color, label=label),
        media_type="image/svg+xml",
        headers={"Cache-Control": f"public, max-age={max_age}"},
    )


def _pick_image(images: dict, node_id: str) -> Optional[str]:
    return images.get(node_id) or next(iter(images.values()), None)


@router.get("/image-proxy")
async def image_proxy(
    file_id: Optional[str] = Query(default=None, alias="fileId"),
    node_id: Optional[str] = Query(default=None, alias="nodeId"),
    scale: Optional[float] = Query(default=None),
    format: Optional[str] = Query(default=None),
    tokens: FigmaTokenProvider = Depends(get_token_provider),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_transport),
) -> Response:
    """Redirect to a freshly rendered raster of one node."""
    if not file_id or not node_id:
        return JSONResponse(status_code=400, content={"error": "fileId and nodeId are required"})

    token = tokens.get_token()
    if not token:
        logger.warning("Image preview requested without a Figma token", file_id=file_id)
        return placeholder_svg("No Token", max_age=60)

    image_format = format if format in PREVIEW_FORMATS else "jpg"
    try:
        async with FigmaClient(token, transport=transport) as client:
            images = await client.get_images(
                file_id, [node_id], format=image_format, scale=clamp_scale(scale)
            )
    except FigmaAPIError as exc:
        logger.warning(
            "Figma preview export failed",
            file_id=file_id,
            node_id=node_id,
            status=exc.status_code,
            error=exc.detail,
        )
        return placeholder_svg(f"Error {exc.status_code}", error=True)
    except httpx.HTTPError as exc:
        logger.warning("Figma preview request failed", file_id=file_id, node_id=node_id, error=str(exc))
        return placeholder_svg("Slide", max_age=600)

    image_url = _pick_image(images, node_id)
    if not image_url:
        logger.warning("Figma preview returned no image", file_id=file_id, node_id=node_id)
        return placeholder_svg("No Image")
    return RedirectResponse(image_url, status_code=302)


@router.post("/image-proxy")
async def image_proxy_url(
    body: ImageProxyRequest,
    tokens: FigmaTokenProvider = Depends(get_token_provider),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_transport),
) -> JSONResponse:
    """Return the raster URL of one node as JSON."""
    token = tokens.get_token()
    if not token:
        return JSONResponse(status_code=500, content={"error": "Figma access token not configured"})

    try:
        async with FigmaClient(token, transport=transport) as client:
            images = await client.get_images(
                body.file_id, [body.node_id], format="jpg", scale=clamp_scale(body.scale)
            )
    except FigmaAPIError as exc:
        return JSONResponse(
            status_code=exc.status_code if exc.status_code >= 400 else 502,
            content={"error": "Failed to fetch image from Figma", "details": exc.detail},
        )
    except httpx.HTTPError as exc:
        logger.error("Figma image request failed", file_id=body.file_id, error=str(exc))
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    image_url = images.get(body.node_id)
    if not image_url:
        return JSONResponse(status_code=404, content={"error": "Image not found in Figma response"})
    return JSONResponse(content={"imageUrl": image_url})


@router.get("/image-base64")
async def image_base64(
    url: Optional[str] = Query(default=None),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_transport),
) -> JSONResponse:
    """Download an image and return it as a data URI."""
    if not url:
        return JSONResponse(status_code=400, content={"error": "Missing URL parameter"})

    async with FigmaClient(None, transport=transport) as client:
        try:
            image = await client.download(url)
        except UPSTREAM_ERRORS as exc:
            logger.warning("Image download for base64 conversion failed", url=url, error=str(exc))
            return JSONResponse(status_code=502, content={"error": "Error fetching image"})
    return JSONResponse(content={"base64": encode_data_uri(image.content, image.content_type)})


__all__ = ["clamp_scale", "placeholder_svg", "router"]
