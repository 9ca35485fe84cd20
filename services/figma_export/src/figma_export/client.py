"""Async client for the Figma REST API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import httpx

from common.config import settings
from common.http import build_client
from common.logging import get_logger

from .errors import FigmaAPIError, error_from_response

logger = get_logger(__name__)

IMAGE_FILLS_PATH = "/files/{file_id}/image-fills"
RASTER_EXPORT_PATH = "/images/{file_id}"
NODES_PATH = "/files/{file_id}/nodes"
ME_PATH = "/me"

# Reported for 2xx bodies whose shape is unusable
MALFORMED_RESPONSE_STATUS = 502


@dataclass(frozen=True)
class DownloadedImage:
    url: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


class FigmaClient:
    """Thin wrapper over the design-file service endpoints the exporter uses.

    API calls carry the ``X-Figma-Token`` header; image downloads go through a
    separate unauthenticated client since they hit signed CDN URLs.
    """

    def __init__(
        self,
        token: Optional[str],
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or settings.figma_api_base).rstrip("/")
        timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self._api = build_client(
            base_url=self._base_url, figma_token=token, timeout=timeout, transport=transport
        )
        self._downloads = build_client(timeout=timeout, transport=transport)

    async def __aenter__(self) -> "FigmaClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._api.aclose()
        await self._downloads.aclose()

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        logger.debug("Figma API request", path=path, params=params)
        response = await self._api.get(path, params=params)
        if response.is_error:
            raise error_from_response(response, path)
        try:
            payload = response.json()
        except ValueError as exc:
            raise FigmaAPIError(response.status_code, path, "invalid JSON body") from exc
        if not isinstance(payload, dict):
            raise FigmaAPIError(response.status_code, path, "invalid JSON body")
        if payload.get("err"):
            raise FigmaAPIError(response.status_code, path, str(payload["err"]))
        return payload

    async def get_image_fills(self, file_id: str) -> Dict[str, str]:
        """Every image-fill URL used in the file, keyed by imageRef."""
        path = IMAGE_FILLS_PATH.format(file_id=file_id)
        payload = await self._get_json(path)
        images = _mapping(_mapping(payload.get("meta"), path).get("images"), path)
        return {ref: url for ref, url in images.items() if url}

    async def get_images(
        self,
        file_id: str,
        node_ids: Sequence[str],
        *,
        format: str = "png",
        scale: float = 1.0,
    ) -> Dict[str, str]:
        """Rasterize nodes; returns node id -> temporary signed URL."""
        params = {"ids": ",".join(node_ids), "format": format, "scale": _format_scale(scale)}
        path = RASTER_EXPORT_PATH.format(file_id=file_id)
        payload = await self._get_json(path, params=params)
        images = _mapping(payload.get("images"), path)
        return {node_id: url for node_id, url in images.items() if url}

    async def get_nodes(self, file_id: str, node_ids: Sequence[str]) -> Dict[str, Any]:
        """Raw ``nodes`` mapping (node id -> {"document": ...} or null)."""
        params = {"ids": ",".join(node_ids), "geometry": "paths"}
        path = NODES_PATH.format(file_id=file_id)
        payload = await self._get_json(path, params=params)
        return _mapping(payload.get("nodes"), path)

    async def get_me(self) -> Dict[str, Any]:
        return await self._get_json(ME_PATH)

    async def download(self, url: str) -> DownloadedImage:
        response = await self._downloads.get(url)
        if response.is_error:
            raise error_from_response(response, url)
        return DownloadedImage(
            url=url,
            content=response.content,
            content_type=response.headers.get("content-type"),
        )


def _format_scale(scale: float) -> str:
    return f"{scale:g}"


def _mapping(value: Any, path: str) -> Dict[str, Any]:
    """Treat a missing section as empty; any other non-object is a malformed response."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise FigmaAPIError(MALFORMED_RESPONSE_STATUS, path, f"expected an object, got {type(value).__name__}")
    return value


__all__ = ["DownloadedImage", "FigmaClient"]
