"""Standard HTTP client helpers for external integrations."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import httpx

USER_AGENT = "SlideLibrary/1.0"


def build_headers(figma_token: Optional[str] = None) -> Dict[str, str]:
    headers: Dict[str, str] = {"User-Agent": USER_AGENT}
    if figma_token:
        headers["X-Figma-Token"] = figma_token
    return headers


def build_client(
    base_url: Optional[str] = None,
    figma_token: Optional[str] = None,
    timeout: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create a configured async HTTP client; the caller owns closing it."""

    return httpx.AsyncClient(
        base_url=base_url or "",
        timeout=timeout,
        headers=build_headers(figma_token),
        follow_redirects=True,
        transport=transport,
    )


@asynccontextmanager
async def http_client(
    base_url: Optional[str] = None,
    figma_token: Optional[str] = None,
    timeout: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Provide a configured async HTTP client."""

    client = build_client(base_url, figma_token, timeout, transport)
    async with client:
        yield client


__all__ = ["build_client", "build_headers", "http_client"]
