"""Exceptions raised by the design-service client and export pipeline."""

from __future__ import annotations

from typing import Optional

import httpx


class FigmaAPIError(Exception):
    """Non-2xx (or error-bodied) response from the design-file service."""

    def __init__(self, status_code: int, endpoint: str, detail: Optional[str] = None) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        self.detail = detail or ""
        message = f"Figma API request to {endpoint} failed with status {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class FileAccessError(FigmaAPIError):
    """The file is not accessible with the configured token (403) or does not exist (404)."""


class TokenValidationError(Exception):
    """A submitted access token was rejected by the design service."""


FILE_ACCESS_STATUSES = frozenset({403, 404})

# Failures the pipeline contains at tier, batch, node and file boundaries
UPSTREAM_ERRORS = (FigmaAPIError, httpx.HTTPError)


def error_from_response(response: httpx.Response, endpoint: str) -> FigmaAPIError:
    """Build the matching exception for a failed response."""
    detail = _extract_detail(response)
    if response.status_code in FILE_ACCESS_STATUSES:
        return FileAccessError(response.status_code, endpoint, detail)
    return FigmaAPIError(response.status_code, endpoint, detail)


def _extract_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(payload, dict):
        return str(payload.get("err") or payload.get("message") or payload)
    return str(payload)


__all__ = [
    "FILE_ACCESS_STATUSES",
    "FigmaAPIError",
    "FileAccessError",
    "TokenValidationError",
    "UPSTREAM_ERRORS",
    "error_from_response",
]
