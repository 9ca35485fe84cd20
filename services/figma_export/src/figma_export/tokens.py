"""Design-service access token provider.

The token lives in the ``system_settings`` table so it can be rotated at
runtime; the ``FIGMA_ACCESS_TOKEN`` environment value seeds it. Lookups are
cached for a few minutes.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError

from common.logging import get_logger

from .client import FigmaClient
from .errors import UPSTREAM_ERRORS, TokenValidationError
from .storage import SystemSettingsStorage

logger = get_logger(__name__)

TOKEN_KEY = "FIGMA_ACCESS_TOKEN"


def masked(token: Optional[str]) -> Optional[str]:
    """``figd_abcde...wxyz`` rendering for status responses."""
    if not token:
        return None
    if len(token) <= 14:
        return "*" * len(token)
    return f"{token[:10]}...{token[-4:]}"


class FigmaTokenProvider:
    def __init__(
        self,
        storage: Optional[SystemSettingsStorage] = None,
        env_token: Optional[str] = None,
        cache_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._storage = storage
        self._env_token = env_token or None
        self._cache_seconds = cache_seconds
        self._clock = clock
        self._cached: Optional[str] = None
        self._cached_at: Optional[float] = None

    def get_token(self) -> Optional[str]:
        """Return the configured token, or ``None`` when nothing is configured."""
        if self._cached_at is not None and self._clock() - self._cached_at < self._cache_seconds:
            return self._cached

        token = self._read_store()
        if not token and self._env_token:
            token = self._env_token
            self._seed_store(token)

        self._cached = token
        self._cached_at = self._clock()
        return token

    def update_token(self, token: str) -> bool:
        if self._storage is not None:
            try:
                self._storage.set(TOKEN_KEY, token)
            except SQLAlchemyError as exc:
                logger.error("Failed to store Figma token", error=str(exc))
                return False
        self._cached = token
        self._cached_at = self._clock()
        logger.info("Figma token updated", token=masked(token))
        return True

    def clear_cache(self) -> None:
        self._cached = None
        self._cached_at = None

    async def ensure_valid(
        self,
        token: str,
        *,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Raise TokenValidationError unless the service's ``/me`` accepts the token."""
        async with FigmaClient(token, base_url=base_url, transport=transport) as client:
            try:
                await client.get_me()
            except UPSTREAM_ERRORS as exc:
                logger.warning("Figma token rejected", token=masked(token), error=str(exc))
                raise TokenValidationError("Figma rejected the token") from exc

    async def validate_token(
        self,
        token: str,
        *,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> bool:
        try:
            await self.ensure_valid(token, base_url=base_url, transport=transport)
        except TokenValidationError:
            return False
        return True

    def _read_store(self) -> Optional[str]:
        if self._storage is None:
            return None
        try:
            return self._storage.get(TOKEN_KEY)
        except SQLAlchemyError as exc:
            logger.warning("Could not read Figma token from settings store", error=str(exc))
            return None

    def _seed_store(self, token: str) -> None:
        if self._storage is None:
            return
        try:
            self._storage.set(TOKEN_KEY, token)
        except SQLAlchemyError as exc:
            logger.warning("Could not persist env Figma token", error=str(exc))
        else:
            logger.info("Seeded settings store with env Figma token")


__all__ = ["FigmaTokenProvider", "TOKEN_KEY", "masked"]
