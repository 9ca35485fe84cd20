from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from figma_export.storage import SystemSettingsStorage
from figma_export.tokens import TOKEN_KEY, FigmaTokenProvider, masked
from figma_fakes import API_BASE


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class BrokenStorage:
    def get(self, key):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    def set(self, key, value):
        raise OperationalError("UPDATE", {}, Exception("database is locked"))


@pytest.fixture
def storage(tmp_path) -> SystemSettingsStorage:
    store = SystemSettingsStorage(f"sqlite:///{tmp_path / 'settings.db'}")
    yield store
    store.dispose()


def test_storage_upserts_and_deletes(storage):
    assert storage.get("missing") is None

    storage.set("FIGMA_ACCESS_TOKEN", "first")
    storage.set("FIGMA_ACCESS_TOKEN", "second")

    assert storage.get("FIGMA_ACCESS_TOKEN") == "second"
    assert storage.delete("FIGMA_ACCESS_TOKEN") is True
    assert storage.delete("FIGMA_ACCESS_TOKEN") is False
    assert storage.get("FIGMA_ACCESS_TOKEN") is None


def test_stored_token_wins_over_env(storage):
    storage.set(TOKEN_KEY, "figd_from_database")
    provider = FigmaTokenProvider(storage=storage, env_token="figd_from_env")

    assert provider.get_token() == "figd_from_database"


def test_env_token_seeds_empty_store(storage):
    provider = FigmaTokenProvider(storage=storage, env_token="figd_from_env")

    assert provider.get_token() == "figd_from_env"
    assert storage.get(TOKEN_KEY) == "figd_from_env"


def test_nothing_configured_returns_none(storage):
    assert FigmaTokenProvider(storage=storage).get_token() is None
    assert FigmaTokenProvider().get_token() is None


def test_token_is_cached_until_ttl_expires(storage):
    clock = FakeClock()
    provider = FigmaTokenProvider(storage=storage, cache_seconds=300, clock=clock)
    storage.set(TOKEN_KEY, "figd_old")
    assert provider.get_token() == "figd_old"

    storage.set(TOKEN_KEY, "figd_new")
    clock.now += 299
    assert provider.get_token() == "figd_old"

    clock.now += 2
    assert provider.get_token() == "figd_new"


def test_update_token_refreshes_cache(storage):
    provider = FigmaTokenProvider(storage=storage)
    assert provider.get_token() is None

    assert provider.update_token("figd_rotated") is True

    assert provider.get_token() == "figd_rotated"
    assert storage.get(TOKEN_KEY) == "figd_rotated"


def test_store_errors_fall_back_to_env():
    provider = FigmaTokenProvider(storage=BrokenStorage(), env_token="figd_from_env")

    assert provider.get_token() == "figd_from_env"
    assert provider.update_token("figd_other") is False


def test_clear_cache_forces_reload(storage):
    provider = FigmaTokenProvider(storage=storage)
    storage.set(TOKEN_KEY, "figd_a")
    assert provider.get_token() == "figd_a"
    storage.set(TOKEN_KEY, "figd_b")

    provider.clear_cache()

    assert provider.get_token() == "figd_b"


def test_masked_rendering():
    assert masked("figd_abcdefghijklmnopqrstuvwxyz") == "figd_abcde...wxyz"
    assert masked("short") == "*****"
    assert masked(None) is None


@pytest.mark.asyncio
async def test_validate_token_against_me(figma):
    provider = FigmaTokenProvider()

    assert await provider.validate_token("figd_valid_token_1234", base_url=API_BASE, transport=figma.transport)
    assert not await provider.validate_token("figd_revoked", base_url=API_BASE, transport=figma.transport)
    assert figma.calls["me"] == 2
