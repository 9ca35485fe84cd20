from __future__ import annotations

import asyncio
import base64

import pytest

from figma_export.client import FigmaClient
from figma_export.metrics import ExportMetrics
from figma_export.models import ByteCacheEntry, ImageKey
from figma_export.pipeline.byte_store import INLINE_LIMIT_BYTES, ImageByteStore, encode_data_uri
from figma_fakes import API_BASE, png_bytes


def _client(figma) -> FigmaClient:
    return FigmaClient("figd_valid_token_1234", base_url=API_BASE, transport=figma.transport)


@pytest.mark.asyncio
async def test_image_below_threshold_is_inlined(figma):
    content = png_bytes(INLINE_LIMIT_BYTES - 1)
    figma.add_image("https://img/small.png", content)

    async with _client(figma) as client:
        entry = await ImageByteStore(client).resolve(ImageKey.ref("small"), "https://img/small.png")

    assert entry.oversized is False
    assert entry.inline_data == "data:image/png;base64," + base64.b64encode(content).decode()


@pytest.mark.asyncio
async def test_image_at_threshold_is_oversized(figma):
    figma.add_image("https://img/exact.png", png_bytes(INLINE_LIMIT_BYTES))
    figma.add_image("https://img/large.png", png_bytes(INLINE_LIMIT_BYTES + 4096))
    metrics = ExportMetrics()

    async with _client(figma) as client:
        store = ImageByteStore(client, metrics=metrics)
        exact = await store.resolve(ImageKey.ref("exact"), "https://img/exact.png")
        large = await store.resolve(ImageKey.ref("large"), "https://img/large.png")

    assert exact == ByteCacheEntry(inline_data=None, oversized=True)
    assert large == ByteCacheEntry(inline_data=None, oversized=True)
    assert metrics.images_oversized == 2
    assert metrics.bytes_downloaded == 2 * INLINE_LIMIT_BYTES + 4096


@pytest.mark.asyncio
async def test_same_key_downloads_once_even_with_new_url(figma):
    figma.add_image("https://img/a.png?sig=1", png_bytes(64))
    figma.add_image("https://img/a.png?sig=2", png_bytes(128))
    metrics = ExportMetrics()

    async with _client(figma) as client:
        store = ImageByteStore(client, metrics=metrics)
        first = await store.resolve(ImageKey.ref("a"), "https://img/a.png?sig=1")
        second = await store.resolve(ImageKey.ref("a"), "https://img/a.png?sig=2")

    assert first == second
    assert figma.download_requests == ["https://img/a.png?sig=1"]
    assert (metrics.cache_hits, metrics.cache_misses) == (1, 1)


@pytest.mark.asyncio
async def test_concurrent_lookups_share_one_download(figma):
    figma.add_image("https://img/shared.png", png_bytes(256))

    async with _client(figma) as client:
        store = ImageByteStore(client)
        entries = await asyncio.gather(
            *(store.resolve(ImageKey.ref("shared"), "https://img/shared.png") for _ in range(8))
        )

    assert figma.calls["download"] == 1
    assert len({entry.inline_data for entry in entries}) == 1
    assert store.cached(ImageKey.ref("shared")) == entries[0]


@pytest.mark.asyncio
async def test_download_failure_is_soft(figma):
    metrics = ExportMetrics()

    async with _client(figma) as client:
        store = ImageByteStore(client, metrics=metrics)
        entry = await store.resolve(ImageKey.url("https://img/gone.png"), "https://img/gone.png")
        again = await store.resolve(ImageKey.url("https://img/gone.png"), "https://img/gone.png")

    assert entry == ByteCacheEntry(inline_data=None, oversized=False)
    assert again == entry
    assert metrics.download_failures == 1
    assert figma.calls["download"] == 1


@pytest.mark.asyncio
async def test_missing_content_type_defaults_to_png(figma):
    figma.add_image("https://img/raw", b"abc", content_type=None)

    async with _client(figma) as client:
        entry = await ImageByteStore(client).resolve(ImageKey.url("https://img/raw"), "https://img/raw")

    assert entry.inline_data == "data:image/png;base64,YWJj"


def test_encode_data_uri_drops_content_type_parameters():
    assert encode_data_uri(b"abc", "image/jpeg; charset=binary") == "data:image/jpeg;base64,YWJj"
