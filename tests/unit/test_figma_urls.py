from __future__ import annotations

import pytest

from figma_export.urls import FigmaUrl, normalize_node_id, parse_figma_url


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://www.figma.com/file/AbC123/Deck?node-id=12-34", FigmaUrl("AbC123", "12:34")),
        ("https://www.figma.com/design/AbC123/Deck?t=x&node-id=12%3A34&m=dev", FigmaUrl("AbC123", "12:34")),
        ("https://figma.com/file/AbC123", FigmaUrl("AbC123", None)),
        ("https://www.figma.com/design/AbC123/Deck?mode=dev", FigmaUrl("AbC123", None)),
    ],
)
def test_parse_figma_url(url, expected):
    assert parse_figma_url(url) == expected


@pytest.mark.parametrize("url", ["https://example.com/file/AbC123", "not a url", ""])
def test_parse_figma_url_rejects_other_urls(url):
    assert parse_figma_url(url) is None


def test_normalize_node_id():
    assert normalize_node_id("1-23") == "1:23"
    assert normalize_node_id("1%3A23") == "1:23"
    assert normalize_node_id("1:23") == "1:23"
