from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
for src in ("services/common/src", "services/figma_export/src"):
    if str(ROOT / src) not in sys.path:
        sys.path.append(str(ROOT / src))

from figma_fakes import API_BASE, FakeFigma  # noqa: E402


@pytest.fixture
def figma() -> FakeFigma:
    return FakeFigma()


@pytest.fixture
def api_base() -> str:
    return API_BASE
