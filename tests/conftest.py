"""Shared test fixtures and configuration."""

from collections.abc import Iterable
import os
from pathlib import Path
import sys
from typing import Any

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from search_bridge.registry import IndexRegistry  # noqa: E402
from tests.fixtures.indexes import build_index  # noqa: E402


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host XB_* variables out of Settings during tests."""
    for key in list(os.environ):
        if key.startswith("XB_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def make_index(tmp_path):
    """Factory building an index directory under tmp_path."""

    def _make(name: str, documents: Iterable[dict[str, Any]] = (), **kwargs: Any) -> Path:
        return build_index(tmp_path / "indexes" / name, documents, **kwargs)

    return _make


@pytest.fixture
def registry():
    registry = IndexRegistry()
    yield registry
    registry.close()
