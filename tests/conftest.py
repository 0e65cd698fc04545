"""Pytest configuration shared across the suite."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path

import pytest

from fakes import FakeTonieCloud


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def fake_cloud() -> FakeTonieCloud:
    return FakeTonieCloud()


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "toniesync.db")
