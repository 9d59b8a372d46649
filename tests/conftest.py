"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_cached_settings():
    """Settings and clients are lru-cached per process; isolate each test."""
    from app.core.config import get_settings
    from app.dependencies import clients

    yield
    get_settings.cache_clear()
    clients._settings.cache_clear()
    clients.get_warehouse_client.cache_clear()
    clients.get_gemini_client.cache_clear()
