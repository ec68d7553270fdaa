# tests/conftest.py
from collections.abc import Generator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

import smart_select.api.dependencies as _deps
from smart_select.core.config import Settings, get_settings
from smart_select.domain.ports import StockSourcePort
from smart_select.main import app, limiter


@pytest.fixture
def stock_source() -> AsyncMock:
    return AsyncMock(spec=StockSourcePort)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        redcircle_api_key="test-key",
        stock_cache_ttl_seconds=300,
        catalog_cache_ttl_seconds=3600,
    )


@pytest.fixture
def client(test_settings: Settings, stock_source: AsyncMock) -> Generator[TestClient, None, None]:
    # Frische Cache-Singletons pro Test, damit keine Einträge aus anderen Tests durchschlagen
    _deps._stock_cache = None
    _deps._catalog_cache = None
    limiter.reset()
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[_deps.get_stock_source] = lambda: stock_source
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
        _deps._stock_cache = None
        _deps._catalog_cache = None
