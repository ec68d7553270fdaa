from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from factories import in_stock, out_of_stock, stock_table
from smart_select.domain.models import BackupGroup, SmartSelectRequest
from smart_select.domain.ports import UnauthorizedError
from smart_select.main import app
from smart_select.services.availability_resolver import AvailabilityResolver
from smart_select.services.redirect_builder import RedirectUrlBuilder
from smart_select.services.smart_select_service import SmartSelectService
from smart_select.services.ttl_cache import STOCK_NAMESPACE, TTLCache


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def _service(stock_source: AsyncMock) -> SmartSelectService:
    return SmartSelectService(
        resolver=AvailabilityResolver(source=stock_source, stock_cache=TTLCache(STOCK_NAMESPACE, 60)),
        url_builder=RedirectUrlBuilder(product_url_template="https://www.target.com/p/-/A-{product_id}"),
    )


def _request(group: BackupGroup) -> SmartSelectRequest:
    return SmartSelectRequest(
        short_link="gift-1",
        long_link="https://www.target.com/c/gifts",
        backups=[group],
        zip_code="55401",
    )


def test_request_count_middleware() -> None:
    client = TestClient(app)
    labels = {"method": "GET", "path": "/healthz", "status_code": "200"}

    initial = _sample("http_requests_total", labels)

    response = client.get("/healthz")
    assert response.status_code == 200

    assert _sample("http_requests_total", labels) == initial + 1


def test_metrics_endpoint() -> None:
    client = TestClient(app)
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "http_requests_total" in response.text


def test_cache_metrics_are_labelled_by_namespace() -> None:
    cache: TTLCache[str] = TTLCache("catalog", default_ttl_seconds=60)
    hits = {"namespace": "catalog"}

    initial_hits = _sample("cache_hits_total", hits)
    initial_misses = _sample("cache_misses_total", hits)
    initial_stock_misses = _sample("cache_misses_total", {"namespace": "stock"})

    # Miss
    cache.get("product:12345678")
    assert _sample("cache_misses_total", hits) == initial_misses + 1
    assert _sample("cache_hits_total", hits) == initial_hits

    # Hit
    cache.set("product:12345678", "details")
    cache.get("product:12345678")

    assert _sample("cache_hits_total", hits) == initial_hits + 1
    assert _sample("cache_misses_total", hits) == initial_misses + 1
    assert _sample("cache_misses_total", {"namespace": "stock"}) == initial_stock_misses


@pytest.mark.asyncio  # type: ignore[misc]
async def test_substitution_metric(stock_source: AsyncMock) -> None:
    stock_source.lookup_stock.side_effect = stock_table(
        {"12345678": out_of_stock(), "87654321": in_stock()}
    )
    labels = {"reason": "OUT_OF_STOCK"}
    initial = _sample("product_substitutions_total", labels)

    await _service(stock_source).select(
        _request(BackupGroup(primary_id="12345678", backup_ids=["87654321"]))
    )

    assert _sample("product_substitutions_total", labels) == initial + 1


@pytest.mark.asyncio  # type: ignore[misc]
async def test_unavailable_and_unauthorized_metrics(stock_source: AsyncMock) -> None:
    stock_source.lookup_stock.side_effect = UnauthorizedError("redcircle", 403)
    initial_unavailable = _sample("all_products_unavailable_total")
    initial_unauthorized = _sample("upstream_unauthorized_total")

    await _service(stock_source).select(_request(BackupGroup(primary_id="12345678")))

    assert _sample("all_products_unavailable_total") == initial_unavailable + 1
    assert _sample("upstream_unauthorized_total") == initial_unauthorized + 1
