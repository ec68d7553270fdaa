# src/smart_select/api/dependencies.py
from functools import lru_cache

import httpx
from fastapi import Depends

from smart_select.adapters.redcircle import SOURCE, RedCircleAdapter
from smart_select.core.config import Settings, get_settings
from smart_select.domain.models import FulfillmentOption, ProductDetails
from smart_select.domain.ports import StockSourcePort
from smart_select.services.availability_resolver import AvailabilityResolver
from smart_select.services.catalog_service import CatalogService
from smart_select.services.redirect_builder import RedirectUrlBuilder
from smart_select.services.smart_select_service import SmartSelectService
from smart_select.services.ttl_cache import CATALOG_NAMESPACE, STOCK_NAMESPACE, TTLCache


# Shared HTTP Client (Connection Pooling)
@lru_cache
def get_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        headers={"Content-Type": "application/json", "User-Agent": "SmartSelect/1.0"},
    )


def get_stock_source(
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> StockSourcePort:
    return RedCircleAdapter(
        http_client=client,
        api_key=settings.redcircle_api_key,
        base_url=settings.redcircle_base_url,
        timeout_seconds=settings.upstream_timeout_seconds,
    )


# Singleton Caches: einmal pro Prozess, Lebensdauer = Prozess
_stock_cache: TTLCache[list[FulfillmentOption]] | None = None
_catalog_cache: TTLCache[ProductDetails] | None = None


def get_stock_cache(
    settings: Settings = Depends(get_settings),
) -> TTLCache[list[FulfillmentOption]]:
    global _stock_cache
    if _stock_cache is None:
        _stock_cache = TTLCache(STOCK_NAMESPACE, settings.stock_cache_ttl_seconds)
    return _stock_cache


def get_catalog_cache(
    settings: Settings = Depends(get_settings),
) -> TTLCache[ProductDetails]:
    global _catalog_cache
    if _catalog_cache is None:
        _catalog_cache = TTLCache(CATALOG_NAMESPACE, settings.catalog_cache_ttl_seconds)
    return _catalog_cache


def get_availability_resolver(
    source: StockSourcePort = Depends(get_stock_source),
    stock_cache: TTLCache[list[FulfillmentOption]] = Depends(get_stock_cache),
    settings: Settings = Depends(get_settings),
) -> AvailabilityResolver:
    return AvailabilityResolver(
        source=source,
        stock_cache=stock_cache,
        call_timeout_seconds=settings.upstream_timeout_seconds,
        source_name=SOURCE,
    )


def get_redirect_url_builder(
    settings: Settings = Depends(get_settings),
) -> RedirectUrlBuilder:
    return RedirectUrlBuilder(product_url_template=settings.product_url_template)


def get_smart_select_service(
    resolver: AvailabilityResolver = Depends(get_availability_resolver),
    url_builder: RedirectUrlBuilder = Depends(get_redirect_url_builder),
) -> SmartSelectService:
    return SmartSelectService(resolver=resolver, url_builder=url_builder)


def get_catalog_service(
    source: StockSourcePort = Depends(get_stock_source),
    catalog_cache: TTLCache[ProductDetails] = Depends(get_catalog_cache),
    settings: Settings = Depends(get_settings),
) -> CatalogService:
    return CatalogService(
        source=source,
        catalog_cache=catalog_cache,
        call_timeout_seconds=settings.upstream_timeout_seconds,
        source_name=SOURCE,
    )
