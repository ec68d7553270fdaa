from typing import Annotated

from fastapi import APIRouter, Depends

from smart_select.api.dependencies import get_catalog_cache, get_stock_cache
from smart_select.domain.models import CacheStats, FulfillmentOption, ProductDetails
from smart_select.services.ttl_cache import TTLCache

router = APIRouter(prefix="/cache", tags=["Monitoring"])

StockCacheDep = Annotated[TTLCache[list[FulfillmentOption]], Depends(get_stock_cache)]
CatalogCacheDep = Annotated[TTLCache[ProductDetails], Depends(get_catalog_cache)]


@router.get("/stats", response_model=list[CacheStats])
async def cache_stats(stock: StockCacheDep, catalog: CatalogCacheDep) -> list[CacheStats]:
    """Trefferquote und Größe beider Cache-Namespaces."""
    return [stock.stats(), catalog.stats()]
