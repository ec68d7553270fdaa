# src/smart_select/services/catalog_service.py
from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from smart_select.domain.identifiers import ProductIdMap, unique_product_ids
from smart_select.domain.models import ProductDetails, ProductLookupError
from smart_select.domain.ports import (
    ErrorCode,
    StockSourcePort,
    UpstreamError,
    UpstreamTimeoutError,
)
from smart_select.services.ttl_cache import TTLCache, product_cache_key

logger = logging.getLogger(__name__)


class CatalogService:
    """Produkt-Metadaten mit langlebigem Cache (Katalogdaten ändern sich selten)."""

    def __init__(
        self,
        source: StockSourcePort,
        catalog_cache: TTLCache[ProductDetails],
        call_timeout_seconds: float = 10.0,
        source_name: str = "redcircle",
    ) -> None:
        self._source = source
        self._cache = catalog_cache
        self._timeout = call_timeout_seconds
        self._source_name = source_name

    async def get_product(self, product_id: str, skip_cache: bool = False) -> ProductDetails:
        """
        Raises:
            ProductNotFoundError, RateLimitedError, UnauthorizedError,
            ExternalApiError, UpstreamTimeoutError
        """
        key = product_cache_key(product_id)
        if not skip_cache:
            cached = self._cache.get(key)
            if cached is not None:
                return cached

        try:
            product = await asyncio.wait_for(
                self._source.fetch_product(product_id), timeout=self._timeout
            )
        except TimeoutError as e:
            raise UpstreamTimeoutError(self._source_name, self._timeout) from e

        self._cache.set(key, product)
        return product

    async def get_products(
        self, product_ids: Iterable[str]
    ) -> tuple[ProductIdMap[ProductDetails], list[ProductLookupError]]:
        ids = unique_product_ids(product_ids)
        outcomes = await asyncio.gather(
            *(self.get_product(product_id) for product_id in ids), return_exceptions=True
        )

        products: ProductIdMap[ProductDetails] = ProductIdMap()
        errors: list[ProductLookupError] = []
        for product_id, outcome in zip(ids, outcomes):
            if isinstance(outcome, UpstreamError):
                logger.warning("Failed to fetch product %s: %s", product_id, outcome.detail)
                errors.append(
                    ProductLookupError(
                        product_id=product_id, message=outcome.detail, code=outcome.code
                    )
                )
            elif isinstance(outcome, Exception):
                logger.exception(
                    "Unexpected error fetching product %s", product_id, exc_info=outcome
                )
                errors.append(
                    ProductLookupError(
                        product_id=product_id,
                        message=str(outcome) or type(outcome).__name__,
                        code=ErrorCode.UNKNOWN_ERROR,
                    )
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                products[product_id] = outcome
        return products, errors
