# src/smart_select/services/availability_resolver.py
from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from smart_select.core.metrics import UPSTREAM_UNAUTHORIZED
from smart_select.domain.identifiers import ProductIdMap, unique_product_ids
from smart_select.domain.models import (
    FulfillmentOption,
    LocationContext,
    ProductAvailability,
    ProductLookupError,
)
from smart_select.domain.ports import (
    ErrorCode,
    ProductNotFoundError,
    RateLimitedError,
    StockSourcePort,
    UnauthorizedError,
    UpstreamError,
    UpstreamTimeoutError,
)
from smart_select.services.ttl_cache import TTLCache, stock_cache_key

logger = logging.getLogger(__name__)


@dataclass
class BatchAvailability:
    """Ergebnis einer Batch-Auflösung: ein Eintrag pro Identifier, Fehler separat."""

    availability: ProductIdMap[ProductAvailability] = field(default_factory=ProductIdMap)
    errors: list[ProductLookupError] = field(default_factory=list)
    upstream_calls: int = 0
    cache_hits: int = 0

    @property
    def unauthorized(self) -> bool:
        return any(e.code == ErrorCode.UNAUTHORIZED for e in self.errors)


def select_best_store(
    options: list[FulfillmentOption], preferred_store_id: str | None = None
) -> FulfillmentOption | None:
    """
    Wählt den Standort für ein Produkt:
    1. der vom Nutzer gewünschte Store (unabhängig vom Bestand)
    2. der nächstgelegene Store mit Bestand
    3. der nächstgelegene Store überhaupt
    """
    if not options:
        return None

    if preferred_store_id:
        for option in options:
            if option.location_id == preferred_store_id:
                return option

    for option in options:
        if option.in_stock and option.quantity > 0:
            return option

    return options[0]


def to_availability(product_id: str, option: FulfillmentOption) -> ProductAvailability:
    return ProductAvailability(
        product_id=product_id,
        in_stock=option.in_stock and option.quantity > 0,
        available_quantity=option.quantity,
        location_id=option.location_id,
        location_name=option.location_name,
        distance=option.distance,
    )


class AvailabilityResolver:
    """
    Löst die Verfügbarkeit für einen Batch von Identifiern auf.

    Alle Upstream-Aufrufe eines Batches laufen gleichzeitig; ein Fehler bei
    einem Identifier landet in `errors` und beeinflusst die anderen nicht.
    """

    def __init__(
        self,
        source: StockSourcePort,
        stock_cache: TTLCache[list[FulfillmentOption]],
        call_timeout_seconds: float = 10.0,
        source_name: str = "redcircle",
    ) -> None:
        self._source = source
        self._cache = stock_cache
        self._timeout = call_timeout_seconds
        self._source_name = source_name

    async def resolve_batch(
        self,
        product_ids: Iterable[str],
        location: LocationContext,
        skip_cache: bool = False,
    ) -> BatchAvailability:
        ids = unique_product_ids(product_ids)
        logger.debug("Resolving availability for %d products in %s", len(ids), location.zip_code)

        outcomes = await asyncio.gather(
            *(self._lookup(product_id, location, skip_cache) for product_id in ids),
            return_exceptions=True,
        )

        result = BatchAvailability()
        for product_id, outcome in zip(ids, outcomes):
            if isinstance(outcome, UpstreamError):
                self._record_failure(result, product_id, outcome)
                continue
            if isinstance(outcome, Exception):
                logger.exception(
                    "Unexpected error resolving %s", product_id, exc_info=outcome
                )
                result.availability[product_id] = ProductAvailability.no_data(product_id)
                result.errors.append(
                    ProductLookupError(
                        product_id=product_id,
                        message=str(outcome) or type(outcome).__name__,
                        code=ErrorCode.UNKNOWN_ERROR,
                    )
                )
                continue
            if isinstance(outcome, BaseException):
                raise outcome

            options, from_cache = outcome
            if from_cache:
                result.cache_hits += 1
            else:
                result.upstream_calls += 1
            self._record_options(result, product_id, options, location.store_id)

        logger.debug(
            "Resolved %d products (%d cached, %d upstream, %d errors)",
            len(ids),
            result.cache_hits,
            result.upstream_calls,
            len(result.errors),
        )
        return result

    async def warm(self, product_ids: Iterable[str], location: LocationContext) -> int:
        """
        Befüllt den Stock-Cache für die angegebenen Identifier.
        Fehler werden ignoriert; liefert die Anzahl erfolgreich geladener Identifier.
        """
        ids = unique_product_ids(product_ids)
        result = await self.resolve_batch(ids, location, skip_cache=True)
        failed = sum(1 for e in result.errors if e.code != ErrorCode.NO_STORES)
        logger.info("Warmed stock cache for %d of %d products", len(ids) - failed, len(ids))
        return len(ids) - failed

    # ------------------------------------------------------------------
    # Einzel-Lookup
    # ------------------------------------------------------------------

    async def _lookup(
        self, product_id: str, location: LocationContext, skip_cache: bool
    ) -> tuple[list[FulfillmentOption], bool]:
        key = stock_cache_key(location.zip_code, product_id, location.store_id)
        if not skip_cache:
            cached = self._cache.get(key)
            if cached is not None:
                return cached, True

        try:
            options = await asyncio.wait_for(
                self._source.lookup_stock(product_id, location.zip_code, location.store_id),
                timeout=self._timeout,
            )
        except TimeoutError as e:
            raise UpstreamTimeoutError(self._source_name, self._timeout) from e

        # Rohdaten cachen, Normalisierung passiert pro Request
        self._cache.set(key, options)
        return options, False

    # ------------------------------------------------------------------
    # Ergebnis-Aufbereitung
    # ------------------------------------------------------------------

    @staticmethod
    def _record_options(
        result: BatchAvailability,
        product_id: str,
        options: list[FulfillmentOption],
        preferred_store_id: str | None,
    ) -> None:
        selected = select_best_store(options, preferred_store_id)
        if selected is None:
            result.availability[product_id] = ProductAvailability.no_data(product_id)
            result.errors.append(
                ProductLookupError(
                    product_id=product_id, message="No stores found", code=ErrorCode.NO_STORES
                )
            )
            return

        availability = to_availability(product_id, selected)
        result.availability[product_id] = availability
        logger.debug(
            "%s: %s at %s (%d units)",
            product_id,
            "in stock" if availability.in_stock else "out of stock",
            selected.location_name,
            selected.quantity,
        )

    @staticmethod
    def _record_failure(result: BatchAvailability, product_id: str, error: UpstreamError) -> None:
        if isinstance(error, UnauthorizedError):
            UPSTREAM_UNAUTHORIZED.inc()
            logger.error(
                "Upstream rejected credentials while checking %s: %s", product_id, error.detail
            )
        elif isinstance(error, RateLimitedError):
            logger.warning(
                "Rate limited while checking %s (retry after %s)", product_id, error.retry_after
            )
        elif isinstance(error, ProductNotFoundError):
            logger.warning("Product %s not found upstream", product_id)
        else:
            logger.warning("Stock lookup for %s failed: %s", product_id, error.detail)

        result.availability[product_id] = ProductAvailability.no_data(product_id)
        result.errors.append(
            ProductLookupError(product_id=product_id, message=error.detail, code=error.code)
        )
