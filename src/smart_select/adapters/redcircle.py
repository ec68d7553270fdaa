# src/smart_select/adapters/redcircle.py
from __future__ import annotations

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from smart_select.core.metrics import EXTERNAL_API_COUNT, EXTERNAL_API_DURATION
from smart_select.domain.models import FulfillmentOption, ProductDetails, StoreAddress
from smart_select.domain.ports import (
    ErrorCode,
    ExternalApiError,
    ProductNotFoundError,
    RateLimitedError,
    StockSourcePort,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

SOURCE = "redcircle"

# ---------------------------------------------------------------------------
# Interne Rohdaten-Schemas (für typisiertes Parsing der RedCircle-Response)
# RedCircle liefert die Felder je nach Endpoint-Version klein- oder großgeschrieben.
# ---------------------------------------------------------------------------


def _field(name: str, default: Any = None) -> Any:
    return Field(default=default, validation_alias=AliasChoices(name, name.capitalize()))


class _RcModel(BaseModel):
    # Store-IDs und TCINs kommen teils als Zahl
    model_config = ConfigDict(coerce_numbers_to_str=True)


_M = TypeVar("_M", bound=_RcModel)


class _RcAddress(_RcModel):
    street: str | None = _field("street")
    city: str | None = _field("city")
    state: str | None = _field("state")
    zip: str | None = _field("zip")


class _RcStoreStock(_RcModel):
    position: int | None = _field("position")
    store_name: str | None = _field("store_name")
    store_id: str | None = _field("store_id")
    in_stock: bool | None = _field("in_stock")
    stock_level: int | None = _field("stock_level")
    distance: float | None = _field("distance")
    address: _RcAddress | None = _field("address")


class _RcStoreStockResponse(_RcModel):
    store_stock_results: list[_RcStoreStock] | None = _field("store_stock_results")


class _RcPrice(_RcModel):
    value: float | None = None
    currency: str | None = None


class _RcProduct(_RcModel):
    tcin: str | None = _field("tcin")
    title: str | None = _field("title")
    link: str | None = _field("link")
    brand: str | None = _field("brand")
    price: _RcPrice | None = _field("price")
    rating: float | None = _field("rating")
    main_image: str | None = _field("main_image")
    stock_status: str | None = _field("stock_status")
    description: str | None = _field("description")


class _RcProductResponse(_RcModel):
    product: _RcProduct | None = _field("product")


# ---------------------------------------------------------------------------
# Adapter-Implementierung
# ---------------------------------------------------------------------------


class RedCircleAdapter(StockSourcePort):
    """
    Adapter für die RedCircle API (Target Store-Stock und Produktdaten).
    Übersetzt HTTP-Fehler in die Fehler-Taxonomie der Domain.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        base_url: str,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._client = http_client
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout_seconds

    async def lookup_stock(
        self, product_id: str, zip_code: str, store_id: str | None = None
    ) -> list[FulfillmentOption]:
        params = {
            "api_key": self._api_key,
            "type": "store_stock",
            "tcin": product_id,
            "store_stock_zipcode": zip_code,
        }
        if store_id:
            params["store_id"] = store_id

        data = await self._request(params, product_id)
        raw = _parse(_RcStoreStockResponse, data, product_id)
        stores = raw.store_stock_results or []
        options = [self._normalize_store(s) for s in stores if s.store_id]
        if len(options) < len(stores):
            skipped = len(stores) - len(options)
            logger.debug("Skipped %d stores without id for %s", skipped, product_id)
        # Upstream liefert sortiert, stabil nachsortieren für fehlende/ungleiche Positionen
        return sorted(options, key=_distance_key)

    async def fetch_product(self, product_id: str) -> ProductDetails:
        params = {"api_key": self._api_key, "type": "product", "tcin": product_id}

        data = await self._request(params, product_id)
        raw = _parse(_RcProductResponse, data, product_id)
        if raw.product is None:
            raise ProductNotFoundError(product_id, SOURCE)

        return self._normalize_product(product_id, raw.product)

    # ------------------------------------------------------------------
    # HTTP & Fehlerabbildung
    # ------------------------------------------------------------------

    async def _request(self, params: dict[str, str], product_id: str) -> Any:
        request_type = params["type"]
        started = time.perf_counter()
        try:
            response = await self._client.get(self._base_url, params=params, timeout=self._timeout)
            self._raise_for_status(response, product_id)
        except httpx.HTTPStatusError as e:
            EXTERNAL_API_COUNT.labels(source=SOURCE, status="error").inc()
            raise ExternalApiError(SOURCE, str(e), str(e.response.status_code)) from e
        except httpx.RequestError as e:
            EXTERNAL_API_COUNT.labels(source=SOURCE, status="error").inc()
            raise ExternalApiError(SOURCE, f"Connection error: {e}") from e
        except (ProductNotFoundError, RateLimitedError, UnauthorizedError) as e:
            EXTERNAL_API_COUNT.labels(source=SOURCE, status=e.code.lower()).inc()
            raise
        finally:
            EXTERNAL_API_DURATION.labels(source=SOURCE).observe(time.perf_counter() - started)

        EXTERNAL_API_COUNT.labels(source=SOURCE, status="ok").inc()
        logger.debug("RedCircle %s request for %s succeeded", request_type, product_id)
        try:
            return response.json()
        except ValueError as e:
            raise ExternalApiError(
                SOURCE, f"Invalid JSON for {product_id}: {e}", ErrorCode.UNKNOWN_ERROR
            ) from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, product_id: str) -> None:
        if response.is_success:
            return

        error_code = _error_code_from_body(response)
        status_code = response.status_code

        if status_code == 404 or error_code == ErrorCode.PRODUCT_NOT_FOUND:
            raise ProductNotFoundError(product_id, SOURCE)
        if status_code == 429 or error_code == ErrorCode.RATE_LIMIT_EXCEEDED:
            raise RateLimitedError(SOURCE, retry_after=response.headers.get("retry-after"))
        if status_code in (401, 403):
            raise UnauthorizedError(SOURCE, status_code)
        response.raise_for_status()

    # ------------------------------------------------------------------
    # Private Normalisierungslogik
    # ------------------------------------------------------------------

    @staticmethod
    def _normalize_store(raw: _RcStoreStock) -> FulfillmentOption:
        address = None
        if raw.address is not None:
            address = StoreAddress(**raw.address.model_dump())
        return FulfillmentOption(
            location_id=raw.store_id,
            location_name=raw.store_name or "",
            in_stock=bool(raw.in_stock),
            quantity=max(raw.stock_level or 0, 0),
            distance=raw.distance,
            address=address,
        )

    @staticmethod
    def _normalize_product(product_id: str, raw: _RcProduct) -> ProductDetails:
        price: Decimal | None = None
        if raw.price is not None and raw.price.value is not None:
            try:
                price = Decimal(str(raw.price.value))
            except InvalidOperation:
                price = None

        stock_status = raw.stock_status if raw.stock_status in ("IN_STOCK", "OUT_OF_STOCK") else None
        return ProductDetails(
            product_id=raw.tcin or product_id,
            title=raw.title or "Unknown Product",
            link=raw.link,
            brand=raw.brand,
            price=price,
            currency=raw.price.currency if raw.price else None,
            rating=raw.rating,
            main_image=raw.main_image,
            stock_status=stock_status,
            description=raw.description,
        )


def _parse(model: type[_M], data: Any, product_id: str) -> _M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ExternalApiError(
            SOURCE,
            f"Unexpected response shape for {product_id}: {e.error_count()} invalid fields",
            ErrorCode.UNKNOWN_ERROR,
        ) from e


def _error_code_from_body(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        code = error.get("code")
        return str(code) if code is not None else None
    return None


def _distance_key(option: FulfillmentOption) -> float:
    return option.distance if option.distance is not None else float("inf")
