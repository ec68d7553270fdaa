# src/smart_select/domain/ports.py
from abc import ABC, abstractmethod
from enum import StrEnum

from smart_select.domain.models import FulfillmentOption, ProductDetails


class StockSourcePort(ABC):
    """
    Abstrakte Schnittstelle für die externe Bestands- und Katalogquelle.
    Ein Aufruf deckt genau einen Identifier ab, einen Batch-Modus gibt es nicht.
    """

    @abstractmethod
    async def lookup_stock(
        self, product_id: str, zip_code: str, store_id: str | None = None
    ) -> list[FulfillmentOption]:
        """
        Liefert die Standorte für ein Produkt, aufsteigend nach Entfernung sortiert.

        Raises:
            ProductNotFoundError: Produkt ist beim Upstream unbekannt.
            RateLimitedError: Upstream hat den Aufruf gedrosselt.
            UnauthorizedError: API-Key fehlt oder ist ungültig.
            ExternalApiError: Bei Kommunikationsproblemen mit der externen API.
        """
        ...

    @abstractmethod
    async def fetch_product(self, product_id: str) -> ProductDetails:
        """Ruft die Katalog-Metadaten eines Produkts ab (gleiche Fehler wie lookup_stock)."""
        ...


# ---------------------------------------------------------------------------
# Custom Domain Exceptions
# ---------------------------------------------------------------------------


class ErrorCode(StrEnum):
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    UNAUTHORIZED = "UNAUTHORIZED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    NO_STORES = "NO_STORES"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class UpstreamError(Exception):
    def __init__(self, source: str, detail: str, code: str = ErrorCode.UNKNOWN_ERROR):
        super().__init__(f"External API error from '{source}': {detail}")
        self.source = source
        self.detail = detail
        self.code = str(code)


class ProductNotFoundError(UpstreamError):
    def __init__(self, product_id: str, source: str):
        super().__init__(source, f"Product '{product_id}' not found", ErrorCode.PRODUCT_NOT_FOUND)
        self.product_id = product_id


class RateLimitedError(UpstreamError):
    def __init__(self, source: str, retry_after: str | None = None):
        super().__init__(source, "Rate limit exceeded", ErrorCode.RATE_LIMIT_EXCEEDED)
        self.retry_after = retry_after


class UnauthorizedError(UpstreamError):
    def __init__(self, source: str, status_code: int):
        super().__init__(
            source, f"Invalid API key or unauthorized (HTTP {status_code})", ErrorCode.UNAUTHORIZED
        )
        self.status_code = status_code


class ExternalApiError(UpstreamError):
    def __init__(self, source: str, detail: str, code: str = ErrorCode.NETWORK_ERROR):
        super().__init__(source, detail, code)


class UpstreamTimeoutError(UpstreamError):
    def __init__(self, source: str, timeout_seconds: float):
        super().__init__(source, f"No response within {timeout_seconds}s", ErrorCode.TIMEOUT)
        self.timeout_seconds = timeout_seconds
