# src/smart_select/domain/models.py
from __future__ import annotations

import re
from decimal import Decimal
from enum import StrEnum
from typing import Literal, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from smart_select.domain.identifiers import is_valid_tcin

_ZIP_CODE_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")


def _check_zip_code(value: str) -> str:
    if not _ZIP_CODE_PATTERN.fullmatch(value):
        raise ValueError("zipCode must be in format 12345 or 12345-6789")
    return value


class _WireModel(BaseModel):
    """Basis für alle Modelle: snake_case in Python, camelCase auf der Leitung."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------


class SubstitutionReason(StrEnum):
    OUT_OF_STOCK = "OUT_OF_STOCK"
    PRIMARY_UNUSABLE = "PRIMARY_UNUSABLE"


class UrlType(StrEnum):
    PDP = "pdp"
    LONG_LINK = "longLink"
    CUSTOM = "custom"


class BackupGroup(_WireModel):
    primary_id: str
    # Reihenfolge = Substitutionspriorität
    backup_ids: list[str] = Field(default_factory=list)


class LocationContext(_WireModel):
    zip_code: str
    store_id: str | None = None


class StoreAddress(_WireModel):
    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None


class FulfillmentOption(_WireModel):
    """Ein vom Upstream gemeldeter Standort für ein Produkt."""

    location_id: str
    location_name: str
    in_stock: bool
    quantity: int = Field(ge=0)
    distance: float | None = None
    address: StoreAddress | None = None


# ---------------------------------------------------------------------------
# Aggregate: ProductAvailability
# Normalisiertes Ergebnis pro Identifier, wird ausschließlich vom Resolver erzeugt.
# ---------------------------------------------------------------------------


class ProductAvailability(_WireModel):
    product_id: str
    in_stock: bool
    available_quantity: int = Field(ge=0)
    location_id: str | None = None
    location_name: str | None = None
    distance: float | None = None

    @model_validator(mode="after")
    def in_stock_requires_quantity(self) -> Self:
        if self.in_stock and self.available_quantity == 0:
            raise ValueError("in_stock=True erfordert available_quantity > 0")
        return self

    @classmethod
    def no_data(cls, product_id: str) -> ProductAvailability:
        return cls(product_id=product_id, in_stock=False, available_quantity=0)

    @property
    def is_usable(self) -> bool:
        return self.in_stock and self.available_quantity > 0


class ProductLookupError(_WireModel):
    product_id: str
    message: str
    code: str


# ---------------------------------------------------------------------------
# Substitution & Redirect
# ---------------------------------------------------------------------------


class SubstitutionRecord(_WireModel):
    original_id: str
    replacement_id: str
    reason: SubstitutionReason


class SelectedProduct(_WireModel):
    product_id: str
    availability: ProductAvailability


class SelectionResult(_WireModel):
    selected_products: list[SelectedProduct] = Field(default_factory=list)
    substitutions: list[SubstitutionRecord] = Field(default_factory=list)
    unavailable_groups: list[str] = Field(default_factory=list)

    @property
    def groups_processed(self) -> int:
        return len(self.selected_products) + len(self.unavailable_groups)


class CartUrlOptions(_WireModel):
    """Wird akzeptiert, hat aber keinen Einfluss: das Ziel unterstützt nur PDP-Links."""

    mode: Literal["auto", "offers", "items"] = "auto"
    fallback_mode: Literal["offers", "items"] | None = None
    include_store_id: Literal["never", "auto", "always"] | None = None
    prefer_items_for_walmart: bool | None = None
    prefer_offers_for_marketplace: bool | None = None


class CartOptionsSummary(_WireModel):
    mode: str
    # Die PDP-URL enthält nie eine Store-ID
    include_store_id: Literal["never"] = "never"
    fallback_applied: bool
    final_type: UrlType


class RedirectDecision(_WireModel):
    redirect_url: str
    url_type: UrlType
    summary: CartOptionsSummary

    @model_validator(mode="after")
    def fallback_matches_url_type(self) -> Self:
        if self.summary.fallback_applied != (self.url_type != UrlType.PDP):
            raise ValueError("fallback_applied muss genau dann gesetzt sein, wenn url_type != pdp")
        if self.summary.final_type != self.url_type:
            raise ValueError("summary.final_type muss url_type entsprechen")
        return self


# ---------------------------------------------------------------------------
# Katalog-Metadaten
# ---------------------------------------------------------------------------


class ProductDetails(_WireModel):
    product_id: str
    title: str
    link: str | None = None
    brand: str | None = None
    price: Decimal | None = Field(default=None, ge=0)
    currency: str | None = None
    rating: float | None = None
    main_image: str | None = None
    stock_status: Literal["IN_STOCK", "OUT_OF_STOCK"] | None = None
    description: str | None = None


class CacheStats(_WireModel):
    namespace: str
    keys: int
    hits: int
    misses: int
    hit_rate: float


# ---------------------------------------------------------------------------
# API Request/Response Schemas
# ---------------------------------------------------------------------------


class SmartSelectRequest(_WireModel):
    short_link: str = Field(min_length=1)
    long_link: str = Field(min_length=1)
    backups: list[BackupGroup] = Field(min_length=1)
    zip_code: str
    store_id: str | None = None
    custom_url: str | None = None
    allow_pdp: bool | None = None
    cart_url_options: CartUrlOptions | None = None

    @field_validator("zip_code")
    @classmethod
    def check_zip_code(cls, value: str) -> str:
        return _check_zip_code(value)

    @field_validator("backups")
    @classmethod
    def check_product_ids(cls, groups: list[BackupGroup]) -> list[BackupGroup]:
        for i, group in enumerate(groups):
            if not is_valid_tcin(group.primary_id):
                raise ValueError(f"backups[{i}].primaryId must be an 8-digit TCIN")
            for j, backup_id in enumerate(group.backup_ids):
                if not is_valid_tcin(backup_id):
                    raise ValueError(f"backups[{i}].backupIds[{j}] must be an 8-digit TCIN")
        return groups

    @property
    def location(self) -> LocationContext:
        return LocationContext(zip_code=self.zip_code, store_id=self.store_id)


class SmartSelectResponse(_WireModel):
    redirect_url: str
    backups_used: bool
    backup_products: list[SubstitutionRecord]
    all_products_unavailable: bool
    cart_url_type: UrlType
    store_id_attached: str | None = None
    cart_options_summary: CartOptionsSummary


class StockWarmRequest(_WireModel):
    zip_code: str
    store_id: str | None = None
    product_ids: list[str] = Field(min_length=1)

    @field_validator("zip_code")
    @classmethod
    def check_zip_code(cls, value: str) -> str:
        return _check_zip_code(value)

    @field_validator("product_ids")
    @classmethod
    def check_product_ids(cls, product_ids: list[str]) -> list[str]:
        for i, product_id in enumerate(product_ids):
            if not is_valid_tcin(product_id):
                raise ValueError(f"productIds[{i}] must be an 8-digit TCIN")
        return product_ids

    @property
    def location(self) -> LocationContext:
        return LocationContext(zip_code=self.zip_code, store_id=self.store_id)


class StockWarmResponse(_WireModel):
    requested: int
    warmed: int


class ProductBatchResponse(_WireModel):
    products: list[ProductDetails]
    errors: list[ProductLookupError]
