# src/smart_select/api/v1/stock.py
from typing import Annotated

from fastapi import APIRouter, Depends

from smart_select.api.dependencies import get_availability_resolver, get_smart_select_service
from smart_select.domain.identifiers import unique_product_ids
from smart_select.domain.models import (
    SmartSelectRequest,
    SmartSelectResponse,
    StockWarmRequest,
    StockWarmResponse,
)
from smart_select.services.availability_resolver import AvailabilityResolver
from smart_select.services.smart_select_service import SmartSelectService

router = APIRouter(prefix="/stock", tags=["Stock"])

SmartSelectServiceDep = Annotated[SmartSelectService, Depends(get_smart_select_service)]
ResolverDep = Annotated[AvailabilityResolver, Depends(get_availability_resolver)]


@router.post(
    "/smart-select",
    response_model=SmartSelectResponse,
    response_model_exclude_none=True,
)
async def smart_select(
    payload: SmartSelectRequest,
    service: SmartSelectServiceDep,
) -> SmartSelectResponse:
    """
    Prüft den Bestand aller Primär- und Backup-Produkte am Standort und liefert
    die Redirect-URL. Nicht verfügbare Produkte werden durch das erste
    verfügbare Backup ersetzt; ohne Treffer wird auf longLink/customUrl zurückgefallen.
    """
    return await service.select(payload)


@router.post("/warm", response_model=StockWarmResponse)
async def warm_stock_cache(
    payload: StockWarmRequest, resolver: ResolverDep
) -> StockWarmResponse:
    """Lädt den Bestand für die angegebenen Produkte vorab in den Cache."""
    warmed = await resolver.warm(payload.product_ids, payload.location)
    requested = len(unique_product_ids(payload.product_ids))
    return StockWarmResponse(requested=requested, warmed=warmed)
