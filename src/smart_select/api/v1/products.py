from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from smart_select.api.dependencies import get_catalog_service
from smart_select.domain.identifiers import extract_tcin_from_url, is_valid_tcin
from smart_select.domain.models import ProductBatchResponse, ProductDetails
from smart_select.domain.ports import (
    ProductNotFoundError,
    RateLimitedError,
    UnauthorizedError,
    UpstreamError,
)
from smart_select.services.catalog_service import CatalogService

router = APIRouter(prefix="/products", tags=["Products"])

CatalogServiceDep = Annotated[CatalogService, Depends(get_catalog_service)]


def _resolve_tcin(value: str) -> str:
    """Akzeptiert eine TCIN oder eine Produkt-URL mit /A-12345678."""
    value = value.strip()
    if is_valid_tcin(value):
        return value
    tcin = extract_tcin_from_url(value)
    if tcin is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"'{value}' is neither an 8-digit TCIN nor a product URL.",
        )
    return tcin


@router.get("", response_model=ProductBatchResponse, response_model_exclude_none=True)
async def get_products(
    service: CatalogServiceDep,
    ids: Annotated[list[str], Query()],
) -> ProductBatchResponse:
    """
    Liefert die Metadaten mehrerer Produkte. Fehler einzelner Produkte landen in
    `errors` und brechen die Anfrage nicht ab.
    """
    product_ids = [_resolve_tcin(value) for value in ids]
    products, errors = await service.get_products(product_ids)
    return ProductBatchResponse(products=list(products.values()), errors=errors)


@router.get("/{product_id}", response_model=ProductDetails, response_model_exclude_none=True)
async def get_product(
    service: CatalogServiceDep,
    product_id: str,
    skip_cache: bool = Query(False, alias="skipCache"),
) -> ProductDetails:
    """
    Liefert die Katalog-Metadaten eines Produkts anhand seiner TCIN.
    """
    if not is_valid_tcin(product_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"'{product_id}' is not an 8-digit TCIN.",
        )

    try:
        return await service.get_product(product_id, skip_cache=skip_cache)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except RateLimitedError as e:
        headers = {"Retry-After": e.retry_after} if e.retry_after else None
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(e), headers=headers
        )
    except UnauthorizedError:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Upstream rejected the configured credentials.",
        )
    except UpstreamError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
