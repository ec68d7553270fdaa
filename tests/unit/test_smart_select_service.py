from unittest.mock import AsyncMock

import pytest

from factories import in_stock, out_of_stock, stock_table
from smart_select.domain.models import (
    BackupGroup,
    CartUrlOptions,
    SmartSelectRequest,
    SubstitutionReason,
    UrlType,
)
from smart_select.domain.ports import UnauthorizedError
from smart_select.services.availability_resolver import AvailabilityResolver
from smart_select.services.redirect_builder import RedirectUrlBuilder
from smart_select.services.smart_select_service import SmartSelectService
from smart_select.services.ttl_cache import STOCK_NAMESPACE, TTLCache

LONG_LINK = "https://www.target.com/c/holiday-gifts"


@pytest.fixture
def service(stock_source: AsyncMock) -> SmartSelectService:
    resolver = AvailabilityResolver(
        source=stock_source, stock_cache=TTLCache(STOCK_NAMESPACE, 300)
    )
    builder = RedirectUrlBuilder(product_url_template="https://www.target.com/p/-/A-{product_id}")
    return SmartSelectService(resolver=resolver, url_builder=builder)


def _request(*groups: BackupGroup, **kwargs) -> SmartSelectRequest:
    return SmartSelectRequest(
        short_link="gift-1",
        long_link=LONG_LINK,
        backups=list(groups),
        zip_code="55401",
        **kwargs,
    )


@pytest.mark.asyncio  # type: ignore[misc]
async def test_available_primary_redirects_to_pdp(
    service: SmartSelectService, stock_source: AsyncMock
) -> None:
    stock_source.lookup_stock.side_effect = stock_table({"12345678": in_stock()})

    response = await service.select(_request(BackupGroup(primary_id="12345678")))

    assert response.redirect_url == "https://www.target.com/p/-/A-12345678"
    assert response.cart_url_type == UrlType.PDP
    assert response.backups_used is False
    assert response.backup_products == []
    assert response.all_products_unavailable is False
    assert response.cart_options_summary.fallback_applied is False


@pytest.mark.asyncio  # type: ignore[misc]
async def test_out_of_stock_primary_is_substituted(
    service: SmartSelectService, stock_source: AsyncMock
) -> None:
    stock_source.lookup_stock.side_effect = stock_table(
        {"12345678": out_of_stock(), "87654321": in_stock()}
    )

    response = await service.select(
        _request(BackupGroup(primary_id="12345678", backup_ids=["87654321"]))
    )

    assert response.redirect_url == "https://www.target.com/p/-/A-87654321"
    assert response.backups_used is True
    assert len(response.backup_products) == 1
    assert response.backup_products[0].original_id == "12345678"
    assert response.backup_products[0].replacement_id == "87654321"
    assert response.backup_products[0].reason == SubstitutionReason.OUT_OF_STOCK


@pytest.mark.asyncio  # type: ignore[misc]
async def test_two_available_groups_fall_back_to_long_link(
    service: SmartSelectService, stock_source: AsyncMock
) -> None:
    stock_source.lookup_stock.side_effect = stock_table(
        {"11111111": in_stock(), "22222222": out_of_stock(), "33333333": in_stock()}
    )

    response = await service.select(
        _request(
            BackupGroup(primary_id="11111111"),
            BackupGroup(primary_id="22222222", backup_ids=["33333333"]),
        )
    )

    assert response.redirect_url == LONG_LINK
    assert response.cart_url_type == UrlType.LONG_LINK
    assert response.cart_options_summary.fallback_applied is True
    assert response.all_products_unavailable is False


@pytest.mark.asyncio  # type: ignore[misc]
async def test_two_available_groups_prefer_custom_url(
    service: SmartSelectService, stock_source: AsyncMock
) -> None:
    stock_source.lookup_stock.side_effect = stock_table(
        {"11111111": in_stock(), "22222222": in_stock()}
    )

    response = await service.select(
        _request(
            BackupGroup(primary_id="11111111"),
            BackupGroup(primary_id="22222222"),
            custom_url="https://example.com/landing",
        )
    )

    assert response.redirect_url == "https://example.com/landing"
    assert response.cart_url_type == UrlType.CUSTOM


@pytest.mark.asyncio  # type: ignore[misc]
async def test_nothing_available_reports_all_products_unavailable(
    service: SmartSelectService, stock_source: AsyncMock
) -> None:
    stock_source.lookup_stock.side_effect = stock_table(
        {"12345678": out_of_stock(), "87654321": out_of_stock()}
    )

    response = await service.select(
        _request(BackupGroup(primary_id="12345678", backup_ids=["87654321"]))
    )

    assert response.all_products_unavailable is True
    assert response.backups_used is False
    assert response.redirect_url == LONG_LINK
    assert response.cart_url_type == UrlType.LONG_LINK


@pytest.mark.asyncio  # type: ignore[misc]
async def test_rejected_credentials_still_produce_redirect(
    service: SmartSelectService, stock_source: AsyncMock
) -> None:
    stock_source.lookup_stock.side_effect = UnauthorizedError("redcircle", 401)

    response = await service.select(_request(BackupGroup(primary_id="12345678")))

    assert response.all_products_unavailable is True
    assert response.redirect_url == LONG_LINK


@pytest.mark.asyncio  # type: ignore[misc]
async def test_store_id_is_never_attached(
    service: SmartSelectService, stock_source: AsyncMock
) -> None:
    stock_source.lookup_stock.side_effect = stock_table({"12345678": in_stock()})

    response = await service.select(
        _request(BackupGroup(primary_id="12345678"), store_id="1234")
    )

    assert response.store_id_attached is None
    assert "1234" not in response.redirect_url
    assert response.cart_options_summary.include_store_id == "never"
    stock_source.lookup_stock.assert_awaited_once_with("12345678", "55401", "1234")


@pytest.mark.asyncio  # type: ignore[misc]
async def test_cart_mode_is_echoed_in_summary(
    service: SmartSelectService, stock_source: AsyncMock
) -> None:
    stock_source.lookup_stock.side_effect = stock_table({"12345678": in_stock()})

    response = await service.select(
        _request(
            BackupGroup(primary_id="12345678"),
            cart_url_options=CartUrlOptions(mode="offers"),
        )
    )

    assert response.cart_options_summary.mode == "offers"
    assert response.cart_url_type == UrlType.PDP


@pytest.mark.asyncio  # type: ignore[misc]
async def test_repeated_selection_uses_stock_cache(
    service: SmartSelectService, stock_source: AsyncMock
) -> None:
    stock_source.lookup_stock.side_effect = stock_table({"12345678": in_stock()})
    request = _request(BackupGroup(primary_id="12345678"))

    first = await service.select(request)
    second = await service.select(request)

    assert first == second
    assert stock_source.lookup_stock.await_count == 1
