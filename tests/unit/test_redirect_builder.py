import pytest
from pydantic import ValidationError

from smart_select.domain.models import (
    CartOptionsSummary,
    ProductAvailability,
    RedirectDecision,
    SelectedProduct,
    SelectionResult,
    UrlType,
)
from smart_select.services.redirect_builder import RedirectUrlBuilder

LONG_LINK = "https://www.target.com/c/holiday-gifts"
CUSTOM_URL = "https://example.com/landing"


@pytest.fixture
def builder() -> RedirectUrlBuilder:
    return RedirectUrlBuilder(product_url_template="https://www.target.com/p/-/A-{product_id}")


def _selection(*product_ids: str) -> SelectionResult:
    return SelectionResult(
        selected_products=[
            SelectedProduct(
                product_id=pid,
                availability=ProductAvailability(
                    product_id=pid, in_stock=True, available_quantity=3
                ),
            )
            for pid in product_ids
        ]
    )


def test_single_product_redirects_to_pdp(builder: RedirectUrlBuilder) -> None:
    decision = builder.build(_selection("12345678"), LONG_LINK)

    assert decision.url_type == UrlType.PDP
    assert decision.redirect_url == "https://www.target.com/p/-/A-12345678"
    assert decision.summary.fallback_applied is False
    assert decision.summary.final_type == UrlType.PDP
    assert decision.summary.include_store_id == "never"


def test_single_product_with_allow_pdp_true(builder: RedirectUrlBuilder) -> None:
    decision = builder.build(_selection("12345678"), LONG_LINK, allow_pdp=True)
    assert decision.url_type == UrlType.PDP


def test_single_product_with_pdp_disallowed_falls_back(builder: RedirectUrlBuilder) -> None:
    decision = builder.build(_selection("12345678"), LONG_LINK, allow_pdp=False)

    assert decision.url_type == UrlType.LONG_LINK
    assert decision.redirect_url == LONG_LINK
    assert decision.summary.fallback_applied is True


def test_no_products_uses_long_link(builder: RedirectUrlBuilder) -> None:
    decision = builder.build(_selection(), LONG_LINK)

    assert decision.url_type == UrlType.LONG_LINK
    assert decision.redirect_url == LONG_LINK
    assert decision.summary.fallback_applied is True


def test_no_products_prefers_custom_url(builder: RedirectUrlBuilder) -> None:
    decision = builder.build(_selection(), LONG_LINK, custom_url=CUSTOM_URL)

    assert decision.url_type == UrlType.CUSTOM
    assert decision.redirect_url == CUSTOM_URL
    assert decision.summary.fallback_applied is True


@pytest.mark.parametrize(
    ("custom_url", "expected_type", "expected_url"),
    [(None, UrlType.LONG_LINK, LONG_LINK), (CUSTOM_URL, UrlType.CUSTOM, CUSTOM_URL)],
)
def test_multiple_products_fall_back(
    builder: RedirectUrlBuilder,
    custom_url: str | None,
    expected_type: UrlType,
    expected_url: str,
) -> None:
    decision = builder.build(_selection("12345678", "87654321"), LONG_LINK, custom_url=custom_url)

    assert decision.url_type == expected_type
    assert decision.redirect_url == expected_url
    assert decision.summary.fallback_applied is True


def test_requested_mode_is_echoed(builder: RedirectUrlBuilder) -> None:
    decision = builder.build(_selection("12345678"), LONG_LINK, mode="items")
    assert decision.summary.mode == "items"


def test_decision_rejects_inconsistent_fallback_flag() -> None:
    with pytest.raises(ValidationError):
        RedirectDecision(
            redirect_url=LONG_LINK,
            url_type=UrlType.LONG_LINK,
            summary=CartOptionsSummary(
                mode="auto", fallback_applied=False, final_type=UrlType.LONG_LINK
            ),
        )
