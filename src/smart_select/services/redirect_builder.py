# src/smart_select/services/redirect_builder.py
from __future__ import annotations

import logging

from smart_select.domain.models import (
    CartOptionsSummary,
    RedirectDecision,
    SelectionResult,
    UrlType,
)

logger = logging.getLogger(__name__)


class RedirectUrlBuilder:
    """
    Leitet aus dem Auswahl-Ergebnis die Ziel-URL ab.
    Das Ziel kennt nur Einzelprodukt-Seiten (PDP), keine Multi-Item-Warenkörbe.
    """

    def __init__(self, product_url_template: str) -> None:
        self._template = product_url_template

    def product_url(self, product_id: str) -> str:
        return self._template.format(product_id=product_id)

    def build(
        self,
        selection: SelectionResult,
        fallback_long_url: str,
        custom_url: str | None = None,
        allow_pdp: bool | None = None,
        mode: str = "auto",
    ) -> RedirectDecision:
        products = selection.selected_products

        if len(products) == 1 and allow_pdp is not False:
            url_type = UrlType.PDP
            redirect_url = self.product_url(products[0].product_id)
        else:
            if len(products) > 1:
                logger.debug(
                    "%d products selected, multi-item destinations unsupported; using fallback",
                    len(products),
                )
            url_type = UrlType.CUSTOM if custom_url else UrlType.LONG_LINK
            redirect_url = custom_url or fallback_long_url

        return RedirectDecision(
            redirect_url=redirect_url,
            url_type=url_type,
            summary=CartOptionsSummary(
                mode=mode,
                fallback_applied=url_type != UrlType.PDP,
                final_type=url_type,
            ),
        )
