# src/smart_select/services/smart_select_service.py
from __future__ import annotations

import logging
import time

from smart_select.core.metrics import ALL_PRODUCTS_UNAVAILABLE, SUBSTITUTIONS
from smart_select.domain.models import (
    SelectionResult,
    SmartSelectRequest,
    SmartSelectResponse,
)
from smart_select.services.availability_resolver import AvailabilityResolver
from smart_select.services.redirect_builder import RedirectUrlBuilder
from smart_select.services.substitution import collect_product_ids, select_products

logger = logging.getLogger(__name__)


class SmartSelectService:
    """
    Verfügbarkeit prüfen, Backups einsetzen, Redirect bestimmen.
    Liefert immer eine Redirect-URL, notfalls den longLink bzw. customUrl.
    """

    def __init__(self, resolver: AvailabilityResolver, url_builder: RedirectUrlBuilder) -> None:
        self._resolver = resolver
        self._url_builder = url_builder

    async def select(self, request: SmartSelectRequest) -> SmartSelectResponse:
        started = time.perf_counter()

        product_ids = collect_product_ids(request.backups)
        batch = await self._resolver.resolve_batch(product_ids, request.location)
        if batch.unauthorized:
            logger.error(
                "Upstream credentials rejected; redirect for %s falls back", request.short_link
            )

        selection = select_products(request.backups, batch.availability)
        mode = request.cart_url_options.mode if request.cart_url_options else "auto"
        decision = self._url_builder.build(
            selection,
            fallback_long_url=request.long_link,
            custom_url=request.custom_url,
            allow_pdp=request.allow_pdp,
            mode=mode,
        )

        self._log_analytics_events(request, selection)
        logger.info(
            "Smart select finished",
            extra={
                "event": "api_call",
                "short_link": request.short_link,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                "products_checked": len(product_ids),
                "cache_hits": batch.cache_hits,
                "upstream_calls": batch.upstream_calls,
                "substitutions": len(selection.substitutions),
                "url_type": decision.url_type.value,
            },
        )

        return SmartSelectResponse(
            redirect_url=decision.redirect_url,
            backups_used=bool(selection.substitutions),
            backup_products=selection.substitutions,
            all_products_unavailable=not selection.selected_products,
            cart_url_type=decision.url_type,
            store_id_attached=None,
            cart_options_summary=decision.summary,
        )

    @staticmethod
    def _log_analytics_events(request: SmartSelectRequest, selection: SelectionResult) -> None:
        for substitution in selection.substitutions:
            SUBSTITUTIONS.labels(reason=substitution.reason.value).inc()
            logger.info(
                "Product substitution %s -> %s",
                substitution.original_id,
                substitution.replacement_id,
                extra={
                    "event": "product_substitution",
                    "short_link": request.short_link,
                    "reason": substitution.reason.value,
                    "zip_code": request.zip_code,
                    "store_id": request.store_id,
                },
            )

        if not selection.selected_products:
            ALL_PRODUCTS_UNAVAILABLE.inc()
            logger.info(
                "All products unavailable for %s",
                request.short_link,
                extra={
                    "event": "all_products_unavailable",
                    "primary_product_ids": [g.primary_id for g in request.backups],
                    "zip_code": request.zip_code,
                    "fallback_url": request.custom_url or request.long_link,
                },
            )
