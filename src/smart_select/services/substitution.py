# src/smart_select/services/substitution.py
from __future__ import annotations

import logging
from collections.abc import Mapping

from smart_select.domain.identifiers import unique_product_ids
from smart_select.domain.models import (
    BackupGroup,
    ProductAvailability,
    SelectedProduct,
    SelectionResult,
    SubstitutionReason,
    SubstitutionRecord,
)

logger = logging.getLogger(__name__)


def collect_product_ids(groups: list[BackupGroup]) -> list[str]:
    """Alle Primär- und Backup-IDs in Gruppenreihenfolge, ohne Duplikate."""
    ids: list[str] = []
    for group in groups:
        ids.append(group.primary_id)
        ids.extend(group.backup_ids)
    return unique_product_ids(ids)


def is_available(availability: ProductAvailability | None) -> bool:
    return availability is not None and availability.is_usable


def select_products(
    groups: list[BackupGroup],
    availability: Mapping[str, ProductAvailability],
) -> SelectionResult:
    """
    Wählt pro Gruppe genau ein verfügbares Produkt.

    Ist die Primär-ID nicht verfügbar, gewinnt die erste verfügbare
    Backup-ID in Listenreihenfolge; die restlichen Backups werden nicht
    mehr angesehen. Gruppen ohne verfügbares Produkt landen mit ihrer
    Primär-ID in `unavailable_groups`.
    """
    selected: list[SelectedProduct] = []
    substitutions: list[SubstitutionRecord] = []
    unavailable: list[str] = []

    for group in groups:
        primary = availability.get(group.primary_id)
        if primary is not None and is_available(primary):
            selected.append(SelectedProduct(product_id=group.primary_id, availability=primary))
            logger.debug("Using primary %s", group.primary_id)
            continue

        reason = (
            SubstitutionReason.OUT_OF_STOCK
            if primary is not None
            else SubstitutionReason.PRIMARY_UNUSABLE
        )
        replacement = _first_available_backup(group.backup_ids, availability)
        if replacement is None:
            unavailable.append(group.primary_id)
            logger.debug("All options unavailable for %s", group.primary_id)
            continue

        selected.append(replacement)
        substitutions.append(
            SubstitutionRecord(
                original_id=group.primary_id,
                replacement_id=replacement.product_id,
                reason=reason,
            )
        )
        logger.debug("Substituted %s -> %s (%s)", group.primary_id, replacement.product_id, reason)

    return SelectionResult(
        selected_products=selected,
        substitutions=substitutions,
        unavailable_groups=unavailable,
    )


def _first_available_backup(
    backup_ids: list[str], availability: Mapping[str, ProductAvailability]
) -> SelectedProduct | None:
    for backup_id in backup_ids:
        candidate = availability.get(backup_id)
        if candidate is not None and is_available(candidate):
            return SelectedProduct(product_id=backup_id, availability=candidate)
    return None
