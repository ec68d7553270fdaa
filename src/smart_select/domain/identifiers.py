# src/smart_select/domain/identifiers.py
from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from typing import Generic, TypeVar

_TCIN_PATTERN = re.compile(r"\d{8}")
_TCIN_IN_URL_PATTERN = re.compile(r"/A-(\d{8})")

V = TypeVar("V")


def normalize_product_id(product_id: str | int) -> str:
    """
    Kanonische Form eines Produkt-Identifiers.

    Numerische Identifier werden in ihre kanonische Zahl-Darstellung
    überführt ("00123", 123 und " 123" ergeben "123"), alle anderen
    bleiben bis auf Whitespace unverändert.
    """
    text = str(product_id).strip()
    if text.isascii() and text.isdigit():
        return str(int(text))
    return text


def unique_product_ids(product_ids: Iterable[str | int]) -> list[str]:
    """Dedupliziert nach kanonischer Form; Reihenfolge und Original-Darstellung bleiben erhalten."""
    seen: set[str] = set()
    result: list[str] = []
    for product_id in product_ids:
        key = normalize_product_id(product_id)
        if key in seen:
            continue
        seen.add(key)
        result.append(str(product_id))
    return result


def is_valid_tcin(product_id: str) -> bool:
    return bool(_TCIN_PATTERN.fullmatch(product_id))


def extract_tcin_from_url(url: str) -> str | None:
    match = _TCIN_IN_URL_PATTERN.search(url)
    return match.group(1) if match else None


class ProductIdMap(Mapping[str, V], Generic[V]):
    """
    Mapping mit Produkt-Identifiern als Schlüssel.
    Jeder Zugriff läuft über normalize_product_id, daher liefern "0123"
    und "123" denselben Eintrag.
    """

    def __init__(self, items: Mapping[str, V] | None = None) -> None:
        self._data: dict[str, V] = {}
        if items:
            for key, value in items.items():
                self[key] = value

    def __setitem__(self, product_id: str | int, value: V) -> None:
        self._data[normalize_product_id(product_id)] = value

    def __getitem__(self, product_id: str | int) -> V:
        return self._data[normalize_product_id(product_id)]

    def __contains__(self, product_id: object) -> bool:
        if not isinstance(product_id, (str, int)):
            return False
        return normalize_product_id(product_id) in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"ProductIdMap({self._data!r})"
