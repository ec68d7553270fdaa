from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Generic, TypeVar

from smart_select.core.metrics import CACHE_HITS, CACHE_MISSES
from smart_select.domain.identifiers import normalize_product_id
from smart_select.domain.models import CacheStats

logger = logging.getLogger(__name__)

T = TypeVar("T")

STOCK_NAMESPACE = "stock"
CATALOG_NAMESPACE = "catalog"

# Platzhalter für "keine Store-ID", damit stock:12345::… nicht mit leeren IDs kollidiert
_NO_STORE = "none"


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    stored_at: float
    ttl_seconds: int

    def is_expired(self, now: float) -> bool:
        return (now - self.stored_at) > self.ttl_seconds


class TTLCache(Generic[T]):
    """
    Einfacher TTL-basierter In-Memory Cache für einen Namespace.
    Einträge sind nach dem Schreiben unveränderlich und verschwinden erst nach Ablauf.
    """

    def __init__(self, namespace: str, default_ttl_seconds: int) -> None:
        if default_ttl_seconds <= 0:
            raise ValueError(f"default_ttl_seconds must be positive, got {default_ttl_seconds}")
        self._namespace = namespace
        self._default_ttl = default_ttl_seconds
        self._storage: dict[str, CacheEntry[T]] = {}
        self._hits = 0
        self._misses = 0

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def default_ttl_seconds(self) -> int:
        return self._default_ttl

    def get(self, key: str) -> T | None:
        """Holt einen Wert aus dem Cache, sofern vorhanden und nicht abgelaufen."""
        entry = self._storage.get(key)
        if entry is not None and entry.is_expired(time.time()):
            del self._storage[key]
            entry = None

        if entry is None:
            self._misses += 1
            CACHE_MISSES.labels(namespace=self._namespace).inc()
            return None

        self._hits += 1
        CACHE_HITS.labels(namespace=self._namespace).inc()
        logger.debug("Cache hit %s", key)
        return entry.value

    def set(self, key: str, value: T, ttl_seconds: int | None = None) -> bool:
        """
        Speichert einen Wert mit aktuellem Zeitstempel.
        Ohne ttl_seconds gilt der Default des Namespace; "nie ablaufen" gibt es nicht.
        """
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl}")
        self._storage[key] = CacheEntry(value=value, stored_at=time.time(), ttl_seconds=ttl)
        logger.debug("Cache set %s (ttl=%ss)", key, ttl)
        return True

    def delete(self, key: str) -> bool:
        return self._storage.pop(key, None) is not None

    def clear(self) -> None:
        self._storage.clear()

    def __len__(self) -> int:
        now = time.time()
        return sum(1 for entry in self._storage.values() if not entry.is_expired(now))

    def stats(self) -> CacheStats:
        lookups = self._hits + self._misses
        return CacheStats(
            namespace=self._namespace,
            keys=len(self),
            hits=self._hits,
            misses=self._misses,
            hit_rate=self._hits / lookups if lookups else 0.0,
        )


# ---------------------------------------------------------------------------
# Cache-Key-Erzeugung
# ---------------------------------------------------------------------------


def stock_cache_key(zip_code: str, product_id: str, store_id: str | None = None) -> str:
    return f"stock:{zip_code}:{store_id or _NO_STORE}:{normalize_product_id(product_id)}"


def product_cache_key(product_id: str) -> str:
    return f"product:{normalize_product_id(product_id)}"
