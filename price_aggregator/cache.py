"""
Cache Store contract and an in-memory TTL implementation.

The aggregation layer only needs get/set/delete. A read after an entry's
expiry is a miss; entries are never served stale. Expiry is checked lazily
on read.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheStore(Protocol):
    """Key/value store with per-entry TTL. `get` returns None on a miss."""

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl_s: float) -> None: ...

    def delete(self, key: str) -> None: ...


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class InMemoryTTLCache:
    """
    Thread-safe in-process cache. Each set is a full overwrite of one key.

    `clock` defaults to time.monotonic and can be replaced in tests.
    """

    def __init__(
        self,
        default_ttl_s: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl_s = default_ttl_s
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        if not key:
            return None
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._store[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl_s: Optional[float] = None) -> None:
        if not key:
            return
        ttl = self._default_ttl_s if ttl_s is None else ttl_s
        entry = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl)
        with self._lock:
            self._store[key] = entry

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def clear_expired(self) -> int:
        """Drop every expired entry; return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._store.items() if e.is_expired(now)]
            for k in expired:
                del self._store[k]
        if expired:
            logger.debug("Cleared %d expired cache entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


# Cache key builders
def price_key(asset: str, currency: str) -> str:
    return f"price_{asset.upper()}_{currency.upper()}"


def history_key(asset: str, currency: str, period: str, interval: str) -> str:
    return f"history_{asset.upper()}_{currency.upper()}_{period}_{interval}"


def listing_key(limit: int, include_metadata: bool) -> str:
    return f"cryptos_list_{limit}_{str(include_metadata).lower()}"


def details_key(asset: str, currency: str) -> str:
    return f"crypto_details_{asset.upper()}_{currency}"


def market_info_key(limit: int, currency: str) -> str:
    return f"market_info_{limit}_{currency}"
