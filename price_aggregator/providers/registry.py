"""
Source registry: the set of registered adapters and their fallback order.

Invariant: every registered adapter name appears exactly once in the priority
list. The list may also hold names with no adapter (e.g. a configured provider
that was never registered); resolvers skip those.

All mutators take the registry lock, and readers work on snapshots, so a
mutation never disturbs a resolution already walking its candidate list.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .base import Capability, ProviderHealth, supports
from .resilience import RetryConfig

logger = logging.getLogger(__name__)


def _dedupe(names: Sequence[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for n in names:
        if n not in seen:
            seen.add(n)
            out.append(n)
    return out


class SourceRegistry:
    """
    Owns the adapters, the priority list, API keys, per-provider retry
    policy and observational health records.

    Usage:
        registry = SourceRegistry(priority=["coingecko", "binance"])
        registry.add_api_source("coingecko", CoinGeckoAdapter())
        registry.add_api_source("binance", BinanceAdapter())

        registry.effective_order(preferred="binance")  # ["binance", "coingecko"]
    """

    def __init__(
        self,
        priority: Optional[Sequence[str]] = None,
        api_keys: Optional[Dict[str, str]] = None,
        retry_config: Optional[RetryConfig] = None,
        per_provider: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._adapters: Dict[str, Any] = {}
        self._priority: List[str] = _dedupe(list(priority or []))
        self._api_keys: Dict[str, Optional[str]] = dict(api_keys or {})
        self._retry_config = retry_config or RetryConfig()
        self._per_provider: Dict[str, Dict[str, Any]] = {
            k: dict(v) for k, v in (per_provider or {}).items()
        }
        self._health: Dict[str, ProviderHealth] = {}

    # -- mutators -------------------------------------------------------

    def add_api_source(self, name: str, adapter: Any, priority: Optional[int] = None) -> bool:
        """
        Register (or overwrite) `adapter` under `name`.

        With `priority`, the name is moved to that index (clamped to the list
        bounds); without it, the name is appended unless already listed.
        """
        if not name or adapter is None:
            return False
        if priority is not None and (isinstance(priority, bool) or not isinstance(priority, int)):
            priority = None

        with self._lock:
            self._adapters[name] = adapter
            if priority is not None:
                self._priority = [n for n in self._priority if n != name]
                index = min(max(priority, 0), len(self._priority))
                self._priority.insert(index, name)
            elif name not in self._priority:
                self._priority.append(name)
            self._health.setdefault(name, ProviderHealth(provider_name=name))
            stored_key = self._api_keys.get(name)

        if stored_key and supports(adapter, Capability.KEY_ROTATION):
            adapter.set_api_key(stored_key)
        logger.debug("Registered source %s (priority=%s)", name, priority)
        return True

    def remove_api_source(self, name: str) -> bool:
        with self._lock:
            if not name or name not in self._adapters:
                return False
            del self._adapters[name]
            self._priority = [n for n in self._priority if n != name]
            self._health.pop(name, None)
        logger.debug("Removed source %s", name)
        return True

    def update_api_key(self, name: str, api_key: Optional[str]) -> bool:
        """Store the key even if no adapter is registered; rotate it into the adapter if supported."""
        if not name:
            return False
        with self._lock:
            self._api_keys[name] = api_key
            adapter = self._adapters.get(name)
        if supports(adapter, Capability.KEY_ROTATION):
            adapter.set_api_key(api_key)
            logger.info("Rotated API key for %s", name)
        return True

    def update_api_priority(self, new_order: Sequence[str]) -> bool:
        """
        Replace the priority list. Registered adapters missing from
        `new_order` are appended after it so none becomes unreachable.
        """
        if not isinstance(new_order, (list, tuple)) or len(new_order) == 0:
            return False
        with self._lock:
            for name in new_order:
                if name not in self._adapters:
                    logger.warning("Source %s in new priority order is not registered", name)
            ordered = _dedupe(list(new_order))
            missing = [n for n in self._adapters if n not in ordered]
            self._priority = ordered + missing
        return True

    def set_retry_config(self, name: str, **overrides: Any) -> None:
        """Per-provider retry/timeout overrides (max_retries, base_delay_s, timeout_s, ...)."""
        with self._lock:
            self._per_provider.setdefault(name, {}).update(overrides)

    # -- readers --------------------------------------------------------

    def effective_order(self, preferred: Optional[str] = None) -> List[str]:
        """
        Stored priority list, or `preferred` followed by the rest of the list
        when `preferred` names a registered adapter. The stored list is not mutated.
        """
        with self._lock:
            order = list(self._priority)
            if preferred and preferred in self._adapters:
                return [preferred] + [n for n in order if n != preferred]
            return order

    def candidates(
        self, capability: Capability, preferred: Optional[str] = None
    ) -> List[Tuple[str, Any]]:
        """(name, adapter) pairs in effective order, limited to adapters with `capability`."""
        with self._lock:
            order = self.effective_order(preferred)
            pairs = [(n, self._adapters.get(n)) for n in order]
        out = []
        for name, adapter in pairs:
            if adapter is None:
                continue
            if not supports(adapter, capability):
                logger.debug("Skipping %s: no %s capability", name, capability.name)
                continue
            out.append((name, adapter))
        return out

    def get(self, name: str) -> Optional[Any]:
        with self._lock:
            return self._adapters.get(name)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._adapters

    def __len__(self) -> int:
        with self._lock:
            return len(self._adapters)

    @property
    def names(self) -> List[str]:
        with self._lock:
            return list(self._adapters)

    @property
    def priority(self) -> List[str]:
        with self._lock:
            return list(self._priority)

    def api_key(self, name: str) -> Optional[str]:
        with self._lock:
            return self._api_keys.get(name)

    def retry_config_for(self, name: str) -> RetryConfig:
        with self._lock:
            return self._retry_config.with_overrides(self._per_provider.get(name))

    @property
    def default_retry_config(self) -> RetryConfig:
        return self._retry_config

    def health(self, name: str) -> ProviderHealth:
        with self._lock:
            return self._health.setdefault(name, ProviderHealth(provider_name=name))

    def get_health(self) -> Dict[str, ProviderHealth]:
        """Return health records for all registered providers."""
        with self._lock:
            return {n: self._health.setdefault(n, ProviderHealth(provider_name=n)) for n in self._adapters}
