"""
Aggregation facade: the public surface of price_aggregator.

Wires the cache store, source registry, resolvers and reconciler together.
Only this class is meant to be called by the rest of an application.
"""
from __future__ import annotations

import copy
import logging
import threading
import time
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Union

from .cache import (
    CacheStore,
    InMemoryTTLCache,
    details_key,
    listing_key,
    market_info_key,
    price_key,
)
from .config import get_config
from .core.errors import InvalidResultError
from .providers.base import Capability, HistoryQuery, SourceStatus, supports
from .providers.chain import HistoricalResolver, PriceResolver, resolve_first
from .providers.defaults import create_default_registry
from .providers.reconcile import AggregationResult, compare_all
from .providers.registry import SourceRegistry
from .providers.resilience import call_with_timeout
from .ttl import ASSET_DETAILS_TTL_S, ASSET_LISTING_TTL_S, MARKET_INFO_TTL_S

logger = logging.getLogger(__name__)


class _TrackingCache:
    """Cache wrapper remembering which keys this facade wrote, so they can be cleared with delete()."""

    def __init__(self, inner: CacheStore) -> None:
        self._inner = inner
        self._keys: Set[str] = set()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        return self._inner.get(key)

    def set(self, key: str, value: Any, ttl_s: float) -> None:
        self._inner.set(key, value, ttl_s)
        with self._lock:
            self._keys.add(key)

    def delete(self, key: str) -> None:
        self._inner.delete(key)
        with self._lock:
            self._keys.discard(key)

    def written_keys(self) -> List[str]:
        with self._lock:
            return sorted(self._keys)


def _require_listing(provider_name: str, value: Any) -> List[Any]:
    if not isinstance(value, (list, tuple)) or len(value) == 0:
        raise InvalidResultError(provider_name, "empty asset listing")
    return list(value)


def _require_mapping(provider_name: str, value: Any) -> Any:
    if not isinstance(value, Mapping):
        raise InvalidResultError(provider_name, "expected a record")
    return value


class PriceAggregationService:
    """
    Multi-source price service.

    Usage:
        service = PriceAggregationService()
        service.get_current_price("BTC", "USD")
        service.get_current_price("ETH", "USD", compare_all=True)
        service.get_historical_data("SOL", "USD", period="1W")
    """

    def __init__(
        self,
        registry: Optional[SourceRegistry] = None,
        cache: Optional[CacheStore] = None,
        *,
        use_cache: bool = True,
        config: Optional[Dict[str, Any]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        cfg = config if config is not None else get_config()
        cache_cfg = cfg.get("cache", {})
        self._registry = registry if registry is not None else create_default_registry(cfg)

        self._cache: Optional[_TrackingCache] = None
        if use_cache:
            store = cache if cache is not None else InMemoryTTLCache(
                default_ttl_s=float(cache_cfg.get("default_ttl_s", 300))
            )
            self._cache = _TrackingCache(store)

        self._price_resolver = PriceResolver(
            self._registry,
            self._cache,
            volatile_assets=cache_cfg.get("volatile_assets"),
            default_ttl_s=int(cache_cfg.get("default_ttl_s", 300)),
            sleep=sleep,
        )
        self._history_resolver = HistoricalResolver(self._registry, self._cache, sleep=sleep)

    @property
    def registry(self) -> SourceRegistry:
        return self._registry

    # -- prices ---------------------------------------------------------

    def get_current_price(
        self,
        asset: str,
        currency: str,
        *,
        preferred_api: Optional[str] = None,
        force_refresh: bool = False,
        timeout_s: Optional[float] = None,
        compare_all: bool = False,
    ) -> Union[float, AggregationResult]:
        """
        Current price of `asset` in `currency`. With compare_all=True returns
        the cross-source AggregationResult instead of a single price.

        Raises SourceExhaustedError when no provider could answer.
        """
        if compare_all:
            return self.compare_all_sources(asset, currency, timeout_s=timeout_s)
        return self._price_resolver.resolve(
            asset,
            currency,
            preferred_api=preferred_api,
            force_refresh=force_refresh,
            timeout_s=timeout_s,
        )

    def compare_all_sources(
        self, asset: str, currency: str, *, timeout_s: Optional[float] = None
    ) -> AggregationResult:
        return compare_all(self._registry, asset, currency, timeout_s)

    def get_historical_data(
        self,
        asset: str,
        currency: str,
        *,
        period: str = "1M",
        interval: str = "daily",
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        preferred_api: Optional[str] = None,
        force_refresh: bool = False,
        timeout_s: Optional[float] = None,
    ) -> Sequence[Any]:
        query = HistoryQuery(period=period, interval=interval, start_date=start_date, end_date=end_date)
        return self._history_resolver.resolve(
            asset,
            currency,
            query,
            preferred_api=preferred_api,
            force_refresh=force_refresh,
            timeout_s=timeout_s,
        )

    # -- reference data -------------------------------------------------

    def _cached_first(
        self,
        key: str,
        ttl_s: int,
        force_refresh: bool,
        fetch: Callable[[], Any],
    ) -> Any:
        if self._cache is not None and not force_refresh:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Cache hit for %s", key)
                return copy.deepcopy(cached)
        result = fetch()
        if self._cache is not None:
            self._cache.set(key, copy.deepcopy(result), ttl_s)
        return result

    def get_available_cryptos(
        self,
        *,
        limit: int = 100,
        include_metadata: bool = False,
        preferred_api: Optional[str] = None,
        force_refresh: bool = False,
    ) -> List[Dict[str, Any]]:
        return self._cached_first(
            listing_key(limit, include_metadata),
            ASSET_LISTING_TTL_S,
            force_refresh,
            lambda: resolve_first(
                self._registry,
                Capability.ASSET_LISTING,
                "get_available_cryptos",
                validate=_require_listing,
                label="the asset listing",
                preferred=preferred_api,
                limit=limit,
                include_metadata=include_metadata,
            ),
        )

    def get_crypto_details(
        self,
        asset: str,
        *,
        currency: str = "USD",
        preferred_api: Optional[str] = None,
        force_refresh: bool = False,
    ) -> Dict[str, Any]:
        return self._cached_first(
            details_key(asset, currency),
            ASSET_DETAILS_TTL_S,
            force_refresh,
            lambda: resolve_first(
                self._registry,
                Capability.ASSET_DETAILS,
                "get_crypto_details",
                asset,
                validate=_require_mapping,
                label=f"details of {asset.upper()}",
                preferred=preferred_api,
                currency=currency,
            ),
        )

    def get_market_info(
        self,
        *,
        limit: int = 100,
        currency: str = "USD",
        preferred_api: Optional[str] = None,
        force_refresh: bool = False,
    ) -> Dict[str, Any]:
        return self._cached_first(
            market_info_key(limit, currency),
            MARKET_INFO_TTL_S,
            force_refresh,
            lambda: resolve_first(
                self._registry,
                Capability.MARKET_INFO,
                "get_market_info",
                validate=_require_mapping,
                label="market info",
                preferred=preferred_api,
                limit=limit,
                currency=currency,
            ),
        )

    # -- status ---------------------------------------------------------

    def check_api_status(self) -> Dict[str, SourceStatus]:
        """Check every registered provider once; never raises."""
        results: Dict[str, SourceStatus] = {}
        health_map = self._registry.get_health()
        for name in self._registry.names:
            adapter = self._registry.get(name)
            if adapter is None:
                continue
            health = health_map.get(name)
            requires_key = bool(getattr(adapter, "requires_api_key", False))
            has_valid_key = bool(getattr(adapter, "has_valid_api_key", False))

            if not supports(adapter, Capability.AVAILABILITY):
                available, reason = False, "availability check not supported"
            else:
                timeout_s = self._registry.retry_config_for(name).timeout_s
                try:
                    available = bool(
                        call_with_timeout(name, adapter.check_availability, timeout_s=timeout_s)
                    )
                    reason = "OK" if available else "source did not respond correctly"
                except Exception as exc:
                    available, reason = False, str(exc) or "availability check failed"

            results[name] = SourceStatus(
                available=available,
                reason=reason,
                requires_key=requires_key,
                has_valid_key=has_valid_key,
                fail_count=health.fail_count if health else 0,
                last_error=health.last_error if health else None,
                last_ok_at=health.last_ok_at if health else None,
            )
        return results

    # -- registry mutators ----------------------------------------------

    def add_api_source(self, name: str, adapter: Any, priority: Optional[int] = None) -> bool:
        return self._registry.add_api_source(name, adapter, priority)

    def remove_api_source(self, name: str) -> bool:
        return self._registry.remove_api_source(name)

    def update_api_key(self, name: str, api_key: Optional[str]) -> bool:
        return self._registry.update_api_key(name, api_key)

    def update_api_priority(self, new_order: Sequence[str]) -> bool:
        return self._registry.update_api_priority(new_order)

    # -- cache maintenance ----------------------------------------------

    def invalidate_price(self, asset: str, currency: str) -> None:
        if self._cache is not None:
            self._cache.delete(price_key(asset, currency))

    def clear_rates_cache(self) -> int:
        """Delete every cache entry this service wrote; return how many keys were dropped."""
        if self._cache is None:
            return 0
        keys = self._cache.written_keys()
        for key in keys:
            self._cache.delete(key)
        logger.info("Cleared %d cached entries", len(keys))
        return len(keys)
