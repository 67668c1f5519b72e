"""
Provider chains: ordered fallback with per-attempt timeout and retry/backoff.

A chain walks the registry's effective order one provider and one attempt at
a time. The first valid answer short-circuits the walk; no later provider is
queried. Attempt failures are logged and recovered locally. Only total
exhaustion reaches the caller, as SourceExhaustedError.
"""
from __future__ import annotations

import copy
import logging
import time
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from ..cache import CacheStore, history_key, price_key
from ..core.errors import ProviderError, SourceExhaustedError
from ..ttl import historical_ttl, price_ttl
from .base import Capability, HistoryQuery
from .registry import SourceRegistry
from .resilience import invoke_capability, validate_history, validate_price

logger = logging.getLogger(__name__)

Validator = Callable[[str, Any], Any]


def _describe(name: str, exc: BaseException) -> str:
    if isinstance(exc, ProviderError):
        return str(exc)
    return f"{name}: {type(exc).__name__}: {exc}"


def _walk_with_retries(
    registry: SourceRegistry,
    capability: Capability,
    method_name: str,
    args: Tuple[Any, ...],
    *,
    validate: Validator,
    label: str,
    preferred: Optional[str],
    timeout_for: Callable[[str], float],
    sleep: Callable[[float], None],
) -> Tuple[str, Any]:
    errors: List[str] = []
    last_error: Optional[BaseException] = None

    for name, adapter in registry.candidates(capability, preferred):
        cfg = registry.retry_config_for(name)
        health = registry.health(name)
        timeout_s = timeout_for(name)

        for attempt in range(cfg.attempts):
            try:
                raw = invoke_capability(adapter, name, method_name, *args, timeout_s=timeout_s)
                value = validate(name, raw)
            except Exception as exc:
                last_error = exc
                msg = _describe(name, exc)
                errors.append(msg)
                health.record_failure(msg)
                logger.warning(
                    "%s from %s failed (attempt %d/%d): %s",
                    label, name, attempt + 1, cfg.attempts, msg,
                )
                if attempt < cfg.max_retries:
                    sleep(cfg.backoff_delay(attempt))
                continue

            health.record_success()
            logger.debug("%s resolved by %s on attempt %d", label, name, attempt + 1)
            return name, value

        logger.debug("Retries exhausted for %s, falling through", name)

    logger.error("All sources failed for %s", label)
    raise SourceExhaustedError(f"No source could provide {label}", errors) from last_error


class PriceResolver:
    """
    Resolve one current price via sequential fallback, writing the answer
    through to the cache with a volatility-adjusted TTL.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        cache: Optional[CacheStore] = None,
        *,
        volatile_assets: Optional[Iterable[str]] = None,
        default_ttl_s: int = 300,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._registry = registry
        self._cache = cache
        self._volatile_assets = None if volatile_assets is None else frozenset(a.upper() for a in volatile_assets)
        self._default_ttl_s = default_ttl_s
        self._sleep = sleep

    def resolve(
        self,
        asset: str,
        currency: str,
        *,
        preferred_api: Optional[str] = None,
        force_refresh: bool = False,
        timeout_s: Optional[float] = None,
    ) -> float:
        key = price_key(asset, currency)
        if self._cache is not None and not force_refresh:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Cache hit for %s", key)
                return cached

        def timeout_for(name: str) -> float:
            return timeout_s if timeout_s is not None else self._registry.retry_config_for(name).timeout_s

        _, price = _walk_with_retries(
            self._registry,
            Capability.CURRENT_PRICE,
            "get_current_price",
            (asset, currency),
            validate=validate_price,
            label=f"price of {asset.upper()}/{currency.upper()}",
            preferred=preferred_api,
            timeout_for=timeout_for,
            sleep=self._sleep,
        )

        if self._cache is not None:
            ttl = price_ttl(asset, self._volatile_assets, self._default_ttl_s)
            self._cache.set(key, price, ttl)
        return price


class HistoricalResolver:
    """
    Resolve a historical series with the same fallback discipline. Each
    attempt gets the base timeout times `historical_timeout_factor` (2x by
    default) since series payloads are larger.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        cache: Optional[CacheStore] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._registry = registry
        self._cache = cache
        self._sleep = sleep

    def resolve(
        self,
        asset: str,
        currency: str,
        query: Optional[HistoryQuery] = None,
        *,
        preferred_api: Optional[str] = None,
        force_refresh: bool = False,
        timeout_s: Optional[float] = None,
    ) -> Sequence[Any]:
        query = query or HistoryQuery()
        key = history_key(asset, currency, query.period, query.interval)
        if self._cache is not None and not force_refresh:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Cache hit for %s", key)
                return copy.deepcopy(cached)

        def timeout_for(name: str) -> float:
            cfg = self._registry.retry_config_for(name)
            base = timeout_s if timeout_s is not None else cfg.timeout_s
            return base * cfg.historical_timeout_factor

        _, series = _walk_with_retries(
            self._registry,
            Capability.HISTORICAL_DATA,
            "get_historical_data",
            (asset, currency, query),
            validate=validate_history,
            label=f"historical data of {asset.upper()}/{currency.upper()} ({query.period}, {query.interval})",
            preferred=preferred_api,
            timeout_for=timeout_for,
            sleep=self._sleep,
        )

        if self._cache is not None:
            self._cache.set(key, copy.deepcopy(series), historical_ttl(query.period, query.interval))
        return series


def resolve_first(
    registry: SourceRegistry,
    capability: Capability,
    method_name: str,
    *args: Any,
    validate: Validator,
    label: str,
    preferred: Optional[str] = None,
    timeout_s: Optional[float] = None,
    **kwargs: Any,
) -> Any:
    """
    Single pass over capable providers, one attempt each, no backoff. Used for
    listing, details and market info where retries buy little.
    """
    errors: List[str] = []
    last_error: Optional[BaseException] = None
    for name, adapter in registry.candidates(capability, preferred):
        t = timeout_s if timeout_s is not None else registry.retry_config_for(name).timeout_s
        try:
            raw = invoke_capability(adapter, name, method_name, *args, timeout_s=t, **kwargs)
            value = validate(name, raw)
        except Exception as exc:
            last_error = exc
            msg = _describe(name, exc)
            errors.append(msg)
            registry.health(name).record_failure(msg)
            logger.warning("%s from %s failed: %s", label, name, msg)
            continue
        registry.health(name).record_success()
        return value

    logger.error("All sources failed for %s", label)
    raise SourceExhaustedError(f"No source could provide {label}", errors) from last_error
