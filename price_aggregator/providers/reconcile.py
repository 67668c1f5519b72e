"""
Cross-source reconciliation ("compare all").

Queries every registered price provider concurrently, each raced against its
own timeout, and waits until all of them have settled. Failed providers are
recorded in `sources` with success=False; statistics come only from the
successful subset and are None (never zero) when that subset is empty.
Results are diagnostic and are never written to the cache.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..core.errors import ProviderTimeoutError
from ..timeutils import now_utc_iso
from .base import Capability, SourceResult, supports
from .registry import SourceRegistry
from .resilience import coerce_price

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceStatistics:
    mean: Optional[float] = None
    median: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    std: Optional[float] = None


def aggregate_prices(prices: Sequence[float]) -> PriceStatistics:
    """
    Mean, median, min, max and population standard deviation (divide by N).
    All None for an empty input.
    """
    if len(prices) == 0:
        return PriceStatistics()
    arr = np.asarray(prices, dtype=float)
    return PriceStatistics(
        mean=float(arr.mean()),
        median=float(np.median(arr)),
        min=float(arr.min()),
        max=float(arr.max()),
        std=float(arr.std(ddof=0)),
    )


@dataclass(frozen=True)
class AggregationResult:
    timestamp: str
    asset: str
    currency: str
    sources: Dict[str, SourceResult] = field(default_factory=dict)
    average_price: Optional[float] = None
    median_price: Optional[float] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    std_deviation: Optional[float] = None

    @property
    def successful_prices(self) -> List[float]:
        return [s.price for s in self.sources.values() if s.success and s.price is not None]

    @property
    def has_statistics(self) -> bool:
        return self.average_price is not None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _settle(
    name: str,
    future: Future,
    deadline: float,
    timeout_s: float,
    cancel_event: Optional[threading.Event],
) -> SourceResult:
    remaining = max(0.0, deadline - time.monotonic())
    try:
        raw = future.result(timeout=remaining)
    except FuturesTimeoutError:
        if not future.done():
            if cancel_event is not None:
                cancel_event.set()
            future.cancel()
            return SourceResult(
                success=False, timestamp=now_utc_iso(), error=str(ProviderTimeoutError(name, timeout_s))
            )
        exc = future.exception()
        return SourceResult(success=False, timestamp=now_utc_iso(), error=str(exc) or type(exc).__name__)
    except Exception as exc:
        return SourceResult(success=False, timestamp=now_utc_iso(), error=str(exc) or type(exc).__name__)

    price = coerce_price(raw)
    if price is None:
        return SourceResult(success=False, timestamp=now_utc_iso(), error="invalid price returned")
    return SourceResult(success=True, timestamp=now_utc_iso(), price=price)


def compare_all(
    registry: SourceRegistry,
    asset: str,
    currency: str,
    timeout_s: Optional[float] = None,
) -> AggregationResult:
    """
    Fan out to every provider with a current-price capability and join on all
    of them. Never raises for provider failures.
    """
    candidates = registry.candidates(Capability.CURRENT_PRICE)
    sources: Dict[str, SourceResult] = {}

    if candidates:
        executor = ThreadPoolExecutor(max_workers=len(candidates), thread_name_prefix="compare-all")
        try:
            started = time.monotonic()
            pending = []
            for name, adapter in candidates:
                kwargs: Dict[str, Any] = {}
                cancel_event: Optional[threading.Event] = None
                if supports(adapter, Capability.CANCELLATION):
                    cancel_event = threading.Event()
                    kwargs["cancel_event"] = cancel_event
                t = timeout_s if timeout_s is not None else registry.retry_config_for(name).timeout_s
                future = executor.submit(adapter.get_current_price, asset, currency, **kwargs)
                pending.append((name, future, started + t, t, cancel_event))

            # Join barrier: settle soonest deadlines first so each keeps its own race.
            for name, future, deadline, t, cancel_event in sorted(pending, key=lambda p: p[2]):
                sources[name] = _settle(name, future, deadline, t, cancel_event)
        finally:
            executor.shutdown(wait=False)

    ordered = {name: sources[name] for name, _ in candidates}
    for name, result in ordered.items():
        health = registry.health(name)
        if result.success:
            health.record_success()
        else:
            health.record_failure(result.error or "unknown error")
            logger.warning("compare_all: %s failed for %s/%s: %s", name, asset, currency, result.error)

    prices = [r.price for r in ordered.values() if r.success and r.price is not None]
    stats = aggregate_prices(prices)
    if not prices:
        logger.warning("compare_all: no source answered for %s/%s", asset, currency)

    return AggregationResult(
        timestamp=now_utc_iso(),
        asset=asset,
        currency=currency,
        sources=ordered,
        average_price=stats.mean,
        median_price=stats.median,
        min_price=stats.min,
        max_price=stats.max,
        std_deviation=stats.std,
    )
