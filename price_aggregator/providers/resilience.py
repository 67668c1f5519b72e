"""
Resilience primitives: retry configuration, linear-growth backoff, per-attempt
timeout racing, and result validation.

A timeout stops the caller from waiting; it does not abort the provider call.
Adapters declaring Capability.CANCELLATION receive a threading.Event that is
set when the timer wins, so they can stop issuing further requests. For any
other adapter the worker thread keeps running until the underlying call
returns on its own (bounded by the adapter's HTTP timeout).
"""
from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional, Sequence, TypeVar

from ..core.errors import InvalidResultError, ProviderTimeoutError
from .base import Capability, supports

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Retry/timeout policy for one provider (or the default for all)."""

    max_retries: int = 2
    base_delay_s: float = 0.5
    timeout_s: float = 10.0
    historical_timeout_factor: float = 2.0

    @property
    def attempts(self) -> int:
        return self.max_retries + 1

    @property
    def historical_timeout_s(self) -> float:
        return self.timeout_s * self.historical_timeout_factor

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after failed attempt `attempt` (0-based): base * (attempt + 1)."""
        return self.base_delay_s * (attempt + 1)

    def with_overrides(self, overrides: Optional[Dict[str, Any]]) -> "RetryConfig":
        if not overrides:
            return self
        allowed = {k: v for k, v in overrides.items() if k in _RETRY_FIELDS}
        return replace(self, **allowed)

    @classmethod
    def from_config(cls, resilience_cfg: Dict[str, Any]) -> "RetryConfig":
        return cls(
            max_retries=int(resilience_cfg.get("max_retries", 2)),
            base_delay_s=float(resilience_cfg.get("base_delay_s", 0.5)),
            timeout_s=float(resilience_cfg.get("timeout_s", 10.0)),
            historical_timeout_factor=float(resilience_cfg.get("historical_timeout_factor", 2.0)),
        )


_RETRY_FIELDS = ("max_retries", "base_delay_s", "timeout_s", "historical_timeout_factor")


def call_with_timeout(
    provider_name: str,
    func: Callable[..., T],
    *args: Any,
    timeout_s: float,
    cancel_event: Optional[threading.Event] = None,
    **kwargs: Any,
) -> T:
    """
    Run `func(*args, **kwargs)` on a worker thread and wait at most `timeout_s`.
    A `cancel_event` is passed on to `func` and set if the timer fires first.

    Raises ProviderTimeoutError if the timer fires first; the provider's own
    exception is re-raised unchanged otherwise.
    """
    if cancel_event is not None:
        kwargs["cancel_event"] = cancel_event
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"source-{provider_name}")
    future = executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout_s)
    except FuturesTimeoutError:
        if future.done():
            raise
        if cancel_event is not None:
            cancel_event.set()
        future.cancel()
        raise ProviderTimeoutError(provider_name, timeout_s) from None
    finally:
        executor.shutdown(wait=False)


def invoke_capability(
    adapter: Any,
    provider_name: str,
    method_name: str,
    *args: Any,
    timeout_s: float,
    **kwargs: Any,
) -> Any:
    """
    Call one adapter capability under a timeout, handing it a cancellation
    event when the adapter declares it can honour one.
    """
    method = getattr(adapter, method_name)
    cancel_event: Optional[threading.Event] = None
    if supports(adapter, Capability.CANCELLATION):
        cancel_event = threading.Event()
    return call_with_timeout(
        provider_name, method, *args, timeout_s=timeout_s, cancel_event=cancel_event, **kwargs
    )


def coerce_price(value: Any) -> Optional[float]:
    """Return `value` as a positive finite float, or None if it is not a usable price."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(price) or math.isinf(price) or price <= 0:
        return None
    return price


def validate_price(provider_name: str, value: Any) -> float:
    price = coerce_price(value)
    if price is None:
        raise InvalidResultError(provider_name, f"invalid price returned ({value!r})")
    return price


def validate_history(provider_name: str, value: Any) -> Sequence[Any]:
    if not isinstance(value, (list, tuple)) or len(value) == 0:
        raise InvalidResultError(provider_name, "empty or malformed historical series")
    return value
