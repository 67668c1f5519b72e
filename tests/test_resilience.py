"""
Tests for resilience primitives: RetryConfig, call_with_timeout and result validation.
"""
from __future__ import annotations

import threading
import time

import pytest

from price_aggregator.core.errors import InvalidResultError, ProviderTimeoutError
from price_aggregator.providers.resilience import (
    RetryConfig,
    call_with_timeout,
    coerce_price,
    invoke_capability,
    validate_history,
    validate_price,
)

from tests.fakes.providers import FakeCancellableProvider, FakePriceProvider


class TestRetryConfig:
    def test_defaults(self):
        cfg = RetryConfig()
        assert cfg.max_retries == 2
        assert cfg.attempts == 3
        assert cfg.timeout_s == 10.0
        assert cfg.historical_timeout_s == 20.0

    def test_backoff_strictly_increasing(self):
        cfg = RetryConfig(base_delay_s=0.5)
        delays = [cfg.backoff_delay(i) for i in range(3)]
        assert delays == [0.5, 1.0, 1.5]
        assert all(a < b for a, b in zip(delays, delays[1:]))

    def test_with_overrides_ignores_unknown_keys(self):
        cfg = RetryConfig().with_overrides({"timeout_s": 3.0, "colour": "red"})
        assert cfg.timeout_s == 3.0
        assert cfg.max_retries == 2

    def test_from_config(self):
        cfg = RetryConfig.from_config({"max_retries": "4", "timeout_s": 2})
        assert cfg.max_retries == 4
        assert cfg.timeout_s == 2.0
        assert cfg.base_delay_s == 0.5


class TestCallWithTimeout:
    def test_returns_value(self):
        assert call_with_timeout("p", lambda x: x * 2, 21, timeout_s=1.0) == 42

    def test_provider_exception_propagates_unchanged(self):
        def boom():
            raise KeyError("nope")

        with pytest.raises(KeyError):
            call_with_timeout("p", boom, timeout_s=1.0)

    def test_timeout_raises_and_sets_event(self):
        event = threading.Event()
        seen = []

        def wait_for_cancel(cancel_event=None):
            seen.append(cancel_event)
            cancel_event.wait(0.5)

        started = time.monotonic()
        with pytest.raises(ProviderTimeoutError) as exc_info:
            call_with_timeout("p", wait_for_cancel, timeout_s=0.05, cancel_event=event)
        assert time.monotonic() - started < 0.4
        assert exc_info.value.provider_name == "p"
        assert str(exc_info.value) == "p: timed out after 0.05s"
        assert event.is_set()
        assert seen == [event]

    def test_no_event_means_no_extra_keyword(self):
        assert call_with_timeout("p", lambda: "ok", timeout_s=1.0) == "ok"


class TestInvokeCapability:
    def test_cancel_event_only_for_cancellable_adapters(self):
        cx = FakeCancellableProvider("cx", delay_s=0.0, price=7.0)
        assert invoke_capability(cx, "cx", "get_current_price", "BTC", "USD", timeout_s=1.0) == 7.0
        assert cx.received_event

        plain = FakePriceProvider("plain", {"BTC": 8.0})
        assert invoke_capability(plain, "plain", "get_current_price", "BTC", "USD", timeout_s=1.0) == 8.0


class TestValidation:
    @pytest.mark.parametrize("value", [None, float("nan"), float("inf"), 0, -1.0, "x", True, [1.0]])
    def test_coerce_rejects(self, value):
        assert coerce_price(value) is None

    @pytest.mark.parametrize("value,expected", [(1, 1.0), ("2.5", 2.5), (50000.0, 50000.0)])
    def test_coerce_accepts(self, value, expected):
        assert coerce_price(value) == expected

    def test_validate_price_raises(self):
        with pytest.raises(InvalidResultError, match="invalid price returned"):
            validate_price("p", 0)

    def test_validate_history(self):
        assert validate_history("p", [1]) == [1]
        with pytest.raises(InvalidResultError):
            validate_history("p", [])
        with pytest.raises(InvalidResultError):
            validate_history("p", None)
