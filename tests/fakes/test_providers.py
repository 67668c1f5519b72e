"""
Tests for fake providers: deterministic data, fail-N-then-succeed, always-fail behavior.

No live network; validates that fakes behave as required for resolver tests.
"""

from __future__ import annotations

import math

import pytest

from price_aggregator.providers.base import Capability, HistoryQuery, capabilities_of
from price_aggregator.providers.chain import PriceResolver
from price_aggregator.providers.registry import SourceRegistry
from price_aggregator.providers.resilience import RetryConfig

from .providers import (
    FAKE_HISTORY,
    FakePriceProvider,
    FakePriceProviderAlwaysFail,
    FakePriceProviderFailNThenSucceed,
    FakePriceProviderInvalid,
    FakeReferenceProvider,
    FakeUndeclaredAdapter,
    RecordingSleep,
)


def _registry(*providers, max_retries: int = 0) -> SourceRegistry:
    reg = SourceRegistry(retry_config=RetryConfig(max_retries=max_retries, timeout_s=2.0))
    for p in providers:
        reg.add_api_source(p.provider_name, p)
    return reg


class TestFakePriceProvider:
    """Always-succeed fake returns deterministic data."""

    def test_deterministic_prices(self):
        p = FakePriceProvider("ok", {"SOL": 200.0, "BTC": 60_000.0})
        assert p.get_current_price("SOL", "USD") == 200.0
        assert p.get_current_price("sol", "USD") == 200.0
        assert p.get_current_price("DOGE", "USD") == 100.0
        assert p.call_count == 3

    def test_history_is_fixed(self):
        p = FakePriceProvider("ok")
        assert p.get_historical_data("BTC", "USD", HistoryQuery()) == FAKE_HISTORY
        assert p.history_calls == 1

    def test_capabilities_inferred(self):
        caps = capabilities_of(FakePriceProvider("ok"))
        assert Capability.CURRENT_PRICE in caps
        assert Capability.HISTORICAL_DATA in caps
        assert Capability.AVAILABILITY in caps
        assert Capability.ASSET_LISTING not in caps

    def test_resolver_uses_primary(self):
        primary = FakePriceProvider("primary", {"SOL": 150.0})
        resolver = PriceResolver(_registry(primary))
        assert resolver.resolve("SOL", "USD") == 150.0


class TestFakePriceProviderFailNThenSucceed:
    """Fail N times then succeed."""

    def test_fails_then_succeeds(self):
        p = FakePriceProviderFailNThenSucceed("flaky", fail_times=2, prices={"SOL": 155.0})
        with pytest.raises(RuntimeError, match="simulated failure"):
            p.get_current_price("SOL", "USD")
        with pytest.raises(RuntimeError, match="simulated failure"):
            p.get_current_price("SOL", "USD")
        assert p.get_current_price("SOL", "USD") == 155.0

    def test_resolver_retries_same_provider(self):
        flaky = FakePriceProviderFailNThenSucceed("flaky", fail_times=2, prices={"SOL": 155.0})
        backup = FakePriceProvider("backup", {"SOL": 160.0})
        resolver = PriceResolver(_registry(flaky, backup, max_retries=2), sleep=RecordingSleep())
        assert resolver.resolve("SOL", "USD") == 155.0
        assert flaky.call_count == 3
        assert backup.call_count == 0


class TestFakePriceProviderAlwaysFail:
    """Always-fail fake."""

    def test_always_raises(self):
        p = FakePriceProviderAlwaysFail("bad")
        for _ in range(3):
            with pytest.raises(RuntimeError, match="always fails"):
                p.get_current_price("SOL", "USD")
        assert p.call_count == 3


class TestFakePriceProviderInvalid:
    def test_returns_configured_value(self):
        assert math.isnan(FakePriceProviderInvalid("nan", float("nan")).get_current_price("BTC", "USD"))
        assert FakePriceProviderInvalid("zero", 0).get_current_price("BTC", "USD") == 0
        assert FakePriceProviderInvalid("empty", 1.0).get_historical_data("BTC", "USD", HistoryQuery()) == []


class TestFakeReferenceProvider:
    def test_declared_capabilities_win_over_methods(self):
        caps = capabilities_of(FakeReferenceProvider("ref"))
        assert Capability.ASSET_LISTING in caps
        assert Capability.KEY_ROTATION in caps
        assert Capability.CURRENT_PRICE not in caps

    def test_records_keys(self):
        p = FakeReferenceProvider("ref")
        assert not p.has_valid_api_key
        p.set_api_key("k1")
        assert p.has_valid_api_key
        assert p.keys_set == ["k1"]


class TestFakeUndeclaredAdapter:
    def test_capabilities_follow_overridden_methods(self):
        caps = capabilities_of(FakeUndeclaredAdapter("plain"))
        assert Capability.CURRENT_PRICE in caps
        assert Capability.KEY_ROTATION in caps
        assert Capability.HISTORICAL_DATA not in caps
        assert Capability.ASSET_LISTING not in caps
        assert Capability.CANCELLATION not in caps

    def test_resolver_does_not_skip_it(self):
        plain = FakeUndeclaredAdapter("plain", price=123.0)
        resolver = PriceResolver(_registry(plain))
        assert resolver.resolve("BTC", "USD") == 123.0
        assert plain.call_count == 1
