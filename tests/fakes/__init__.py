"""Fake providers and fixtures for resolver and facade tests (no live network)."""

from .providers import (
    FakeCancellableProvider,
    FakeHistoryOnlyProvider,
    FakePriceProvider,
    FakePriceProviderAlwaysFail,
    FakePriceProviderFailNThenSucceed,
    FakePriceProviderInvalid,
    FakeReferenceProvider,
    FakeSlowProvider,
    RecordingSleep,
)

__all__ = [
    "FakeCancellableProvider",
    "FakeHistoryOnlyProvider",
    "FakePriceProvider",
    "FakePriceProviderAlwaysFail",
    "FakePriceProviderFailNThenSucceed",
    "FakePriceProviderInvalid",
    "FakeReferenceProvider",
    "FakeSlowProvider",
    "RecordingSleep",
]
