"""Core shared types for price_aggregator: exception taxonomy."""

from __future__ import annotations

from .errors import (
    CapabilityNotSupported,
    InvalidResultError,
    PriceAggregatorError,
    ProviderError,
    ProviderTimeoutError,
    SourceExhaustedError,
)

__all__ = [
    "CapabilityNotSupported",
    "InvalidResultError",
    "PriceAggregatorError",
    "ProviderError",
    "ProviderTimeoutError",
    "SourceExhaustedError",
]
