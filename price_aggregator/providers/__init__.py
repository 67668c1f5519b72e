"""
Provider architecture for multi-source price aggregation.

Adapters are registered in a SourceRegistry whose priority list drives
sequential fallback (PriceResolver, HistoricalResolver) with per-attempt
timeouts and retry/backoff, plus a concurrent cross-source comparison
(compare_all) with aggregate statistics.
"""

from __future__ import annotations

from .base import (
    Capability,
    HistoricalPoint,
    HistoryQuery,
    ProviderAdapter,
    ProviderHealth,
    ProviderStatus,
    SourceResult,
    SourceStatus,
    capabilities_of,
    supports,
)
from .chain import HistoricalResolver, PriceResolver, resolve_first
from .reconcile import AggregationResult, PriceStatistics, aggregate_prices, compare_all
from .registry import SourceRegistry
from .resilience import RetryConfig, call_with_timeout

__all__ = [
    "AggregationResult",
    "Capability",
    "HistoricalPoint",
    "HistoricalResolver",
    "HistoryQuery",
    "PriceResolver",
    "PriceStatistics",
    "ProviderAdapter",
    "ProviderHealth",
    "ProviderStatus",
    "RetryConfig",
    "SourceRegistry",
    "SourceResult",
    "SourceStatus",
    "aggregate_prices",
    "call_with_timeout",
    "capabilities_of",
    "compare_all",
    "resolve_first",
    "supports",
]
