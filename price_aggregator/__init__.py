"""
Top-level public API surface. Stable facades only.
Canonical entrypoint: from price_aggregator import PriceAggregationService.
Does not import cli.
"""

from __future__ import annotations

from . import core, providers
from ._version import __version__
from .cache import CacheStore, InMemoryTTLCache
from .core.errors import PriceAggregatorError, SourceExhaustedError
from .providers.reconcile import AggregationResult
from .service import PriceAggregationService
from .ttl import historical_ttl, price_ttl, ttl_for

# Do not add exports without updating __all__.
__all__ = [
    "__version__",
    "AggregationResult",
    "CacheStore",
    "InMemoryTTLCache",
    "PriceAggregationService",
    "PriceAggregatorError",
    "SourceExhaustedError",
    "core",
    "historical_ttl",
    "price_ttl",
    "providers",
    "ttl_for",
]
