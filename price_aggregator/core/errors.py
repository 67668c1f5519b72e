"""
Shared exception types for price_aggregator.

Provider- and attempt-level errors are recovered inside the resolvers and never
reach callers individually; only SourceExhaustedError is surfaced.
"""

from __future__ import annotations

from typing import List, Optional


class PriceAggregatorError(Exception):
    """Base exception for price_aggregator; catch this for any package-raised error."""

    pass


class ProviderError(PriceAggregatorError):
    """A single provider attempt failed."""

    def __init__(self, provider_name: str, message: str) -> None:
        super().__init__(f"{provider_name}: {message}")
        self.provider_name = provider_name


class ProviderTimeoutError(ProviderError):
    """The per-attempt timer fired before the provider answered."""

    def __init__(self, provider_name: str, timeout_s: float) -> None:
        super().__init__(provider_name, f"timed out after {timeout_s:g}s")
        self.timeout_s = timeout_s


class InvalidResultError(ProviderError):
    """Provider answered, but with NaN, a non-positive price, or an empty series."""

    pass


class CapabilityNotSupported(PriceAggregatorError):
    """Adapter does not implement the requested capability."""

    pass


class SourceExhaustedError(PriceAggregatorError):
    """Every provider and every retry was tried without success."""

    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        self.errors = list(errors or [])
        detail = f": {'; '.join(self.errors)}" if self.errors else ""
        super().__init__(f"{message}{detail}")


__all__ = [
    "CapabilityNotSupported",
    "InvalidResultError",
    "PriceAggregatorError",
    "ProviderError",
    "ProviderTimeoutError",
    "SourceExhaustedError",
]
