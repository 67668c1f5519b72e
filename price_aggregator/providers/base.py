"""
Provider interfaces and data contracts.

Every market-data source is wrapped by one adapter. Adapters expose a subset of
the capabilities below; a missing capability is a normal condition that callers
check with `supports()` and skip, never an error.

Data is returned via frozen dataclasses for immutability and type safety.
"""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..core.errors import CapabilityNotSupported
from ..timeutils import ms_to_utc_iso, now_utc_iso


class ProviderStatus(enum.Enum):
    """Health status of a data provider."""

    OK = "OK"
    DEGRADED = "DEGRADED"
    DOWN = "DOWN"


class Capability(enum.Flag):
    """What an adapter can do. Combine with `|`, query with `in`."""

    NONE = 0
    CURRENT_PRICE = enum.auto()
    HISTORICAL_DATA = enum.auto()
    ASSET_LISTING = enum.auto()
    ASSET_DETAILS = enum.auto()
    MARKET_INFO = enum.auto()
    AVAILABILITY = enum.auto()
    KEY_ROTATION = enum.auto()
    # Adapter accepts a `cancel_event` keyword and stops work once it is set.
    CANCELLATION = enum.auto()


_METHOD_CAPABILITIES = (
    ("get_current_price", Capability.CURRENT_PRICE),
    ("get_historical_data", Capability.HISTORICAL_DATA),
    ("get_available_cryptos", Capability.ASSET_LISTING),
    ("get_crypto_details", Capability.ASSET_DETAILS),
    ("get_market_info", Capability.MARKET_INFO),
    ("check_availability", Capability.AVAILABILITY),
    ("set_api_key", Capability.KEY_ROTATION),
)


def capabilities_of(adapter: Any) -> Capability:
    """
    Capabilities of an adapter: its declared `capabilities` flags if present,
    otherwise inferred from which capability methods it defines. A
    ProviderAdapter subclass declaring NONE gets the methods it overrides.
    """
    declared = getattr(adapter, "capabilities", None)
    if isinstance(adapter, ProviderAdapter) and not declared:
        return _overridden_capabilities(adapter)
    if isinstance(declared, Capability):
        return declared
    caps = Capability.NONE
    for method, cap in _METHOD_CAPABILITIES:
        if callable(getattr(adapter, method, None)):
            caps |= cap
    return caps


def _overridden_capabilities(adapter: "ProviderAdapter") -> Capability:
    # Base-class methods only raise CapabilityNotSupported, except set_api_key.
    caps = Capability.KEY_ROTATION
    for method, cap in _METHOD_CAPABILITIES:
        if getattr(type(adapter), method, None) is not getattr(ProviderAdapter, method):
            caps |= cap
    return caps


def supports(adapter: Any, capability: Capability) -> bool:
    if adapter is None:
        return False
    return capability in capabilities_of(adapter)


@dataclass(frozen=True)
class HistoryQuery:
    """Parameters of a historical series request."""

    period: str = "1M"
    interval: str = "daily"
    start_date: Optional[str] = None
    end_date: Optional[str] = None


@dataclass(frozen=True)
class HistoricalPoint:
    """One point of a price series. `timestamp` is epoch milliseconds (UTC)."""

    timestamp: int
    price: float
    volume: Optional[float] = None
    market_cap: Optional[float] = None

    @property
    def date(self) -> str:
        return ms_to_utc_iso(self.timestamp)


@dataclass(frozen=True)
class SourceResult:
    """One provider's answer inside a cross-source comparison."""

    success: bool
    timestamp: str
    price: Optional[float] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class SourceStatus:
    """Availability report for one registered provider."""

    available: bool
    reason: str
    requires_key: bool = False
    has_valid_key: bool = False
    fail_count: int = 0
    last_error: Optional[str] = None
    last_ok_at: Optional[str] = None


@dataclass
class ProviderHealth:
    """
    Mutable health record for a single provider. Observational only: the
    resolvers update it, but never skip a provider because of it.
    """

    provider_name: str
    status: ProviderStatus = ProviderStatus.OK
    last_ok_at: Optional[str] = None
    fail_count: int = 0
    last_error: Optional[str] = None
    last_failure_at: Optional[str] = None

    def record_success(self) -> None:
        self.status = ProviderStatus.OK
        self.fail_count = 0
        self.last_ok_at = now_utc_iso()
        self.last_error = None

    def record_failure(self, error: str) -> None:
        self.fail_count += 1
        self.last_error = error[:500]
        self.last_failure_at = now_utc_iso()
        if self.fail_count >= 5:
            self.status = ProviderStatus.DOWN
        elif self.fail_count >= 2:
            self.status = ProviderStatus.DEGRADED


class ProviderAdapter:
    """
    Convenience base class for adapters.

    Subclasses override the capability methods they implement and usually
    declare them in `capabilities`; left at NONE, the flags are inferred from
    the overridden methods (CANCELLATION is never inferred). The
    default bodies raise CapabilityNotSupported; the resolvers check
    capabilities first, so these only fire on direct misuse.
    """

    capabilities: Capability = Capability.NONE
    requires_api_key: bool = False

    def __init__(self, api_key: Optional[str] = None) -> None:
        self._api_key = api_key

    @property
    def provider_name(self) -> str:
        return type(self).__name__

    @property
    def has_valid_api_key(self) -> bool:
        return bool(self._api_key)

    def _unsupported(self, what: str) -> CapabilityNotSupported:
        return CapabilityNotSupported(f"{self.provider_name} does not support {what}")

    def get_current_price(
        self, asset: str, currency: str, cancel_event: Optional[threading.Event] = None
    ) -> float:
        raise self._unsupported("current price")

    def get_historical_data(
        self,
        asset: str,
        currency: str,
        query: HistoryQuery,
        cancel_event: Optional[threading.Event] = None,
    ) -> Sequence[HistoricalPoint]:
        raise self._unsupported("historical data")

    def get_available_cryptos(
        self,
        limit: int = 100,
        include_metadata: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Dict[str, Any]]:
        raise self._unsupported("asset listing")

    def get_crypto_details(
        self, asset: str, currency: str = "USD", cancel_event: Optional[threading.Event] = None
    ) -> Dict[str, Any]:
        raise self._unsupported("asset details")

    def get_market_info(
        self, limit: int = 100, currency: str = "USD", cancel_event: Optional[threading.Event] = None
    ) -> Dict[str, Any]:
        raise self._unsupported("market info")

    def check_availability(self) -> bool:
        raise self._unsupported("availability check")

    def set_api_key(self, api_key: Optional[str]) -> None:
        self._api_key = api_key
