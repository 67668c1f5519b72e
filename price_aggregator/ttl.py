"""
Cache TTL policy: how long each kind of answer stays fresh.

Pure functions of (asset) or (period); no cache access, so the policy can be
tested on its own.
"""
from __future__ import annotations

from typing import Iterable, Optional

# Assets whose price moves fast enough to warrant a short cache window.
HIGH_VOLATILITY_ASSETS = frozenset({"BTC", "ETH", "BNB", "SOL", "XRP", "ADA"})

VOLATILE_PRICE_TTL_S = 60
DEFAULT_PRICE_TTL_S = 300

_HISTORICAL_TTL_S = {
    "1D": 1800,
    "1W": 3600,
    "1M": 7200,
}
LONG_HISTORY_TTL_S = 86400

ASSET_LISTING_TTL_S = 86400
ASSET_DETAILS_TTL_S = 3600
MARKET_INFO_TTL_S = 300


def price_ttl(
    asset: str,
    volatile_assets: Optional[Iterable[str]] = None,
    default_ttl_s: int = DEFAULT_PRICE_TTL_S,
) -> int:
    """Seconds a current-price entry stays valid; case-insensitive allow-list match."""
    allow = HIGH_VOLATILITY_ASSETS if volatile_assets is None else {a.upper() for a in volatile_assets}
    if asset.upper() in allow:
        return VOLATILE_PRICE_TTL_S
    return default_ttl_s


def historical_ttl(period: str, interval: Optional[str] = None) -> int:
    """
    Seconds a historical series stays valid. Recent windows expire faster;
    anything longer than one month is kept for a day. `interval` does not
    currently change the result.
    """
    return _HISTORICAL_TTL_S.get(period, LONG_HISTORY_TTL_S)


def ttl_for(asset: Optional[str] = None, *, period: Optional[str] = None) -> int:
    """Dispatch to the price or historical policy depending on which argument is given."""
    if period is not None:
        return historical_ttl(period)
    if asset is None:
        raise ValueError("ttl_for needs an asset or a period")
    return price_ttl(asset)
