"""
Binance spot market adapter.

Uses the public Binance REST API (no authentication required):
  GET /api/v3/ticker/price?symbol={BASE}{QUOTE}
  GET /api/v3/klines?symbol={BASE}{QUOTE}&interval={1h|1d|1w}&limit={n}
  GET /api/v3/exchangeInfo
  GET /api/v3/ping

Quotes are in exchange pairs, so USD is mapped to USDT. No asset details or
market info; the aggregation layer skips Binance for those.
"""
from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

import requests

from ..core.errors import ProviderError
from ..timeutils import iso_to_unix_s
from .base import Capability, HistoricalPoint, HistoryQuery, ProviderAdapter

BINANCE_BASE_URL = "https://api.binance.com"
HTTP_TIMEOUT_S = 10.0
MAX_KLINES = 1000

_QUOTE_ALIASES = {"USD": "USDT"}

_INTERVAL_TO_KLINE = {
    "hourly": ("1h", 1.0 / 24.0),
    "daily": ("1d", 1.0),
    "weekly": ("1w", 7.0),
}

_PERIOD_DAYS = {
    "1D": 1,
    "1W": 7,
    "1M": 30,
    "3M": 90,
    "6M": 180,
    "1Y": 365,
}


def pair_symbol(asset: str, currency: str) -> str:
    quote = currency.upper()
    return f"{asset.upper()}{_QUOTE_ALIASES.get(quote, quote)}"


def kline_limit(period: str, interval: str) -> int:
    """Number of bars covering `period` at `interval`, capped at the API maximum."""
    _, bar_days = _INTERVAL_TO_KLINE.get(interval, _INTERVAL_TO_KLINE["daily"])
    days = _PERIOD_DAYS.get(period)
    if days is None:
        return MAX_KLINES
    return max(1, min(MAX_KLINES, int(round(days / bar_days))))


class BinanceAdapter(ProviderAdapter):
    """Fetch spot prices, klines and listed assets from Binance."""

    capabilities = (
        Capability.CURRENT_PRICE
        | Capability.HISTORICAL_DATA
        | Capability.ASSET_LISTING
        | Capability.AVAILABILITY
        | Capability.KEY_ROTATION
        | Capability.CANCELLATION
    )
    requires_api_key = False

    def __init__(self, api_key: Optional[str] = None, http_timeout_s: float = HTTP_TIMEOUT_S) -> None:
        super().__init__(api_key)
        self._http_timeout_s = http_timeout_s

    @property
    def provider_name(self) -> str:
        return "binance"

    def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        if cancel_event is not None and cancel_event.is_set():
            raise ProviderError(self.provider_name, "request cancelled")
        headers = {"X-MBX-APIKEY": self._api_key} if self.has_valid_api_key else {}
        resp = requests.get(
            f"{BINANCE_BASE_URL}{path}", params=params, headers=headers, timeout=self._http_timeout_s
        )
        if resp.status_code in (418, 429):
            raise ProviderError(self.provider_name, f"rate limit (HTTP {resp.status_code})")
        resp.raise_for_status()
        return resp.json()

    def get_current_price(
        self, asset: str, currency: str, cancel_event: Optional[threading.Event] = None
    ) -> float:
        data = self._get("/api/v3/ticker/price", {"symbol": pair_symbol(asset, currency)}, cancel_event)
        if not isinstance(data, dict) or data.get("price") is None:
            raise ProviderError(self.provider_name, f"price not available for {asset} in {currency}")
        return float(data["price"])

    def get_historical_data(
        self,
        asset: str,
        currency: str,
        query: HistoryQuery,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[HistoricalPoint]:
        kline_interval, _ = _INTERVAL_TO_KLINE.get(query.interval, _INTERVAL_TO_KLINE["daily"])
        params: Dict[str, Any] = {
            "symbol": pair_symbol(asset, currency),
            "interval": kline_interval,
            "limit": kline_limit(query.period, query.interval),
        }
        if query.start_date:
            params["startTime"] = iso_to_unix_s(query.start_date) * 1000
        if query.end_date:
            params["endTime"] = iso_to_unix_s(query.end_date) * 1000

        rows = self._get("/api/v3/klines", params, cancel_event)
        if not isinstance(rows, list):
            raise ProviderError(self.provider_name, "invalid klines payload")

        # Kline row: [open_time, open, high, low, close, volume, close_time, ...]
        return [
            HistoricalPoint(timestamp=int(row[0]), price=float(row[4]), volume=float(row[5]))
            for row in rows
            if isinstance(row, list) and len(row) >= 6
        ]

    def get_available_cryptos(
        self,
        limit: int = 100,
        include_metadata: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Dict[str, Any]]:
        data = self._get("/api/v3/exchangeInfo", None, cancel_event)
        symbols = data.get("symbols") if isinstance(data, dict) else None
        if not isinstance(symbols, list):
            raise ProviderError(self.provider_name, "invalid exchangeInfo payload")

        seen = set()
        out: List[Dict[str, Any]] = []
        for s in symbols:
            if s.get("status") != "TRADING" or s.get("quoteAsset") != "USDT":
                continue
            base = s.get("baseAsset")
            if not base or base in seen:
                continue
            seen.add(base)
            item: Dict[str, Any] = {"id": base.lower(), "symbol": base, "name": base}
            if include_metadata:
                item["pair"] = s.get("symbol")
            out.append(item)
            if len(out) >= limit:
                break
        return out

    def check_availability(self) -> bool:
        try:
            resp = requests.get(f"{BINANCE_BASE_URL}/api/v3/ping", timeout=self._http_timeout_s)
        except requests.RequestException:
            return False
        return resp.ok
