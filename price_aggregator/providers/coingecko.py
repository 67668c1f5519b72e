"""
CoinGecko market-data adapter.

Uses the public CoinGecko API, or the pro endpoint when an API key is set:
  GET /simple/price?ids={id}&vs_currencies={currency}
  GET /coins/{id}/market_chart?vs_currency={currency}&days={days}&interval={interval}
  GET /coins/{id}/market_chart/range?vs_currency={currency}&from={unix}&to={unix}
  GET /coins/markets?vs_currency={currency}&order=market_cap_desc&per_page={limit}&page=1
  GET /coins/{id}?localization=false&tickers=false&market_data=true
  GET /global
  GET /ping
"""
from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

import requests

from ..core.errors import ProviderError
from ..timeutils import iso_to_unix_s
from .base import Capability, HistoricalPoint, HistoryQuery, ProviderAdapter

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
COINGECKO_PRO_URL = "https://pro-api.coingecko.com/api/v3"
HTTP_TIMEOUT_S = 15.0

_SYMBOL_TO_ID = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "USDT": "tether",
    "BNB": "binancecoin",
    "USDC": "usd-coin",
    "XRP": "ripple",
    "SOL": "solana",
    "ADA": "cardano",
    "DOGE": "dogecoin",
    "TON": "the-open-network",
}

_PERIOD_TO_DAYS = {
    "1D": "1",
    "1W": "7",
    "1M": "30",
    "3M": "90",
    "6M": "180",
    "1Y": "365",
    "ALL": "max",
}

# CoinGecko has no weekly granularity; weekly requests fall back to daily points.
_INTERVAL_TO_PARAM = {
    "hourly": "hourly",
    "daily": "daily",
    "weekly": "daily",
}


def coin_id(asset: str) -> str:
    return _SYMBOL_TO_ID.get(asset.upper(), asset.lower())


def _series_lookup(rows: Any) -> Dict[int, float]:
    if not isinstance(rows, list):
        return {}
    out: Dict[int, float] = {}
    for row in rows:
        if isinstance(row, (list, tuple)) and len(row) >= 2 and row[1] is not None:
            out[int(row[0])] = float(row[1])
    return out


def _pick(d: Any, key: str, currency: str) -> Any:
    if not isinstance(d, dict):
        return None
    inner = d.get(key)
    if isinstance(inner, dict):
        return inner.get(currency)
    return None


class CoinGeckoAdapter(ProviderAdapter):
    """Fetch prices, history, listings, details and market info from CoinGecko."""

    capabilities = (
        Capability.CURRENT_PRICE
        | Capability.HISTORICAL_DATA
        | Capability.ASSET_LISTING
        | Capability.ASSET_DETAILS
        | Capability.MARKET_INFO
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
        return "coingecko"

    def _base_url(self) -> str:
        return COINGECKO_PRO_URL if self.has_valid_api_key else COINGECKO_BASE_URL

    def _headers(self) -> Dict[str, str]:
        return {"x-cg-pro-api-key": self._api_key} if self.has_valid_api_key else {}

    def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        if cancel_event is not None and cancel_event.is_set():
            raise ProviderError(self.provider_name, "request cancelled")
        resp = requests.get(
            f"{self._base_url()}{path}",
            params=params,
            headers=self._headers(),
            timeout=self._http_timeout_s,
        )
        if resp.status_code == 429:
            raise ProviderError(self.provider_name, "rate limit (HTTP 429)")
        resp.raise_for_status()
        return resp.json()

    def get_current_price(
        self, asset: str, currency: str, cancel_event: Optional[threading.Event] = None
    ) -> float:
        cid = coin_id(asset)
        vs = currency.lower()
        data = self._get("/simple/price", {"ids": cid, "vs_currencies": vs}, cancel_event)
        price = _pick(data, cid, vs)
        if price is None:
            raise ProviderError(self.provider_name, f"price not available for {asset} in {currency}")
        return float(price)

    def get_historical_data(
        self,
        asset: str,
        currency: str,
        query: HistoryQuery,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[HistoricalPoint]:
        cid = coin_id(asset)
        vs = currency.lower()
        if query.start_date and query.end_date:
            data = self._get(
                f"/coins/{cid}/market_chart/range",
                {"vs_currency": vs, "from": iso_to_unix_s(query.start_date), "to": iso_to_unix_s(query.end_date)},
                cancel_event,
            )
        else:
            data = self._get(
                f"/coins/{cid}/market_chart",
                {
                    "vs_currency": vs,
                    "days": _PERIOD_TO_DAYS.get(query.period, "30"),
                    "interval": _INTERVAL_TO_PARAM.get(query.interval, "daily"),
                },
                cancel_event,
            )

        prices = data.get("prices") if isinstance(data, dict) else None
        if not isinstance(prices, list):
            raise ProviderError(self.provider_name, "invalid market_chart payload")

        volumes = _series_lookup(data.get("total_volumes"))
        caps = _series_lookup(data.get("market_caps"))
        points = []
        for row in prices:
            ts = int(row[0])
            points.append(
                HistoricalPoint(
                    timestamp=ts,
                    price=float(row[1]),
                    volume=volumes.get(ts),
                    market_cap=caps.get(ts),
                )
            )
        points.sort(key=lambda p: p.timestamp)
        return points

    def get_available_cryptos(
        self,
        limit: int = 100,
        include_metadata: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Dict[str, Any]]:
        data = self._get(
            "/coins/markets",
            {"vs_currency": "usd", "order": "market_cap_desc", "per_page": limit, "page": 1},
            cancel_event,
        )
        if not isinstance(data, list):
            raise ProviderError(self.provider_name, "invalid coins/markets payload")

        out = []
        for coin in data:
            item: Dict[str, Any] = {
                "id": coin.get("id"),
                "symbol": (coin.get("symbol") or "").upper(),
                "name": coin.get("name"),
            }
            if include_metadata:
                item.update(
                    image=coin.get("image"),
                    current_price=coin.get("current_price"),
                    market_cap=coin.get("market_cap"),
                    market_cap_rank=coin.get("market_cap_rank"),
                    price_change_percentage_24h=coin.get("price_change_percentage_24h"),
                )
            out.append(item)
        return out

    def get_crypto_details(
        self, asset: str, currency: str = "USD", cancel_event: Optional[threading.Event] = None
    ) -> Dict[str, Any]:
        data = self._get(
            f"/coins/{coin_id(asset)}",
            {
                "localization": "false",
                "tickers": "false",
                "market_data": "true",
                "community_data": "false",
                "developer_data": "false",
            },
            cancel_event,
        )
        if not isinstance(data, dict):
            raise ProviderError(self.provider_name, "invalid coin details payload")

        vs = currency.lower()
        md = data.get("market_data") or {}
        return {
            "id": data.get("id"),
            "symbol": (data.get("symbol") or "").upper(),
            "name": data.get("name"),
            "description": (data.get("description") or {}).get("en", ""),
            "image": (data.get("image") or {}).get("large"),
            "current_price": _pick(md, "current_price", vs),
            "market_cap": _pick(md, "market_cap", vs),
            "market_cap_rank": data.get("market_cap_rank"),
            "total_volume": _pick(md, "total_volume", vs),
            "high_24h": _pick(md, "high_24h", vs),
            "low_24h": _pick(md, "low_24h", vs),
            "price_change_24h": md.get("price_change_24h"),
            "price_change_percentage_24h": md.get("price_change_percentage_24h"),
            "circulating_supply": md.get("circulating_supply"),
            "total_supply": md.get("total_supply"),
            "max_supply": md.get("max_supply"),
            "all_time_high": _pick(md, "ath", vs),
            "all_time_high_date": _pick(md, "ath_date", vs),
            "all_time_low": _pick(md, "atl", vs),
            "all_time_low_date": _pick(md, "atl_date", vs),
        }

    def get_market_info(
        self, limit: int = 100, currency: str = "USD", cancel_event: Optional[threading.Event] = None
    ) -> Dict[str, Any]:
        data = self._get("/global", None, cancel_event)
        glob = data.get("data") if isinstance(data, dict) else None
        if not isinstance(glob, dict):
            raise ProviderError(self.provider_name, "invalid global payload")

        vs = currency.lower()
        markets = self.get_available_cryptos(limit=limit, include_metadata=True, cancel_event=cancel_event)
        return {
            "total_market_cap": _pick(glob, "total_market_cap", vs),
            "total_volume": _pick(glob, "total_volume", vs),
            "market_cap_percentage": glob.get("market_cap_percentage"),
            "markets": markets,
        }

    def check_availability(self) -> bool:
        try:
            resp = requests.get(f"{self._base_url()}/ping", headers=self._headers(), timeout=self._http_timeout_s)
        except requests.RequestException:
            return False
        return resp.ok
