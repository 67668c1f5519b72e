"""
Historical series -> pandas DataFrame.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Sequence

import pandas as pd

_COLUMNS = ["price", "volume", "market_cap"]


def _field(point: Any, name: str, alt: str = "") -> Any:
    if isinstance(point, Mapping):
        if name in point:
            return point[name]
        return point.get(alt) if alt else None
    return getattr(point, name, None)


def history_to_frame(points: Sequence[Any]) -> pd.DataFrame:
    """
    Index by UTC timestamp (from epoch ms), columns price/volume/market_cap.
    Accepts HistoricalPoint objects or dicts (camelCase marketCap tolerated).
    """
    if not points:
        return pd.DataFrame(columns=_COLUMNS, index=pd.DatetimeIndex([], tz="UTC", name="timestamp"))
    rows = [
        {
            "timestamp": _field(p, "timestamp"),
            "price": _field(p, "price"),
            "volume": _field(p, "volume"),
            "market_cap": _field(p, "market_cap", "marketCap"),
        }
        for p in points
    ]
    df = pd.DataFrame(rows)
    df["timestamp"] = pd.to_datetime(df["timestamp"], unit="ms", utc=True)
    df = df.set_index("timestamp").sort_index()
    return df[_COLUMNS].astype(float)
