"""
Single source for "now" time. Supports deterministic mode for tests via
PRICE_AGGREGATOR_DETERMINISTIC_TIME (ISO format, e.g. 2026-01-01T00:00:00Z).
"""

from __future__ import annotations

import os
from datetime import datetime, timezone


def now_utc_iso() -> str:
    """
    Return current UTC time in ISO format (seconds).
    If env PRICE_AGGREGATOR_DETERMINISTIC_TIME is set, return that value instead.
    """
    fixed = os.environ.get("PRICE_AGGREGATOR_DETERMINISTIC_TIME", "").strip()
    if fixed:
        return fixed if fixed.endswith("Z") or "+" in fixed else f"{fixed}Z"
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def ms_to_utc_iso(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc).isoformat(timespec="seconds")


def iso_to_unix_s(date_str: str) -> int:
    """Parse an ISO date/datetime (naive = UTC, trailing Z accepted) to epoch seconds."""
    text = date_str.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())
