"""
Load config from config.yaml with optional env overrides.
Single source of truth for provider priority, API keys, retry/timeout policy and cache TTLs.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

# Defaults if no YAML or env
_DEFAULTS: Dict[str, Any] = {
    "providers": {
        "priority": ["coingecko", "binance"],
        "api_keys": {},
    },
    "resilience": {
        "max_retries": 2,
        "base_delay_s": 0.5,
        "timeout_s": 10.0,
        "historical_timeout_factor": 2.0,
        "per_provider": {},
    },
    "cache": {
        "volatile_assets": ["BTC", "ETH", "BNB", "SOL", "XRP", "ADA"],
        "default_ttl_s": 300,
    },
}

_API_KEY_ENV = {
    "coingecko": "COINGECKO_API_KEY",
    "binance": "BINANCE_API_KEY",
}


def _config_yaml_path() -> Path:
    """Config.yaml lives at repo root (parent of package dir) unless PRICE_AGGREGATOR_CONFIG is set."""
    override = os.environ.get("PRICE_AGGREGATOR_CONFIG", "").strip()
    if override:
        return Path(override)
    return Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml(path: Optional[Path] = None) -> dict:
    config_path = path or _config_yaml_path()
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict, override: dict) -> dict:
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _env_overrides() -> dict:
    overrides: dict = {}
    timeout = os.environ.get("PRICE_AGGREGATOR_TIMEOUT_S")
    if timeout:
        overrides.setdefault("resilience", {})["timeout_s"] = float(timeout)
    retries = os.environ.get("PRICE_AGGREGATOR_MAX_RETRIES")
    if retries:
        overrides.setdefault("resilience", {})["max_retries"] = int(retries)
    priority = os.environ.get("PRICE_AGGREGATOR_PRIORITY")
    if priority:
        names = [p.strip() for p in priority.split(",") if p.strip()]
        overrides.setdefault("providers", {})["priority"] = names
    for name, env_var in _API_KEY_ENV.items():
        key = os.environ.get(env_var)
        if key:
            overrides.setdefault("providers", {}).setdefault("api_keys", {})[name] = key
    return overrides


def get_config(path: Optional[Path] = None) -> dict:
    """Return merged config: defaults <- config.yaml <- env."""
    merged = _deep_merge(_DEFAULTS, _load_yaml(path))
    merged = _deep_merge(merged, _env_overrides())
    return merged


# Convenience accessors
def provider_priority() -> List[str]:
    return list(get_config()["providers"]["priority"])


def api_keys() -> Dict[str, str]:
    return dict(get_config()["providers"]["api_keys"] or {})


def volatile_assets() -> List[str]:
    return [str(s).upper() for s in get_config()["cache"]["volatile_assets"]]


def default_ttl_s() -> int:
    return int(get_config()["cache"]["default_ttl_s"])


def base_timeout_s() -> float:
    return float(get_config()["resilience"]["timeout_s"])
