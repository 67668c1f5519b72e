"""
Default source registry configuration.

Registers built-in adapters and applies priority, API keys and retry policy
from config.yaml settings. To add a new provider, register it here and add it
to the priority list.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..config import get_config
from .binance import BinanceAdapter
from .coingecko import CoinGeckoAdapter
from .registry import SourceRegistry
from .resilience import RetryConfig

logger = logging.getLogger(__name__)

# Default provider priority (config.yaml can override these)
DEFAULT_PRIORITY = ["coingecko", "binance"]

BUILTIN_ADAPTERS = {
    "coingecko": CoinGeckoAdapter,
    "binance": BinanceAdapter,
}


def create_default_registry(
    config: Optional[Dict[str, Any]] = None,
    priority: Optional[List[str]] = None,
) -> SourceRegistry:
    """
    Build a registry with every built-in adapter, ordered by `priority`, then
    config `providers.priority`, then DEFAULT_PRIORITY.
    """
    cfg = config if config is not None else get_config()
    providers_cfg = cfg.get("providers", {})
    resilience_cfg = cfg.get("resilience", {})
    api_keys = dict(providers_cfg.get("api_keys") or {})

    registry = SourceRegistry(
        priority=priority or providers_cfg.get("priority") or DEFAULT_PRIORITY,
        api_keys=api_keys,
        retry_config=RetryConfig.from_config(resilience_cfg),
        per_provider=resilience_cfg.get("per_provider") or {},
    )
    for name, factory in BUILTIN_ADAPTERS.items():
        registry.add_api_source(name, factory(api_key=api_keys.get(name)))
    logger.debug("Default registry order: %s", registry.priority)
    return registry
