"""
Tests for config layering: defaults <- config.yaml <- environment.
"""
from __future__ import annotations

import pytest

from price_aggregator import config

_ENV_VARS = (
    "PRICE_AGGREGATOR_CONFIG",
    "PRICE_AGGREGATOR_TIMEOUT_S",
    "PRICE_AGGREGATOR_MAX_RETRIES",
    "PRICE_AGGREGATOR_PRIORITY",
    "COINGECKO_API_KEY",
    "BINANCE_API_KEY",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    # Point at a path with no file so a developer's config.yaml does not leak in.
    monkeypatch.setenv("PRICE_AGGREGATOR_CONFIG", str(tmp_path / "absent.yaml"))


def test_defaults_without_yaml():
    cfg = config.get_config()
    assert cfg["providers"]["priority"] == ["coingecko", "binance"]
    assert cfg["resilience"]["max_retries"] == 2
    assert cfg["resilience"]["base_delay_s"] == 0.5
    assert cfg["resilience"]["timeout_s"] == 10.0
    assert cfg["cache"]["default_ttl_s"] == 300
    assert config.volatile_assets() == ["BTC", "ETH", "BNB", "SOL", "XRP", "ADA"]


def test_yaml_merges_over_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "providers:\n"
        "  priority: [binance]\n"
        "resilience:\n"
        "  timeout_s: 4\n"
        "  per_provider:\n"
        "    binance:\n"
        "      max_retries: 0\n",
        encoding="utf-8",
    )
    cfg = config.get_config(path)
    assert cfg["providers"]["priority"] == ["binance"]
    assert cfg["providers"]["api_keys"] == {}
    assert cfg["resilience"]["timeout_s"] == 4
    assert cfg["resilience"]["max_retries"] == 2
    assert cfg["resilience"]["per_provider"] == {"binance": {"max_retries": 0}}


def test_config_path_from_env(monkeypatch, tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text("cache:\n  default_ttl_s: 120\n", encoding="utf-8")
    monkeypatch.setenv("PRICE_AGGREGATOR_CONFIG", str(path))
    assert config.default_ttl_s() == 120


def test_non_mapping_yaml_ignored(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    assert config.get_config(path)["resilience"]["timeout_s"] == 10.0


def test_env_overrides_win(monkeypatch, tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("resilience:\n  timeout_s: 4\n", encoding="utf-8")
    monkeypatch.setenv("PRICE_AGGREGATOR_TIMEOUT_S", "2.5")
    monkeypatch.setenv("PRICE_AGGREGATOR_MAX_RETRIES", "5")
    monkeypatch.setenv("PRICE_AGGREGATOR_PRIORITY", "binance, coingecko,")
    monkeypatch.setenv("COINGECKO_API_KEY", "cg-secret")

    cfg = config.get_config(path)
    assert cfg["resilience"]["timeout_s"] == 2.5
    assert cfg["resilience"]["max_retries"] == 5
    assert cfg["providers"]["priority"] == ["binance", "coingecko"]
    assert cfg["providers"]["api_keys"] == {"coingecko": "cg-secret"}


def test_accessors(monkeypatch):
    monkeypatch.setenv("BINANCE_API_KEY", "bn")
    monkeypatch.setenv("PRICE_AGGREGATOR_TIMEOUT_S", "3")
    assert config.api_keys() == {"binance": "bn"}
    assert config.base_timeout_s() == 3.0
    assert config.provider_priority() == ["coingecko", "binance"]


def test_defaults_not_mutated_by_merge(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("providers:\n  api_keys:\n    coingecko: x\n", encoding="utf-8")
    config.get_config(path)
    assert config.get_config()["providers"]["api_keys"] == {}
