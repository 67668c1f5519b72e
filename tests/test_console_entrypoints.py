"""Verify the CLI exposes main(), price-aggregator --help works, and commands print results."""

from __future__ import annotations

import json
import subprocess
import sys

import pytest

from price_aggregator.cli import main as cli_main
from price_aggregator.providers.registry import SourceRegistry
from price_aggregator.providers.resilience import RetryConfig
from price_aggregator.service import PriceAggregationService

from tests.fakes.providers import FakePriceProvider, FakePriceProviderAlwaysFail, RecordingSleep


def _fake_service(*providers) -> PriceAggregationService:
    reg = SourceRegistry(retry_config=RetryConfig(max_retries=0, timeout_s=2.0))
    for p in providers:
        reg.add_api_source(p.provider_name, p)
    return PriceAggregationService(reg, config={}, sleep=RecordingSleep())


@pytest.fixture
def fake_service(monkeypatch):
    service = _fake_service(FakePriceProvider("a", {"BTC": 100.0}), FakePriceProvider("b", {"BTC": 102.0}))
    monkeypatch.setattr(cli_main, "_build_service", lambda: service)
    return service


def test_cli_main_help_exits_zero():
    """cli.main.main(["--help"]) exits with 0 (in-process)."""
    with pytest.raises(SystemExit) as exc_info:
        cli_main.main(["--help"])
    assert exc_info.value.code == 0


def test_no_command_prints_help(capsys):
    assert cli_main.main([]) == 0
    assert "price" in capsys.readouterr().out


def test_price_command(fake_service, capsys):
    assert cli_main.main(["price", "btc"]) == 0
    assert capsys.readouterr().out.strip() == "BTC/USD 100.0"


def test_price_command_preferred(fake_service, capsys):
    assert cli_main.main(["price", "BTC", "USD", "--preferred", "b"]) == 0
    assert capsys.readouterr().out.strip() == "BTC/USD 102.0"


def test_compare_command_prints_json(fake_service, capsys):
    assert cli_main.main(["compare", "BTC"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["average_price"] == pytest.approx(101.0)
    assert set(payload["sources"]) == {"a", "b"}


def test_history_command_json(fake_service, capsys):
    assert cli_main.main(["history", "BTC", "--period", "1W", "--json"]) == 0
    points = json.loads(capsys.readouterr().out)
    assert len(points) == 3
    assert points[0]["price"] == 49000.0


def test_history_command_table(fake_service, capsys):
    assert cli_main.main(["history", "BTC"]) == 0
    assert "price" in capsys.readouterr().out


def test_status_command(fake_service, capsys):
    assert cli_main.main(["status"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["a"]["reason"] == "OK"


def test_exhaustion_returns_one(monkeypatch, capsys):
    service = _fake_service(FakePriceProviderAlwaysFail("a"))
    monkeypatch.setattr(cli_main, "_build_service", lambda: service)
    assert cli_main.main(["price", "XRP", "BRL"]) == 1
    assert "No source could provide price of XRP/BRL" in capsys.readouterr().err


def test_python_m_help_exits_zero():
    """python -m price_aggregator --help exits 0 and lists commands (subprocess)."""
    r = subprocess.run(
        [sys.executable, "-m", "price_aggregator", "--help"],
        capture_output=True,
        text=True,
        timeout=30,
    )
    assert r.returncode == 0, (r.stdout or "") + (r.stderr or "")
    out = (r.stdout or "") + (r.stderr or "")
    assert "compare" in out
