from __future__ import annotations

import pytest

from trading_agent.config.config import TradingConfig
from trading_agent.core.errors import InvalidParameterError
from trading_agent.data.price_source import DemoPriceSource, AlpacaPriceSource
from trading_agent.main import build_price_source, build_account_provider
from trading_agent.execution.account import LocalAccountProvider


def test_create_from_yaml(tmp_path, monkeypatch):
    monkeypatch.setenv("ALPACA_API_KEY", "key")
    monkeypatch.setenv("ALPACA_SECRET_KEY", "secret")
    monkeypatch.setenv("ALPACA_IS_TEST", "false")
    path = tmp_path / "config.yaml"
    path.write_text(
        "instruments: [BTC-USD]\n"
        "interval_seconds: 2\n"
        "price_source: demo\n"
        "log_level: debug\n"
        "demo:\n"
        "  volatility: 0.05\n"
        "  seed: 9\n"
        "  base_prices:\n"
        "    BTC-USD: 30000\n",
        encoding='utf-8'
    )

    config = TradingConfig.create(str(path))

    assert config.instruments == ["BTC-USD"]
    assert config.interval_ms == 2000
    assert config.base_prices == {"BTC-USD": 30000.0}
    assert config.volatility == 0.05
    assert config.seed == 9
    assert config.api_key == "key"
    assert config.is_test is False
    assert config.log_level == "DEBUG"


def test_missing_file_uses_defaults(tmp_path):
    config = TradingConfig.create(str(tmp_path / "absent.yaml"))
    assert config.instruments == ["BTC-USD", "ETH-USD", "SOL-USD"]
    assert config.interval_seconds == 5.0
    assert config.price_source == "demo"


@pytest.mark.parametrize("content", [
    "price_source: bloomberg\n",
    "account_provider: ledger\n",
    "interval_seconds: 0\n",
])
def test_invalid_values_rejected(tmp_path, content):
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding='utf-8')
    with pytest.raises(InvalidParameterError):
        TradingConfig.create(str(path))


def test_builders_follow_config():
    assert isinstance(build_price_source(TradingConfig(seed=1)), DemoPriceSource)
    assert isinstance(build_price_source(TradingConfig(price_source="alpaca")), AlpacaPriceSource)
    assert isinstance(build_account_provider(TradingConfig()), LocalAccountProvider)
