"""交易代理配置管理"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

from trading_agent.core.errors import InvalidParameterError
from trading_agent.utils.log import setup_logging

log = setup_logging(module_prefix='ENGINE')

PRICE_SOURCES = ("demo", "alpaca")
ACCOUNT_PROVIDERS = ("local", "alpaca")


@dataclass
class TradingConfig:
    """交易代理配置"""
    # 监控的交易对列表
    instruments: List[str] = field(default_factory=lambda: ["BTC-USD", "ETH-USD", "SOL-USD"])

    # 监控周期（秒）
    interval_seconds: float = 5.0

    # 价格源与账户
    price_source: str = "demo"
    account_provider: str = "local"

    # 模拟价格源设置
    base_prices: Dict[str, float] = field(default_factory=dict)
    volatility: float = 0.02
    seed: Optional[int] = None

    # API密钥
    api_key: str = ""
    secret_key: str = ""
    is_test: bool = True

    log_level: str = "INFO"

    @property
    def interval_ms(self) -> float:
        return self.interval_seconds * 1000

    @classmethod
    def create(cls, config_path: str = None) -> 'TradingConfig':
        """创建配置实例，自动加载 .env 与 config.yaml"""
        load_dotenv()

        if config_path is None:
            # 默认配置文件路径 - 当前工作目录下的 config.yaml
            config_path = Path.cwd() / "config.yaml"

        config_data = {}
        if Path(config_path).exists():
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        else:
            log.warning(f"配置文件不存在，使用默认配置: {config_path}")

        defaults = cls()
        price_source = str(config_data.get('price_source', defaults.price_source)).lower()
        if price_source not in PRICE_SOURCES:
            raise InvalidParameterError(f"未知的价格源: {price_source}")

        account_provider = str(config_data.get('account_provider', defaults.account_provider)).lower()
        if account_provider not in ACCOUNT_PROVIDERS:
            raise InvalidParameterError(f"未知的账户提供者: {account_provider}")

        interval_seconds = float(config_data.get('interval_seconds', defaults.interval_seconds))
        if interval_seconds <= 0:
            raise InvalidParameterError(f"interval_seconds 必须为正数: {interval_seconds}")

        demo = config_data.get('demo', {}) or {}

        return cls(
            instruments=list(config_data.get('instruments', defaults.instruments)),
            interval_seconds=interval_seconds,
            price_source=price_source,
            account_provider=account_provider,
            base_prices={k: float(v) for k, v in (demo.get('base_prices') or {}).items()},
            volatility=float(demo.get('volatility', defaults.volatility)),
            seed=demo.get('seed'),
            # 从环境变量加载API密钥
            api_key=os.getenv("ALPACA_API_KEY", ""),
            secret_key=os.getenv("ALPACA_SECRET_KEY", ""),
            is_test=os.getenv("ALPACA_IS_TEST", "true").lower() == "true",
            log_level=str(config_data.get('log_level', defaults.log_level)).upper()
        )
