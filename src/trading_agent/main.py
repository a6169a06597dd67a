"""
加密货币交易代理 - 核心服务
周期性刷新行情 → 评估价格提醒 → 执行已启用的交易策略，并发布提醒与成交事件
"""

import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Any, Union

from trading_agent.alerts.registry import AlertRegistry
from trading_agent.config.config import TradingConfig
from trading_agent.core.errors import MarketDataError
from trading_agent.core.scheduler import CycleScheduler, SchedulerState
from trading_agent.data.market_store import MarketDataStore
from trading_agent.data.price_source import PriceSource, DemoPriceSource, AlpacaPriceSource
from trading_agent.execution.account import AccountProvider, LocalAccountProvider, AlpacaAccountProvider
from trading_agent.execution.gateway import TradeGateway
from trading_agent.models.alert_data import PriceAlert, AlertCondition
from trading_agent.models.market_data import MarketSnapshot
from trading_agent.models.strategy_data import Strategy, StrategyKind, StrategyParams
from trading_agent.models.trade_data import TradeRecord, AccountContext, OrderType, OrderSide
from trading_agent.monitor.service import MonitorService
from trading_agent.strategy.registry import StrategyRegistry
from trading_agent.utils.events import EventBus, EventTypes, Event
from trading_agent.utils.log import setup_logging, set_log_level

log = setup_logging(module_prefix='ENGINE')


def build_price_source(config: TradingConfig) -> PriceSource:
    """根据配置创建价格源"""
    if config.price_source == "alpaca":
        return AlpacaPriceSource(api_key=config.api_key, secret_key=config.secret_key)
    return DemoPriceSource(
        base_prices=config.base_prices or None,
        volatility=config.volatility,
        seed=config.seed
    )


def build_account_provider(config: TradingConfig) -> AccountProvider:
    """根据配置创建账户提供者"""
    if config.account_provider == "alpaca":
        return AlpacaAccountProvider(config.api_key, config.secret_key, paper=config.is_test)
    return LocalAccountProvider()


class TradingAgent:
    """交易代理 - 持有行情存储、提醒/策略注册表、交易网关和调度器"""

    def __init__(self, config: Optional[TradingConfig] = None,
                 price_source: Optional[PriceSource] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.config = config or TradingConfig.create()
        set_log_level(self.config.log_level)

        self.events = EventBus()
        self.market_data = MarketDataStore(price_source or build_price_source(self.config))
        self.alerts = AlertRegistry(self.events)
        self.strategies = StrategyRegistry(self.events, clock=clock)
        self.gateway = TradeGateway(self.market_data, self.events, clock=clock)
        self.scheduler = CycleScheduler(self._run_cycle)
        self.monitor = MonitorService(
            self.events, self.market_data, self.alerts, self.strategies, self.gateway
        )
        self._closed = False

    # ==================== 生命周期 ====================

    def initialize(self, account_provider: Optional[AccountProvider] = None,
                   start_monitoring: bool = True) -> AccountContext:
        """建立账户上下文，并（默认）开始行情监控"""
        account = self.gateway.initialize(account_provider or build_account_provider(self.config))
        log.info(f"交易代理已初始化，账户: {account.address}")
        if start_monitoring:
            self.start()
        return account

    def start(self, interval_ms: Optional[float] = None) -> SchedulerState:
        """开始周期监控；已在运行时不重复启动"""
        if self.scheduler.is_running:
            return self.scheduler.state
        state = self.scheduler.start(interval_ms if interval_ms is not None else self.config.interval_ms)
        self.events.publish(EventTypes.SYSTEM_STARTED, {
            'interval_ms': self.scheduler.interval_ms
        }, source='TradingAgent')
        return state

    def stop(self) -> SchedulerState:
        """停止周期监控，不打断进行中的周期"""
        was_running = self.scheduler.is_running
        state = self.scheduler.stop()
        if was_running:
            self.events.publish(EventTypes.SYSTEM_STOPPED, {}, source='TradingAgent')
        return state

    def close(self, timeout: Optional[float] = 5.0):
        """停止监控、等待进行中的周期完成并释放订阅"""
        if self._closed:
            return
        self.stop()
        self.scheduler.join(timeout)
        self.monitor.close()
        self.events.clear_subscribers()
        self._closed = True
        log.info("交易代理已关闭")

    # ==================== 监控周期 ====================

    def tracked_instruments(self) -> List[str]:
        """配置中的交易对 + 提醒和策略涉及的交易对（保持首次出现顺序）"""
        instruments = list(self.config.instruments)
        instruments += self.alerts.instruments()
        instruments += self.strategies.instruments()
        return list(dict.fromkeys(instruments))

    def run_cycle(self):
        """手动执行一个完整周期（与调度器周期串行）"""
        self.scheduler.run_once()

    def _run_cycle(self):
        started = time.monotonic()
        refresh_error = None
        try:
            self.market_data.refresh(self.tracked_instruments())
        except MarketDataError as e:
            # 保留上一次的快照继续评估
            refresh_error = str(e)

        fired = self.alerts.evaluate_all(self.market_data)
        failures = self.strategies.evaluate_all(self.market_data, self.gateway)

        duration_ms = (time.monotonic() - started) * 1000
        log.debug(f"[CYCLE] 周期完成: 提醒触发{len(fired)}个 策略失败{len(failures)}个 "
                  f"耗时{duration_ms:.1f}ms")

        self.events.publish(EventTypes.CYCLE_COMPLETED, {
            'cycle': self.scheduler.cycle_count + 1,
            'alerts_fired': [alert.id for alert in fired],
            'strategy_failures': [failure.strategy_id for failure in failures],
            'refresh_error': refresh_error,
            'duration_ms': duration_ms
        }, source='TradingAgent')

    # ==================== 行情 ====================

    def get_market_data(self, instrument: str) -> Optional[MarketSnapshot]:
        return self.market_data.get(instrument)

    def get_current_price(self, instrument: str) -> float:
        return self.market_data.current_price(instrument)

    # ==================== 价格提醒 ====================

    def create_price_alert(self, instrument: str, target_price: float,
                           condition: Union[AlertCondition, str],
                           callback: Optional[Callable[[float], Any]] = None) -> str:
        return self.alerts.create(instrument, target_price, condition, callback)

    def remove_price_alert(self, alert_id: str) -> bool:
        return self.alerts.remove(alert_id)

    def list_price_alerts(self) -> List[PriceAlert]:
        return self.alerts.list()

    # ==================== 交易策略 ====================

    def create_strategy(self, kind: Union[StrategyKind, str], instrument: str,
                        params: Union[StrategyParams, Dict[str, Any]],
                        enabled: bool = True, name: Optional[str] = None) -> str:
        return self.strategies.create(kind, instrument, params, enabled=enabled, name=name)

    def create_dca_strategy(self, instrument: str, amount_per_trade: str, interval_minutes: float) -> str:
        return self.strategies.create_dca(instrument, amount_per_trade, interval_minutes)

    def create_grid_strategy(self, instrument: str, lower_price: float, upper_price: float,
                             grid_levels: int, amount_per_level: str) -> str:
        return self.strategies.create_grid(instrument, lower_price, upper_price, grid_levels, amount_per_level)

    def create_momentum_strategy(self, instrument: str, threshold: float, trade_amount: str) -> str:
        return self.strategies.create_momentum(instrument, threshold, trade_amount)

    def create_mean_reversion_strategy(self, instrument: str, lookback_period: int,
                                       std_dev_threshold: float, trade_amount: str) -> str:
        return self.strategies.create_mean_reversion(instrument, lookback_period, std_dev_threshold, trade_amount)

    def enable_strategy(self, strategy_id: str) -> bool:
        return self.strategies.enable(strategy_id)

    def disable_strategy(self, strategy_id: str) -> bool:
        return self.strategies.disable(strategy_id)

    def list_strategies(self) -> List[Strategy]:
        return self.strategies.list()

    # ==================== 交易 ====================

    def execute_trade(self, instrument: str, order_type: Union[OrderType, str],
                      side: Union[OrderSide, str], amount: str,
                      limit_price: Optional[str] = None) -> TradeRecord:
        return self.gateway.submit(instrument, order_type, side, amount, limit_price)

    def market_buy(self, instrument: str, amount: str) -> TradeRecord:
        return self.gateway.market_buy(instrument, amount)

    def market_sell(self, instrument: str, amount: str) -> TradeRecord:
        return self.gateway.market_sell(instrument, amount)

    def limit_buy(self, instrument: str, amount: str, limit_price: str) -> TradeRecord:
        return self.gateway.limit_buy(instrument, amount, limit_price)

    def limit_sell(self, instrument: str, amount: str, limit_price: str) -> TradeRecord:
        return self.gateway.limit_sell(instrument, amount, limit_price)

    # ==================== 报告 ====================

    def get_order_history(self) -> List[TradeRecord]:
        return self.gateway.order_history()

    def performance_report(self) -> Dict[str, Any]:
        return self.gateway.performance_report()

    def subscribe(self, event_type: str, handler: Callable[[Event], None]):
        self.events.subscribe(event_type, handler)


def main():
    """示例：创建提醒与策略，持续运行直到 Ctrl+C"""
    agent = TradingAgent()

    agent.subscribe(EventTypes.ALERT_TRIGGERED, lambda event: log.info(f"提醒触发: {event.data}"))
    agent.subscribe(EventTypes.TRADE_EXECUTED, lambda event: log.info(f"成交完成: {event.data}"))

    agent.initialize()

    agent.create_price_alert("BTC-USD", 45000, "above",
                             lambda price: log.info(f"BTC 达到目标价: ${price:.2f}"))
    agent.create_price_alert("ETH-USD", 2500, "below",
                             lambda price: agent.market_buy("ETH-USD", "0.1"))

    agent.create_dca_strategy("BTC-USD", "0.001", 60)
    agent.create_grid_strategy("ETH-USD", 2000, 3000, 10, "0.05")
    agent.create_momentum_strategy("SOL-USD", 5, "1")
    agent.create_mean_reversion_strategy("BTC-USD", 20, 2.0, "0.002")

    log.info("交易代理运行中，按 Ctrl+C 停止")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        log.info("收到停止信号...")
    finally:
        report = agent.performance_report()
        log.info(f"成交统计: 共{report['total_trades']}笔 "
                 f"买入{report['buy_trades']} 卖出{report['sell_trades']}")
        agent.close()


if __name__ == "__main__":
    main()
