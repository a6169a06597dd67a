"""
监控服务 - 订阅事件总线，收集和提供系统监控数据
"""

import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from trading_agent.alerts.registry import AlertRegistry
from trading_agent.data.market_store import MarketDataStore
from trading_agent.execution.gateway import TradeGateway
from trading_agent.strategy.registry import StrategyRegistry
from trading_agent.utils.events import EventBus, EventTypes, Event
from trading_agent.utils.log import setup_logging
from .data import (
    MonitorSnapshot, InstrumentStatus, AlertHistory, TradeHistory,
    SystemHealth, SystemStatus
)

log = setup_logging(module_prefix='MONITOR')


class MonitorService:
    """监控服务 - 由核心服务持有，随其创建和销毁"""

    def __init__(self, event_bus: EventBus, store: MarketDataStore,
                 alerts: AlertRegistry, strategies: StrategyRegistry,
                 gateway: TradeGateway, history_size: int = 1000,
                 stale_after: timedelta = timedelta(minutes=5)):
        self.event_bus = event_bus
        self.store = store
        self.alerts = alerts
        self.strategies = strategies
        self.gateway = gateway
        self.stale_after = stale_after

        self.start_time = datetime.now()
        self.system_status = SystemStatus.STOPPED
        self._lock = threading.Lock()

        # 数据存储
        self.instrument_status: Dict[str, InstrumentStatus] = {}
        self.alert_history: deque = deque(maxlen=history_size)
        self.trade_history: deque = deque(maxlen=history_size)
        self.recent_errors: deque = deque(maxlen=50)

        self.cycle_count = 0
        self.last_cycle_time: Optional[datetime] = None
        self.refresh_errors = 0
        self.strategy_errors = 0
        self.error_count_today = 0

        self._subscriptions = [
            (EventTypes.ALERT_TRIGGERED, self._handle_alert_event),
            (EventTypes.TRADE_EXECUTED, self._handle_trade_event),
            (EventTypes.STRATEGY_ERROR, self._handle_strategy_error),
            (EventTypes.CYCLE_COMPLETED, self._handle_cycle_event),
            (EventTypes.SYSTEM_STARTED, self._handle_started),
            (EventTypes.SYSTEM_STOPPED, self._handle_stopped),
        ]
        for event_type, handler in self._subscriptions:
            self.event_bus.subscribe(event_type, handler)

        log.debug("[MONITOR] 监控服务已初始化")

    def close(self):
        """取消所有事件订阅"""
        for event_type, handler in self._subscriptions:
            self.event_bus.unsubscribe(event_type, handler)

    def _status_for(self, instrument: str) -> InstrumentStatus:
        if instrument not in self.instrument_status:
            self.instrument_status[instrument] = InstrumentStatus(
                instrument=instrument,
                current_price=None,
                price_change_24h=None,
                last_update_time=None
            )
        return self.instrument_status[instrument]

    def _handle_alert_event(self, event: Event):
        data = event.data
        with self._lock:
            self.alert_history.append(AlertHistory(
                timestamp=event.timestamp,
                alert_id=data['alert_id'],
                instrument=data['instrument'],
                condition=data.get('condition', ''),
                target_price=data['target_price'],
                current_price=data['current_price']
            ))
            self._status_for(data['instrument']).alerts_triggered_today += 1
        log.debug(f"[MONITOR] 记录提醒: {data['instrument']} @{data['current_price']}")

    def _handle_trade_event(self, event: Event):
        data = event.data
        with self._lock:
            self.trade_history.append(TradeHistory(
                timestamp=event.timestamp,
                trade_id=data['id'],
                instrument=data['instrument'],
                side=data['side'],
                order_type=data['order_type'],
                amount=data['amount'],
                executed_price=data['executed_price'],
                strategy_id=data.get('strategy_id')
            ))
            self._status_for(data['instrument']).trades_today += 1
        log.debug(f"[MONITOR] 记录成交: {data['instrument']} {data['side']} @{data['executed_price']}")

    def _handle_strategy_error(self, event: Event):
        with self._lock:
            self.strategy_errors += 1
            self.error_count_today += 1
            self.recent_errors.append(f"{event.data['strategy_id']}: {event.data['error']}")

    def _handle_cycle_event(self, event: Event):
        data = event.data
        with self._lock:
            self.cycle_count = data.get('cycle', self.cycle_count + 1)
            self.last_cycle_time = event.timestamp
            if data.get('refresh_error'):
                self.refresh_errors += 1
                self.error_count_today += 1
                self.recent_errors.append(f"refresh: {data['refresh_error']}")

            for instrument, snapshot in self.store.snapshots().items():
                status = self._status_for(instrument)
                status.current_price = snapshot.price
                status.price_change_24h = snapshot.price_change_24h
                status.last_update_time = snapshot.observed_at

    def _handle_started(self, event: Event):
        self.set_system_status(SystemStatus.RUNNING)

    def _handle_stopped(self, event: Event):
        self.set_system_status(SystemStatus.STOPPED)

    def set_system_status(self, status: SystemStatus):
        """设置系统状态"""
        self.system_status = status
        log.info(f"[MONITOR] 系统状态更新: {status.value}")

    def get_snapshot(self) -> MonitorSnapshot:
        """获取当前监控快照"""
        alerts = self.alerts.list()
        strategies = self.strategies.list()
        account = self.gateway.account

        with self._lock:
            instruments = dict(self.instrument_status)
            cycle_count = self.cycle_count
            last_cycle_time = self.last_cycle_time

        return MonitorSnapshot(
            timestamp=datetime.now(),
            system_status=self.system_status,
            instruments=instruments,
            total_alerts=len(alerts),
            active_alerts=sum(1 for alert in alerts if alert.active),
            total_strategies=len(strategies),
            enabled_strategies=sum(1 for strategy in strategies if strategy.enabled),
            total_trades=len(self.gateway.order_history()),
            cycle_count=cycle_count,
            last_cycle_time=last_cycle_time,
            account_address=account.address if account else None,
            uptime_seconds=int((datetime.now() - self.start_time).total_seconds())
        )

    def get_recent_alerts(self, limit: int = 50) -> List[AlertHistory]:
        with self._lock:
            return list(self.alert_history)[-limit:]

    def get_recent_trades(self, limit: int = 50) -> List[TradeHistory]:
        with self._lock:
            return list(self.trade_history)[-limit:]

    def get_system_health(self) -> SystemHealth:
        """获取系统健康状况"""
        with self._lock:
            last_times = [s.last_update_time for s in self.instrument_status.values()
                          if s.last_update_time is not None]
            last_data_time = max(last_times) if last_times else None

            # 判断数据是否新鲜（默认5分钟内有数据）
            healthy = last_data_time is not None and (
                datetime.now(last_data_time.tzinfo) - last_data_time) < self.stale_after

            return SystemHealth(
                data_stream_healthy=healthy,
                last_data_time=last_data_time,
                refresh_errors=self.refresh_errors,
                strategy_errors=self.strategy_errors,
                error_count_today=self.error_count_today,
                recent_errors=list(self.recent_errors)
            )

    def reset_daily_counters(self):
        """重置每日计数器（可在每日开始时调用）"""
        with self._lock:
            self.error_count_today = 0
            for status in self.instrument_status.values():
                status.trades_today = 0
                status.alerts_triggered_today = 0

        log.info("[MONITOR] 每日计数器已重置")
