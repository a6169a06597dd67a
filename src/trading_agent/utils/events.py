"""
交易代理事件系统 - 核心服务向通知渠道、监控服务推送提醒、成交与周期事件

提醒、成交、网格、策略错误事件带有固定字段的负载（见各 Payload 定义），
发布时缺少字段视为发布方的编程错误，直接抛出 InvalidParameterError。
订阅者在锁外按订阅顺序同步执行，单个订阅者异常只记录日志。
"""

import threading
from collections import defaultdict
from typing import Dict, List, Callable, Any, Optional, TypedDict
from dataclasses import dataclass
from datetime import datetime

from trading_agent.core.errors import InvalidParameterError
from trading_agent.utils.log import setup_logging

log = setup_logging(module_prefix='ENGINE')


class AlertTriggeredPayload(TypedDict):
    alert_id: str
    instrument: str
    current_price: float
    target_price: float
    condition: str


class TradeExecutedPayload(TypedDict):
    """成交记录的字典形式，枚举字段为取值"""
    id: str
    instrument: str
    order_type: str
    side: str
    amount: str
    executed_price: float
    status: str
    limit_price: Optional[str]
    submitted_at: datetime
    strategy_id: Optional[str]


class GridLevelHitPayload(TypedDict):
    strategy_id: str
    instrument: str
    level_index: int
    level_price: float
    current_price: float
    side: str


class StrategyErrorPayload(TypedDict):
    strategy_id: str
    kind: str
    instrument: str
    error: str


class CycleCompletedPayload(TypedDict):
    cycle: int
    alerts_fired: List[str]
    strategy_failures: List[str]
    refresh_error: Optional[str]
    duration_ms: float


@dataclass
class Event:
    """事件数据结构"""
    type: str
    data: Dict[str, Any]
    timestamp: datetime
    source: Optional[str] = None


class EventBus:
    """线程安全的事件总线"""

    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Event], None]]] = defaultdict(list)
        self._lock = threading.RLock()
        self.delivery_errors = 0

    def subscribe(self, event_type: str, callback: Callable[[Event], None]):
        """订阅事件类型，回调接收 Event 对象"""
        with self._lock:
            self._subscribers[event_type].append(callback)
        log.debug(f"[EVENT] 订阅事件: {event_type}")

    def unsubscribe(self, event_type: str, callback: Callable[[Event], None]) -> bool:
        with self._lock:
            callbacks = self._subscribers.get(event_type, [])
            if callback not in callbacks:
                return False
            callbacks.remove(callback)
        log.debug(f"[EVENT] 取消订阅: {event_type}")
        return True

    def publish(self, event_type: str, data: Dict[str, Any], source: str = None) -> Event:
        """发布事件（同步）

        Args:
            event_type: 事件类型
            data: 事件负载，已登记类型的事件须包含其 Payload 的全部字段
            source: 事件来源标识

        Returns:
            已投递的 Event
        """
        payload_type = EventTypes.PAYLOADS.get(event_type)
        if payload_type is not None:
            missing = payload_type.__required_keys__ - data.keys()
            if missing:
                raise InvalidParameterError(
                    f"事件 {event_type} 缺少字段: {', '.join(sorted(missing))}"
                )

        event = Event(type=event_type, data=data, timestamp=datetime.now(), source=source)

        with self._lock:
            subscribers = list(self._subscribers.get(event_type, []))

        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                with self._lock:
                    self.delivery_errors += 1
                log.error(f"[EVENT] 事件处理异常 {event_type} ({source}): {e}")

        return event

    def get_subscriber_count(self, event_type: str = None) -> int:
        with self._lock:
            if event_type:
                return len(self._subscribers.get(event_type, []))
            return sum(len(subs) for subs in self._subscribers.values())

    def clear_subscribers(self, event_type: str = None):
        with self._lock:
            if event_type:
                self._subscribers.pop(event_type, None)
            else:
                self._subscribers.clear()


def on_event(event_type: str, bus: EventBus):
    """事件订阅装饰器

    使用示例:
    @on_event(EventTypes.ALERT_TRIGGERED, agent.events)
    def handle_alert(event: Event):
        print(f"价格提醒: {event.data['instrument']} @ {event.data['current_price']}")
    """
    def decorator(func):
        bus.subscribe(event_type, func)
        return func
    return decorator


class EventTypes:
    """交易代理事件类型"""

    # 提醒与交易
    ALERT_TRIGGERED = "alert-triggered"
    TRADE_EXECUTED = "trade-executed"

    # 策略
    GRID_LEVEL_HIT = "grid-level-hit"
    STRATEGY_ERROR = "strategy-error"

    # 系统
    CYCLE_COMPLETED = "cycle-completed"
    SYSTEM_STARTED = "system-started"
    SYSTEM_STOPPED = "system-stopped"

    PAYLOADS = {
        ALERT_TRIGGERED: AlertTriggeredPayload,
        TRADE_EXECUTED: TradeExecutedPayload,
        GRID_LEVEL_HIT: GridLevelHitPayload,
        STRATEGY_ERROR: StrategyErrorPayload,
        CYCLE_COMPLETED: CycleCompletedPayload,
    }
