"""
价格提醒注册表 - 一次性的高于/低于提醒
每个周期针对行情存储评估，触发后永久失效
"""

import threading
import uuid
from typing import Dict, List, Optional, Callable, Any, Union

from trading_agent.core.errors import InvalidParameterError, NotFoundError
from trading_agent.data.market_store import MarketDataStore
from trading_agent.models.alert_data import PriceAlert, AlertCondition
from trading_agent.utils.data_transforms import parse_price
from trading_agent.utils.events import EventBus, EventTypes
from trading_agent.utils.log import setup_logging

log = setup_logging(module_prefix='ALERT')


def _parse_condition(condition: Union[AlertCondition, str]) -> AlertCondition:
    if isinstance(condition, AlertCondition):
        return condition
    try:
        return AlertCondition(str(condition).lower())
    except ValueError:
        raise InvalidParameterError(f"未知的提醒条件: {condition!r}")


class AlertRegistry:
    """价格提醒注册表，按插入顺序保存"""

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus
        self._alerts: Dict[str, PriceAlert] = {}
        self._lock = threading.RLock()

    def create(self, instrument: str, target_price: float,
               condition: Union[AlertCondition, str],
               on_trigger: Optional[Callable[[float], Any]] = None) -> str:
        """创建价格提醒，返回提醒ID"""
        if not instrument:
            raise InvalidParameterError("instrument 不能为空")
        price = parse_price(target_price, 'target_price')
        alert_condition = _parse_condition(condition)

        alert = PriceAlert(
            id=f"alert_{uuid.uuid4().hex[:12]}",
            instrument=instrument,
            target_price=price,
            condition=alert_condition,
            on_trigger=on_trigger
        )
        with self._lock:
            self._alerts[alert.id] = alert

        log.info(f"[ALERT] 创建价格提醒: {instrument} {alert_condition.value} ${price}")
        return alert.id

    def evaluate_all(self, store: MarketDataStore) -> List[PriceAlert]:
        """评估所有有效提醒，返回本周期触发的提醒"""
        with self._lock:
            alerts = list(self._alerts.values())

        fired = []
        for alert in alerts:
            snapshot = store.get(alert.instrument)
            if snapshot is None:
                continue

            with self._lock:
                # 已失效或已被移除的提醒跳过
                if not alert.active or alert.id not in self._alerts:
                    continue
                if not alert.is_triggered_by(snapshot.price):
                    continue
                alert.active = False

            fired.append(alert)
            log.warning(f"[ALERT] 提醒触发: {alert.instrument} {alert.condition.value} "
                        f"${alert.target_price} 当前价格: ${snapshot.price:.2f}")

            self.event_bus.publish(EventTypes.ALERT_TRIGGERED, {
                'alert_id': alert.id,
                'instrument': alert.instrument,
                'current_price': snapshot.price,
                'target_price': alert.target_price,
                'condition': alert.condition.value
            }, source='AlertRegistry')

            if alert.on_trigger is not None:
                try:
                    alert.on_trigger(snapshot.price)
                except Exception as e:
                    log.error(f"[ALERT] 提醒回调异常 {alert.id}: {e}")

        return fired

    def remove(self, alert_id: str) -> bool:
        with self._lock:
            removed = self._alerts.pop(alert_id, None)
        if removed is not None:
            log.info(f"[ALERT] 已移除提醒: {alert_id}")
        return removed is not None

    def get(self, alert_id: str) -> PriceAlert:
        with self._lock:
            alert = self._alerts.get(alert_id)
        if alert is None:
            raise NotFoundError(f"提醒不存在: {alert_id}")
        return alert

    def list(self) -> List[PriceAlert]:
        with self._lock:
            return list(self._alerts.values())

    def instruments(self) -> List[str]:
        """有效提醒涉及的交易对"""
        with self._lock:
            return [alert.instrument for alert in self._alerts.values() if alert.active]
