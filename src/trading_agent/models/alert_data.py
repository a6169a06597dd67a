"""
价格提醒数据模型
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Callable, Any


class AlertCondition(Enum):
    ABOVE = "above"
    BELOW = "below"


@dataclass
class PriceAlert:
    """一次性价格提醒，触发后永久失效"""
    id: str
    instrument: str
    target_price: float
    condition: AlertCondition
    active: bool = True
    on_trigger: Optional[Callable[[float], Any]] = None
    created_at: datetime = field(default_factory=datetime.now)

    def is_triggered_by(self, price: float) -> bool:
        if self.condition is AlertCondition.ABOVE:
            return price >= self.target_price
        return price <= self.target_price
