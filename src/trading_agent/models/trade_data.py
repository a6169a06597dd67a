"""
交易记录与账户上下文数据结构
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class OrderType(Enum):
    MARKET = "market"
    LIMIT = "limit"


class OrderSide(Enum):
    BUY = "buy"
    SELL = "sell"


class TradeStatus(Enum):
    COMPLETED = "completed"


@dataclass(frozen=True)
class TradeRecord:
    """已提交的交易记录，创建后不再修改"""
    id: str
    instrument: str
    order_type: OrderType
    side: OrderSide
    amount: str
    executed_price: float
    status: TradeStatus = TradeStatus.COMPLETED
    limit_price: Optional[str] = None
    submitted_at: datetime = field(default_factory=datetime.now)
    strategy_id: Optional[str] = None  # 由策略触发时记录来源

    @property
    def notional(self) -> float:
        return float(self.amount) * self.executed_price


@dataclass(frozen=True)
class AccountContext:
    """账户上下文，交易前必须存在"""
    address: str
    provider: str
    created_at: datetime = field(default_factory=datetime.now)
