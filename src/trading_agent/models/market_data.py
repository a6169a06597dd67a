"""
市场数据相关类型定义
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class MarketSnapshot:
    """单个交易对的最新行情快照"""
    instrument: str
    price: float
    volume_24h: float = 0.0
    price_change_24h: float = 0.0  # 百分比
    observed_at: datetime = field(default_factory=datetime.now)
