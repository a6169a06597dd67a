"""
监控数据模型 - 定义状态查询需要的数据结构
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, List
from enum import Enum


class SystemStatus(Enum):
    RUNNING = "运行中"
    STOPPED = "已停止"


@dataclass
class InstrumentStatus:
    """单个交易对的状态"""
    instrument: str
    current_price: Optional[float]
    price_change_24h: Optional[float]
    last_update_time: Optional[datetime]

    # 成交统计
    trades_today: int = 0
    alerts_triggered_today: int = 0


@dataclass
class AlertHistory:
    """提醒触发记录"""
    timestamp: datetime
    alert_id: str
    instrument: str
    condition: str
    target_price: float
    current_price: float


@dataclass
class TradeHistory:
    """成交记录"""
    timestamp: datetime
    trade_id: str
    instrument: str
    side: str
    order_type: str
    amount: str
    executed_price: float
    strategy_id: Optional[str]


@dataclass
class MonitorSnapshot:
    """监控快照 - 系统当前状态的完整视图"""
    timestamp: datetime
    system_status: SystemStatus
    instruments: Dict[str, InstrumentStatus]

    total_alerts: int
    active_alerts: int
    total_strategies: int
    enabled_strategies: int
    total_trades: int

    cycle_count: int
    last_cycle_time: Optional[datetime]
    account_address: Optional[str]
    uptime_seconds: int


@dataclass
class SystemHealth:
    """系统健康状况"""
    data_stream_healthy: bool
    last_data_time: Optional[datetime]
    refresh_errors: int
    strategy_errors: int
    error_count_today: int
    recent_errors: List[str]
