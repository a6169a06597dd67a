"""
数据转换纯函数
参数校验、交易对符号转换、记录与DataFrame互转
"""

import math
from dataclasses import asdict
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from numbers import Real
from typing import List, Dict, Any, Iterable

import arrow
import pandas as pd

from trading_agent.core.errors import InvalidParameterError


def parse_amount(value: Any, name: str = 'amount') -> str:
    """校验交易数量（十进制字符串），返回规范化后的字符串"""
    if isinstance(value, bool) or value is None:
        raise InvalidParameterError(f"{name} 必须是正数: {value!r}")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidParameterError(f"{name} 格式错误: {value!r}")
    if not amount.is_finite() or amount <= 0:
        raise InvalidParameterError(f"{name} 必须是有限正数: {value!r}")
    return str(value).strip()


def parse_price(value: Any, name: str = 'price') -> float:
    """校验价格：有限正实数"""
    if isinstance(value, bool) or not isinstance(value, (Real, Decimal, str)):
        raise InvalidParameterError(f"{name} 必须是数字: {value!r}")
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"{name} 格式错误: {value!r}")
    if not math.isfinite(price) or price <= 0:
        raise InvalidParameterError(f"{name} 必须是有限正数: {value!r}")
    return price


def to_alpaca_symbol(instrument: str) -> str:
    """BTC-USD -> BTC/USD"""
    return instrument.replace('-', '/')


def from_alpaca_symbol(symbol: str) -> str:
    """BTC/USD -> BTC-USD"""
    return symbol.replace('/', '-')


def format_timestamp(timestamp: datetime) -> str:
    """将时间戳格式化为ISO字符串（UTC）"""
    return arrow.get(timestamp).to('UTC').isoformat()


def record_to_dict(record: Any) -> Dict[str, Any]:
    """dataclass记录转换为事件/展示用字典，枚举转为取值"""
    data = asdict(record)
    for key, value in data.items():
        if isinstance(value, Enum):
            data[key] = value.value
    return data


def records_to_dataframe(records: Iterable[Any]) -> pd.DataFrame:
    """将交易记录列表转换为 pandas DataFrame"""
    rows: List[Dict[str, Any]] = [record_to_dict(record) for record in records]
    if not rows:
        return pd.DataFrame()
    return pd.DataFrame(rows)
