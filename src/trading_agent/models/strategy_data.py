"""
策略相关数据模型
每种策略类型对应一个参数类，参数类同时保存评估器私有的可变状态
"""

from collections import deque
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Optional, Set, Deque, Mapping, Any, Union

from trading_agent.core.errors import InvalidParameterError
from trading_agent.utils.data_transforms import parse_amount, parse_price


class StrategyKind(Enum):
    DCA = "dca"
    GRID = "grid"
    MOMENTUM = "momentum"
    MEAN_REVERSION = "mean_reversion"


def _positive_number(value: Any, name: str, allow_zero: bool = False) -> float:
    if isinstance(value, bool):
        raise InvalidParameterError(f"{name} 必须是数字: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"{name} 必须是数字: {value!r}")
    if number != number or number in (float('inf'), float('-inf')):
        raise InvalidParameterError(f"{name} 必须是有限数: {value!r}")
    if number < 0 or (number == 0 and not allow_zero):
        raise InvalidParameterError(f"{name} 必须为正: {value!r}")
    return number


def _positive_int(value: Any, name: str, minimum: int = 1) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise InvalidParameterError(f"{name} 必须是不小于{minimum}的整数: {value!r}")
    return value


class StrategyParams:
    """策略参数基类"""

    kind: StrategyKind

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> 'StrategyParams':
        """从普通字典构造参数，只接受配置字段"""
        allowed = {f.name for f in fields(cls) if f.init}
        unknown = set(mapping) - allowed
        if unknown:
            raise InvalidParameterError(f"{cls.kind.value} 策略不支持的参数: {sorted(unknown)}")
        try:
            return cls(**mapping)
        except TypeError as e:
            raise InvalidParameterError(f"{cls.kind.value} 策略参数缺失: {e}")


@dataclass
class DCAParams(StrategyParams):
    """定投：按固定间隔买入固定数量"""
    amount_per_trade: str
    interval_minutes: float
    last_execution_time: Optional[datetime] = field(default=None, init=False)

    kind = StrategyKind.DCA

    def __post_init__(self):
        self.amount_per_trade = parse_amount(self.amount_per_trade, 'amount_per_trade')
        self.interval_minutes = _positive_number(self.interval_minutes, 'interval_minutes', allow_zero=True)


@dataclass
class GridParams(StrategyParams):
    """网格：在价格区间内等分网格线"""
    lower_price: float
    upper_price: float
    grid_levels: int
    amount_per_level: str
    filled_levels: Set[int] = field(default_factory=set, init=False)

    kind = StrategyKind.GRID

    def __post_init__(self):
        self.lower_price = parse_price(self.lower_price, 'lower_price')
        self.upper_price = parse_price(self.upper_price, 'upper_price')
        if self.upper_price <= self.lower_price:
            raise InvalidParameterError(
                f"upper_price({self.upper_price}) 必须大于 lower_price({self.lower_price})")
        self.grid_levels = _positive_int(self.grid_levels, 'grid_levels')
        self.amount_per_level = parse_amount(self.amount_per_level, 'amount_per_level')

    @property
    def step(self) -> float:
        return (self.upper_price - self.lower_price) / self.grid_levels

    @property
    def midpoint(self) -> float:
        return (self.upper_price + self.lower_price) / 2

    def level_price(self, index: int) -> float:
        return self.lower_price + index * self.step


@dataclass
class MomentumParams(StrategyParams):
    """动量：相邻两次价格变化超过阈值（百分比）时顺势交易"""
    threshold: float
    trade_amount: str
    last_price: Optional[float] = field(default=None, init=False)

    kind = StrategyKind.MOMENTUM

    def __post_init__(self):
        self.threshold = _positive_number(self.threshold, 'threshold')
        self.trade_amount = parse_amount(self.trade_amount, 'trade_amount')


@dataclass
class MeanReversionParams(StrategyParams):
    """均值回归：滚动窗口 z-score 超过阈值时逆势交易"""
    lookback_period: int
    std_dev_threshold: float
    trade_amount: str
    price_history: Deque[float] = field(default=None, init=False)

    kind = StrategyKind.MEAN_REVERSION

    def __post_init__(self):
        self.lookback_period = _positive_int(self.lookback_period, 'lookback_period', minimum=2)
        self.std_dev_threshold = _positive_number(self.std_dev_threshold, 'std_dev_threshold')
        self.trade_amount = parse_amount(self.trade_amount, 'trade_amount')
        self.price_history = deque(maxlen=self.lookback_period)


AnyStrategyParams = Union[DCAParams, GridParams, MomentumParams, MeanReversionParams]

PARAMS_BY_KIND = {
    StrategyKind.DCA: DCAParams,
    StrategyKind.GRID: GridParams,
    StrategyKind.MOMENTUM: MomentumParams,
    StrategyKind.MEAN_REVERSION: MeanReversionParams,
}


@dataclass
class Strategy:
    """注册表中的策略条目"""
    id: str
    name: str
    enabled: bool
    instrument: str
    kind: StrategyKind
    params: AnyStrategyParams
    created_at: datetime = field(default_factory=datetime.now)
