"""
策略注册表 - 管理策略生命周期并在每个周期评估已启用的策略
处理：创建 → 启用/停用 → 周期评估（单个策略失败不影响其他策略）
"""

import threading
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Callable, Mapping, Any, Union

from trading_agent.core.errors import InvalidParameterError, NotFoundError, EvaluatorFailure
from trading_agent.data.market_store import MarketDataStore
from trading_agent.execution.gateway import TradeGateway
from trading_agent.models.strategy_data import (
    Strategy, StrategyKind, StrategyParams, PARAMS_BY_KIND,
    DCAParams, GridParams, MomentumParams, MeanReversionParams
)
from trading_agent.strategy.evaluators import EVALUATORS, EvaluationContext
from trading_agent.utils.events import EventBus, EventTypes
from trading_agent.utils.log import setup_logging

log = setup_logging(module_prefix='STRATEGY')

_DISPLAY_NAMES = {
    StrategyKind.DCA: "DCA",
    StrategyKind.GRID: "Grid",
    StrategyKind.MOMENTUM: "Momentum",
    StrategyKind.MEAN_REVERSION: "Mean Reversion",
}


class StrategyRegistry:
    """
    策略注册表 - 按插入顺序保存策略
    启用/停用只是元数据修改，可在周期进行中随时调用
    """

    def __init__(self, event_bus: EventBus, clock: Callable[[], datetime] = datetime.now):
        self.event_bus = event_bus
        self.clock = clock
        self._strategies: Dict[str, Strategy] = {}
        self._lock = threading.RLock()

    def create(self, kind: Union[StrategyKind, str], instrument: str,
               params: Union[StrategyParams, Mapping[str, Any]],
               enabled: bool = True, name: Optional[str] = None) -> str:
        """创建策略，返回策略ID"""
        kind = self._parse_kind(kind)
        if not instrument:
            raise InvalidParameterError("instrument 不能为空")

        params_cls = PARAMS_BY_KIND[kind]
        if isinstance(params, StrategyParams):
            if not isinstance(params, params_cls):
                raise InvalidParameterError(
                    f"参数类型 {type(params).__name__} 与策略类型 {kind.value} 不匹配")
        elif isinstance(params, Mapping):
            params = params_cls.from_mapping(params)
        else:
            raise InvalidParameterError(f"无法识别的策略参数: {params!r}")

        strategy = Strategy(
            id=f"strategy_{uuid.uuid4().hex[:12]}",
            name=name or f"{_DISPLAY_NAMES[kind]} - {instrument}",
            enabled=bool(enabled),
            instrument=instrument,
            kind=kind,
            params=params
        )
        with self._lock:
            self._strategies[strategy.id] = strategy

        log.info(f"[STRATEGY] 创建策略: {strategy.name} ({kind.value}) id={strategy.id}")
        return strategy.id

    def create_dca(self, instrument: str, amount_per_trade: str, interval_minutes: float) -> str:
        return self.create(StrategyKind.DCA, instrument,
                           DCAParams(amount_per_trade, interval_minutes))

    def create_grid(self, instrument: str, lower_price: float, upper_price: float,
                    grid_levels: int, amount_per_level: str) -> str:
        return self.create(StrategyKind.GRID, instrument,
                           GridParams(lower_price, upper_price, grid_levels, amount_per_level))

    def create_momentum(self, instrument: str, threshold: float, trade_amount: str) -> str:
        return self.create(StrategyKind.MOMENTUM, instrument,
                           MomentumParams(threshold, trade_amount))

    def create_mean_reversion(self, instrument: str, lookback_period: int,
                              std_dev_threshold: float, trade_amount: str) -> str:
        return self.create(StrategyKind.MEAN_REVERSION, instrument,
                           MeanReversionParams(lookback_period, std_dev_threshold, trade_amount))

    def enable(self, strategy_id: str) -> bool:
        return self._set_enabled(strategy_id, True)

    def disable(self, strategy_id: str) -> bool:
        return self._set_enabled(strategy_id, False)

    def _set_enabled(self, strategy_id: str, enabled: bool) -> bool:
        with self._lock:
            strategy = self._strategies.get(strategy_id)
            if strategy is None:
                return False
            strategy.enabled = enabled

        log.info(f"[STRATEGY] 策略已{'启用' if enabled else '停用'}: {strategy.name}")
        return True

    def get(self, strategy_id: str) -> Strategy:
        with self._lock:
            strategy = self._strategies.get(strategy_id)
        if strategy is None:
            raise NotFoundError(f"策略不存在: {strategy_id}")
        return strategy

    def list(self) -> List[Strategy]:
        with self._lock:
            return list(self._strategies.values())

    def instruments(self) -> List[str]:
        """已启用策略涉及的交易对"""
        with self._lock:
            return [s.instrument for s in self._strategies.values() if s.enabled]

    def evaluate_all(self, store: MarketDataStore, gateway: TradeGateway) -> List[EvaluatorFailure]:
        """
        按插入顺序评估所有已启用的策略

        Returns:
            本周期内评估失败的列表（已记录日志并发布事件，不会向上抛出）
        """
        ctx = EvaluationContext(store=store, gateway=gateway,
                                event_bus=self.event_bus, now=self.clock())
        failures = []

        for strategy in self.list():
            # 启用状态在评估开始时读取一次
            with self._lock:
                if not strategy.enabled or strategy.id not in self._strategies:
                    continue

            try:
                EVALUATORS[strategy.kind](strategy, ctx)
            except Exception as e:
                failure = EvaluatorFailure(strategy.id, strategy.kind.value, e)
                failures.append(failure)
                log.error(f"[STRATEGY] {failure}")
                self.event_bus.publish(EventTypes.STRATEGY_ERROR, {
                    'strategy_id': strategy.id,
                    'kind': strategy.kind.value,
                    'instrument': strategy.instrument,
                    'error': str(e)
                }, source='StrategyRegistry')

        return failures

    @staticmethod
    def _parse_kind(kind: Union[StrategyKind, str]) -> StrategyKind:
        if isinstance(kind, StrategyKind):
            return kind
        try:
            return StrategyKind(str(kind).lower())
        except ValueError:
            raise InvalidParameterError(f"未知的策略类型: {kind!r}")
