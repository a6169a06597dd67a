"""
策略评估器 - 每种策略类型一个评估函数
评估器只修改所属策略参数中的私有状态，下单通过交易网关完成
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict

import pandas as pd

from trading_agent.data.market_store import MarketDataStore
from trading_agent.execution.gateway import TradeGateway
from trading_agent.models.strategy_data import Strategy, StrategyKind
from trading_agent.models.trade_data import OrderSide
from trading_agent.utils.events import EventBus, EventTypes
from trading_agent.utils.log import setup_logging

log = setup_logging(module_prefix='STRATEGY')

# 网格线命中容差（相对于网格间距）
GRID_TOLERANCE_RATIO = 0.1


@dataclass(frozen=True)
class EvaluationContext:
    """单次评估所需的协作者"""
    store: MarketDataStore
    gateway: TradeGateway
    event_bus: EventBus
    now: datetime


def evaluate_dca(strategy: Strategy, ctx: EvaluationContext):
    """定投：距上次执行达到间隔时买入"""
    params = strategy.params
    last = params.last_execution_time
    if last is not None and ctx.now - last < timedelta(minutes=params.interval_minutes):
        return

    log.info(f"[STRATEGY] 定投 {strategy.id}: 买入 {params.amount_per_trade} {strategy.instrument}")
    ctx.gateway.market_buy(strategy.instrument, params.amount_per_trade, strategy_id=strategy.id)
    params.last_execution_time = ctx.now


def evaluate_grid(strategy: Strategy, ctx: EvaluationContext):
    """网格：价格进入网格线容差范围时信号一次，离开后重新布防

    容差为严格小于 0.1 * step。中点以下的网格线买入，中点及以上卖出，
    恰好位于中点的网格线（如 10 档网格的第5档）按卖出处理。
    """
    params = strategy.params
    current_price = ctx.store.current_price(strategy.instrument)
    tolerance = params.step * GRID_TOLERANCE_RATIO

    hits = []
    for index in range(params.grid_levels):
        level_price = params.level_price(index)
        if abs(current_price - level_price) < tolerance:
            if index not in params.filled_levels:
                params.filled_levels.add(index)
                hits.append((index, level_price))
        else:
            params.filled_levels.discard(index)

    for index, level_price in hits:
        side = OrderSide.BUY if level_price < params.midpoint else OrderSide.SELL
        log.info(f"[STRATEGY] 网格 {strategy.id}: 命中第{index}档 ${level_price:.2f} "
                 f"当前价格 ${current_price:.2f} -> {side.value.upper()}")

        ctx.event_bus.publish(EventTypes.GRID_LEVEL_HIT, {
            'strategy_id': strategy.id,
            'instrument': strategy.instrument,
            'level_index': index,
            'level_price': level_price,
            'current_price': current_price,
            'side': side.value
        }, source='GridEvaluator')

        if side is OrderSide.BUY:
            ctx.gateway.market_buy(strategy.instrument, params.amount_per_level, strategy_id=strategy.id)
        else:
            ctx.gateway.market_sell(strategy.instrument, params.amount_per_level, strategy_id=strategy.id)


def evaluate_momentum(strategy: Strategy, ctx: EvaluationContext):
    """动量：与上次价格相比变化超过阈值时顺势交易"""
    params = strategy.params
    current_price = ctx.store.current_price(strategy.instrument)
    last_price = params.last_price

    try:
        if last_price is None or last_price == 0:
            return

        pct_change = (current_price - last_price) / last_price * 100
        if abs(pct_change) < params.threshold:
            return

        if pct_change > 0:
            log.info(f"[STRATEGY] 动量 {strategy.id}: BUY信号 +{pct_change:.2f}%")
            ctx.gateway.market_buy(strategy.instrument, params.trade_amount, strategy_id=strategy.id)
        else:
            log.info(f"[STRATEGY] 动量 {strategy.id}: SELL信号 {pct_change:.2f}%")
            ctx.gateway.market_sell(strategy.instrument, params.trade_amount, strategy_id=strategy.id)
    finally:
        params.last_price = current_price


def evaluate_mean_reversion(strategy: Strategy, ctx: EvaluationContext):
    """均值回归：窗口填满后按 z-score 逆势交易"""
    params = strategy.params
    current_price = ctx.store.current_price(strategy.instrument)

    # deque 的 maxlen 负责淘汰最旧价格
    params.price_history.append(current_price)
    if len(params.price_history) < params.lookback_period:
        return

    window = pd.Series(list(params.price_history), dtype=float)
    mean = float(window.mean())
    std_dev = float(window.std(ddof=0))
    if std_dev == 0:
        return

    z_score = (current_price - mean) / std_dev
    if z_score <= -params.std_dev_threshold:
        log.info(f"[STRATEGY] 均值回归 {strategy.id}: BUY 价格低于均值 {abs(z_score):.2f} 个标准差")
        ctx.gateway.market_buy(strategy.instrument, params.trade_amount, strategy_id=strategy.id)
    elif z_score >= params.std_dev_threshold:
        log.info(f"[STRATEGY] 均值回归 {strategy.id}: SELL 价格高于均值 {z_score:.2f} 个标准差")
        ctx.gateway.market_sell(strategy.instrument, params.trade_amount, strategy_id=strategy.id)


EVALUATORS: Dict[StrategyKind, Callable[[Strategy, EvaluationContext], None]] = {
    StrategyKind.DCA: evaluate_dca,
    StrategyKind.GRID: evaluate_grid,
    StrategyKind.MOMENTUM: evaluate_momentum,
    StrategyKind.MEAN_REVERSION: evaluate_mean_reversion,
}
