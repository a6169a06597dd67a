"""
交易提交网关 - 从交易请求到成交记录的桥梁
以当前行情定价，记录到只追加的订单历史，并发布成交事件
"""

import threading
import uuid
from datetime import datetime
from typing import Optional, List, Dict, Any, Callable, Union

import pandas as pd

from trading_agent.core.errors import NotInitializedError, InvalidParameterError
from trading_agent.data.market_store import MarketDataStore
from trading_agent.execution.account import AccountProvider
from trading_agent.models.trade_data import (
    TradeRecord, OrderType, OrderSide, TradeStatus, AccountContext
)
from trading_agent.utils.data_transforms import (
    parse_amount, parse_price, record_to_dict, records_to_dataframe, format_timestamp
)
from trading_agent.utils.events import EventBus, EventTypes
from trading_agent.utils.log import setup_logging

log = setup_logging(module_prefix='EXECUTION')


def _parse_enum(enum_cls, value, name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        raise InvalidParameterError(f"未知的{name}: {value!r}")


class TradeGateway:
    """交易提交网关"""

    def __init__(self, store: MarketDataStore, event_bus: EventBus,
                 clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.event_bus = event_bus
        self.clock = clock
        self._account: Optional[AccountContext] = None
        self._history: List[TradeRecord] = []
        self._lock = threading.RLock()

    def initialize(self, account_provider: AccountProvider) -> AccountContext:
        """建立账户上下文"""
        try:
            account = account_provider.create_account()
        except Exception as e:
            log.error(f"[EXECUTION] 初始化交易账户失败: {e}")
            raise
        self._account = account
        log.info(f"[EXECUTION] 交易账户已初始化: {account.address} ({account.provider})")
        return account

    @property
    def account(self) -> Optional[AccountContext]:
        return self._account

    @property
    def is_initialized(self) -> bool:
        return self._account is not None

    def submit(self, instrument: str,
               order_type: Union[OrderType, str],
               side: Union[OrderSide, str],
               amount: str,
               limit_price: Optional[str] = None,
               strategy_id: Optional[str] = None) -> TradeRecord:
        """
        提交交易

        市价单以行情存储中的当前价格成交（无快照时抛出 NotFoundError），
        限价单以给定的限价成交。

        Returns:
            已记录的成交记录
        """
        if self._account is None:
            raise NotInitializedError("交易账户未初始化，请先调用 initialize()")

        order_type = _parse_enum(OrderType, order_type, '订单类型')
        side = _parse_enum(OrderSide, side, '交易方向')
        amount = parse_amount(amount, 'amount')

        if order_type is OrderType.LIMIT:
            if limit_price is None:
                raise InvalidParameterError("限价单必须提供 limit_price")
            executed_price = parse_price(limit_price, 'limit_price')
            limit_price = str(limit_price)
        else:
            executed_price = self.store.current_price(instrument)
            limit_price = None

        log.info(f"[TRADE] 执行{side.value.upper()}订单: {amount} {instrument} ({order_type.value})")

        record = TradeRecord(
            id=f"trade_{uuid.uuid4().hex[:12]}",
            instrument=instrument,
            order_type=order_type,
            side=side,
            amount=amount,
            executed_price=executed_price,
            status=TradeStatus.COMPLETED,
            limit_price=limit_price,
            submitted_at=self.clock(),
            strategy_id=strategy_id
        )

        with self._lock:
            self._history.append(record)

        self.event_bus.publish(EventTypes.TRADE_EXECUTED, record_to_dict(record), source='TradeGateway')
        log.info(f"[TRADE] 成交 {record.id} @ ${executed_price:.2f} 时间 {format_timestamp(record.submitted_at)}")
        return record

    def market_buy(self, instrument: str, amount: str, strategy_id: Optional[str] = None) -> TradeRecord:
        return self.submit(instrument, OrderType.MARKET, OrderSide.BUY, amount, strategy_id=strategy_id)

    def market_sell(self, instrument: str, amount: str, strategy_id: Optional[str] = None) -> TradeRecord:
        return self.submit(instrument, OrderType.MARKET, OrderSide.SELL, amount, strategy_id=strategy_id)

    def limit_buy(self, instrument: str, amount: str, limit_price: str) -> TradeRecord:
        return self.submit(instrument, OrderType.LIMIT, OrderSide.BUY, amount, limit_price)

    def limit_sell(self, instrument: str, amount: str, limit_price: str) -> TradeRecord:
        return self.submit(instrument, OrderType.LIMIT, OrderSide.SELL, amount, limit_price)

    def order_history(self) -> List[TradeRecord]:
        """按提交顺序返回订单历史副本"""
        with self._lock:
            return list(self._history)

    def history_frame(self) -> pd.DataFrame:
        return records_to_dataframe(self.order_history())

    def performance_report(self) -> Dict[str, Any]:
        """基于订单历史的成交统计"""
        df = self.history_frame()
        if df.empty:
            return {
                'total_trades': 0,
                'buy_trades': 0,
                'sell_trades': 0,
                'buy_notional': 0.0,
                'sell_notional': 0.0,
                'net_flow': 0.0,
                'trades_by_instrument': {},
                'strategy_trades': 0
            }

        df['notional'] = df['amount'].astype(float) * df['executed_price']
        by_side = df.groupby('side')['notional'].agg(['count', 'sum'])

        def _side(side: OrderSide, column: str, default):
            if side.value in by_side.index:
                return by_side.loc[side.value, column]
            return default

        buy_notional = float(_side(OrderSide.BUY, 'sum', 0.0))
        sell_notional = float(_side(OrderSide.SELL, 'sum', 0.0))

        return {
            'total_trades': int(len(df)),
            'buy_trades': int(_side(OrderSide.BUY, 'count', 0)),
            'sell_trades': int(_side(OrderSide.SELL, 'count', 0)),
            'buy_notional': buy_notional,
            'sell_notional': sell_notional,
            'net_flow': sell_notional - buy_notional,
            'trades_by_instrument': {k: int(v) for k, v in df['instrument'].value_counts().items()},
            'strategy_trades': int(df['strategy_id'].notna().sum())
        }
