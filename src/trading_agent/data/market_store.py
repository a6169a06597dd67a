"""
行情存储 - 每个交易对只保留最新快照
只由调度周期的刷新步骤写入，提醒与策略共享读取
"""

import threading
from typing import Dict, Iterable, List, Optional

from trading_agent.core.errors import MarketDataError, NotFoundError
from trading_agent.data.price_source import PriceSource
from trading_agent.models.market_data import MarketSnapshot
from trading_agent.utils.log import setup_logging

log = setup_logging(module_prefix='DATA')


class MarketDataStore:
    """最新行情快照存储"""

    def __init__(self, price_source: PriceSource):
        self.price_source = price_source
        self._snapshots: Dict[str, MarketSnapshot] = {}
        self._lock = threading.RLock()

    def refresh(self, instruments: Iterable[str]) -> Dict[str, MarketSnapshot]:
        """从价格源刷新指定交易对

        价格源失败时保留原有快照并抛出 MarketDataError；
        价格源未返回的交易对同样保留原有快照。
        """
        requested = sorted(set(instruments))
        if not requested:
            return {}

        try:
            fetched = self.price_source.fetch(requested)
        except Exception as e:
            log.error(f"[DATA] 行情刷新失败 {requested}: {e}")
            raise MarketDataError(f"行情刷新失败: {e}") from e

        with self._lock:
            for snapshot in fetched.values():
                self._snapshots[snapshot.instrument] = snapshot

        missing = [instrument for instrument in requested if instrument not in fetched]
        if missing:
            log.warning(f"[DATA] 价格源未返回: {missing}")

        log.debug(f"[DATA] 已刷新 {len(fetched)} 个交易对")
        return fetched

    def put(self, snapshot: MarketSnapshot):
        """直接写入一个快照"""
        with self._lock:
            self._snapshots[snapshot.instrument] = snapshot

    def get(self, instrument: str) -> Optional[MarketSnapshot]:
        """获取快照，不存在时返回None"""
        with self._lock:
            return self._snapshots.get(instrument)

    def current_price(self, instrument: str) -> float:
        snapshot = self.get(instrument)
        if snapshot is None:
            raise NotFoundError(f"没有 {instrument} 的行情数据")
        return snapshot.price

    def instruments(self) -> List[str]:
        with self._lock:
            return list(self._snapshots)

    def snapshots(self) -> Dict[str, MarketSnapshot]:
        with self._lock:
            return dict(self._snapshots)
