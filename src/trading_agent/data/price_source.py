"""
价格源 - 为行情存储提供最新快照
DemoPriceSource 生成随机游走价格，AlpacaPriceSource 通过 alpaca-py 拉取加密货币快照
"""

import random
from datetime import datetime
from typing import Dict, Iterable, Optional

from alpaca.data.historical import CryptoHistoricalDataClient
from alpaca.data.requests import CryptoSnapshotRequest

from trading_agent.models.market_data import MarketSnapshot
from trading_agent.utils.data_transforms import to_alpaca_symbol, from_alpaca_symbol
from trading_agent.utils.log import setup_logging

log = setup_logging(module_prefix='DATA')

DEFAULT_BASE_PRICES = {
    'BTC-USD': 45000.0,
    'ETH-USD': 2500.0,
    'SOL-USD': 100.0,
}


class PriceSource:
    """价格源接口"""

    def fetch(self, instruments: Iterable[str]) -> Dict[str, MarketSnapshot]:
        """返回 instrument -> MarketSnapshot，未能获取的交易对不出现在结果中"""
        raise NotImplementedError


class DemoPriceSource(PriceSource):
    """模拟价格源：围绕基准价的随机游走"""

    def __init__(self, base_prices: Optional[Dict[str, float]] = None,
                 volatility: float = 0.02, seed: Optional[int] = None):
        self.base_prices = dict(base_prices or DEFAULT_BASE_PRICES)
        self.current_prices = self.base_prices.copy()
        self.volatility = volatility
        self._random = random.Random(seed)

    def fetch(self, instruments: Iterable[str]) -> Dict[str, MarketSnapshot]:
        snapshots = {}
        now = datetime.now()
        for instrument in instruments:
            base = self.base_prices.setdefault(instrument, 100.0)
            last = self.current_prices.get(instrument, base)

            # 几何随机游走，保证价格为正
            price = max(last * (1 + self._random.gauss(0, self.volatility)), 0.01)
            self.current_prices[instrument] = price

            snapshots[instrument] = MarketSnapshot(
                instrument=instrument,
                price=price,
                volume_24h=self._random.uniform(0, 1_000_000),
                price_change_24h=(price - base) / base * 100,
                observed_at=now
            )
        return snapshots


class AlpacaPriceSource(PriceSource):
    """Alpaca 加密货币行情快照"""

    def __init__(self, api_key: str = "", secret_key: str = "",
                 client: Optional[CryptoHistoricalDataClient] = None):
        if client is None:
            # 加密货币行情不强制要求密钥
            client = CryptoHistoricalDataClient(
                api_key=api_key or None,
                secret_key=secret_key or None
            )
        self.client = client

    def fetch(self, instruments: Iterable[str]) -> Dict[str, MarketSnapshot]:
        symbols = [to_alpaca_symbol(instrument) for instrument in instruments]
        if not symbols:
            return {}

        request = CryptoSnapshotRequest(symbol_or_symbols=symbols)
        raw_snapshots = self.client.get_crypto_snapshot(request)

        snapshots = {}
        for symbol, snapshot in raw_snapshots.items():
            instrument = from_alpaca_symbol(symbol)
            trade = snapshot.latest_trade
            daily_bar = snapshot.daily_bar
            prev_bar = snapshot.prev_daily_bar

            if trade is not None:
                price = float(trade.price)
                observed_at = trade.timestamp
            elif daily_bar is not None:
                price = float(daily_bar.close)
                observed_at = daily_bar.timestamp
            else:
                log.warning(f"[DATA] {instrument}: 快照中没有价格数据")
                continue

            change = 0.0
            if prev_bar is not None and prev_bar.close:
                change = (price - float(prev_bar.close)) / float(prev_bar.close) * 100

            snapshots[instrument] = MarketSnapshot(
                instrument=instrument,
                price=price,
                volume_24h=float(daily_bar.volume) if daily_bar is not None else 0.0,
                price_change_24h=change,
                observed_at=observed_at
            )

        log.debug(f"[DATA] Alpaca 返回 {len(snapshots)}/{len(symbols)} 个快照")
        return snapshots
