from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from trading_agent.alerts.registry import AlertRegistry
from trading_agent.config.config import TradingConfig
from trading_agent.data.market_store import MarketDataStore
from trading_agent.data.price_source import PriceSource
from trading_agent.execution.account import LocalAccountProvider
from trading_agent.execution.gateway import TradeGateway
from trading_agent.main import TradingAgent
from trading_agent.models.market_data import MarketSnapshot
from trading_agent.strategy.registry import StrategyRegistry
from trading_agent.utils.events import EventBus, EventTypes


class FakePriceSource(PriceSource):
    """确定性的价格源：返回预先设定的价格"""

    def __init__(self, prices=None):
        self.prices = dict(prices or {})
        self.fail_with = None
        self.calls = []

    def set_price(self, instrument: str, price: float):
        self.prices[instrument] = price

    def fetch(self, instruments):
        instruments = list(instruments)
        self.calls.append(instruments)
        if self.fail_with is not None:
            raise self.fail_with
        return {
            instrument: MarketSnapshot(instrument=instrument, price=self.prices[instrument],
                                       observed_at=datetime(2024, 1, 1))
            for instrument in instruments if instrument in self.prices
        }


class FakeClock:
    def __init__(self, start: datetime = datetime(2024, 1, 1, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class EventRecorder:
    def __init__(self, bus: EventBus):
        self.events = []
        for event_type in (EventTypes.ALERT_TRIGGERED, EventTypes.TRADE_EXECUTED,
                           EventTypes.GRID_LEVEL_HIT, EventTypes.STRATEGY_ERROR,
                           EventTypes.CYCLE_COMPLETED, EventTypes.SYSTEM_STARTED,
                           EventTypes.SYSTEM_STOPPED):
            bus.subscribe(event_type, self.events.append)

    def of(self, event_type: str):
        return [event for event in self.events if event.type == event_type]


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorder(bus):
    return EventRecorder(bus)


@pytest.fixture
def source():
    return FakePriceSource()


@pytest.fixture
def store(source):
    return MarketDataStore(source)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway(store, bus, clock):
    gw = TradeGateway(store, bus, clock=clock)
    gw.initialize(LocalAccountProvider(address="0xtest"))
    return gw


@pytest.fixture
def alerts(bus):
    return AlertRegistry(bus)


@pytest.fixture
def strategies(bus, clock):
    return StrategyRegistry(bus, clock=clock)


def feed(store: MarketDataStore, instrument: str, price: float):
    store.put(MarketSnapshot(instrument=instrument, price=price))


@pytest.fixture
def agent(source, clock):
    a = TradingAgent(config=TradingConfig(instruments=[]), price_source=source, clock=clock)
    a.initialize(LocalAccountProvider(address="0xagent"), start_monitoring=False)
    yield a
    a.close()
