from __future__ import annotations

import time

import pytest

from trading_agent.config.config import TradingConfig
from trading_agent.core.errors import InvalidParameterError
from trading_agent.core.scheduler import SchedulerState
from trading_agent.execution.account import LocalAccountProvider
from trading_agent.main import TradingAgent
from trading_agent.models.trade_data import OrderSide
from trading_agent.utils.events import EventTypes


def _recorded(agent, event_type):
    events = []
    agent.subscribe(event_type, events.append)
    return events


def test_alert_scenario_through_cycles(agent, source):
    triggered = _recorded(agent, EventTypes.ALERT_TRIGGERED)
    agent.create_price_alert("BTC-USD", 45000, "above")

    for price in (44000, 45500, 46000):
        source.set_price("BTC-USD", price)
        agent.run_cycle()

    assert len(triggered) == 1
    assert triggered[0].data['current_price'] == 45500
    assert agent.list_price_alerts()[0].active is False


def test_alert_callback_can_trade_in_same_cycle(agent, source):
    source.set_price("ETH-USD", 2400)
    agent.create_price_alert("ETH-USD", 2500, "below", lambda price: agent.market_buy("ETH-USD", "0.1"))

    agent.run_cycle()

    history = agent.get_order_history()
    assert len(history) == 1
    assert history[0].executed_price == 2400
    assert history[0].side is OrderSide.BUY


def test_alerts_and_strategies_see_same_snapshot(agent, source):
    seen = {}
    source.set_price("BTC-USD", 100)
    agent.create_price_alert("BTC-USD", 50, "above",
                             lambda price: seen.setdefault('alert', price))
    agent.create_momentum_strategy("BTC-USD", 1, "1")

    agent.run_cycle()

    strategy = agent.list_strategies()[0]
    assert seen['alert'] == strategy.params.last_price == 100


def test_tracked_instruments_include_alerts_and_strategies(source, clock):
    agent = TradingAgent(config=TradingConfig(instruments=["BTC-USD"]), price_source=source, clock=clock)
    agent.create_price_alert("ETH-USD", 1, "above")
    agent.create_dca_strategy("SOL-USD", "1", 5)
    agent.create_dca_strategy("BTC-USD", "1", 5)

    assert agent.tracked_instruments() == ["BTC-USD", "ETH-USD", "SOL-USD"]
    agent.close()


def test_refresh_failure_logged_and_cycle_continues(agent, source):
    cycles = _recorded(agent, EventTypes.CYCLE_COMPLETED)
    source.set_price("BTC-USD", 100)
    agent.create_price_alert("BTC-USD", 150, "above")
    agent.run_cycle()

    source.fail_with = ConnectionError("feed down")
    agent.create_dca_strategy("BTC-USD", "1", 60)
    agent.run_cycle()

    assert cycles[-1].data['refresh_error'] is not None
    assert len(agent.get_order_history()) == 1
    assert agent.get_order_history()[0].executed_price == 100


def test_dca_strategy_runs_from_scheduler(source, clock):
    agent = TradingAgent(config=TradingConfig(instruments=[], interval_seconds=0.01),
                         price_source=source, clock=clock)
    trades = _recorded(agent, EventTypes.TRADE_EXECUTED)
    source.set_price("BTC-USD", 50000)
    agent.create_dca_strategy("BTC-USD", "0.001", 60)

    agent.initialize(LocalAccountProvider())
    assert agent.scheduler.state is SchedulerState.RUNNING

    deadline = time.monotonic() + 5
    while not trades and time.monotonic() < deadline:
        time.sleep(0.01)
    agent.close()

    assert len(trades) == 1
    assert trades[0].data['amount'] == "0.001"
    assert agent.scheduler.state is SchedulerState.STOPPED


def test_start_twice_and_stop_publish_lifecycle_events(agent):
    started = _recorded(agent, EventTypes.SYSTEM_STARTED)
    stopped = _recorded(agent, EventTypes.SYSTEM_STOPPED)

    agent.start(1000)
    agent.start(1000)
    agent.stop()
    agent.stop()

    assert len(started) == 1
    assert len(stopped) == 1


def test_start_rejects_non_positive_interval(agent):
    started = _recorded(agent, EventTypes.SYSTEM_STARTED)

    with pytest.raises(InvalidParameterError):
        agent.start(0)
    with pytest.raises(InvalidParameterError):
        agent.start(-1000)

    assert agent.scheduler.state is SchedulerState.STOPPED
    assert started == []


def test_market_data_accessors(agent, source):
    source.set_price("BTC-USD", 123.0)
    agent.create_price_alert("BTC-USD", 1000, "above")
    agent.run_cycle()

    assert agent.get_market_data("BTC-USD").price == 123.0
    assert agent.get_current_price("BTC-USD") == 123.0
    assert agent.get_market_data("NOPE-USD") is None


def test_strategy_round_trip_through_agent(agent):
    strategy_id = agent.create_grid_strategy("ETH-USD", 2000, 3000, 10, "0.05")
    params = agent.list_strategies()[0].params

    assert agent.disable_strategy(strategy_id)
    assert agent.enable_strategy(strategy_id)

    strategy = agent.list_strategies()[0]
    assert strategy.id == strategy_id
    assert strategy.enabled is True
    assert strategy.params is params


def test_performance_report_counts_trades(agent, source):
    source.set_price("BTC-USD", 100)
    agent.create_price_alert("BTC-USD", 1, "above")
    agent.run_cycle()
    agent.market_buy("BTC-USD", "1")
    agent.limit_sell("BTC-USD", "1", "120")

    report = agent.performance_report()
    assert report['total_trades'] == 2
    assert report['net_flow'] == 20.0
