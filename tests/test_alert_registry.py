from __future__ import annotations

import math

import pytest

from conftest import feed
from trading_agent.core.errors import InvalidParameterError, NotFoundError
from trading_agent.models.alert_data import AlertCondition
from trading_agent.utils.events import EventTypes


def test_above_alert_triggers_exactly_once(alerts, store, recorder):
    alert_id = alerts.create("BTC-USD", 45000, AlertCondition.ABOVE)

    feed(store, "BTC-USD", 44000)
    assert alerts.evaluate_all(store) == []

    feed(store, "BTC-USD", 45500)
    fired = alerts.evaluate_all(store)
    assert [alert.id for alert in fired] == [alert_id]

    feed(store, "BTC-USD", 46000)
    assert alerts.evaluate_all(store) == []

    events = recorder.of(EventTypes.ALERT_TRIGGERED)
    assert len(events) == 1
    assert events[0].data == {
        'alert_id': alert_id,
        'instrument': "BTC-USD",
        'current_price': 45500,
        'target_price': 45000.0,
        'condition': "above",
    }
    assert alerts.get(alert_id).active is False


def test_below_alert_triggers_on_equal_price(alerts, store):
    alerts.create("ETH-USD", 2500, "below")
    feed(store, "ETH-USD", 2500)
    assert len(alerts.evaluate_all(store)) == 1


def test_triggered_alert_never_reactivates(alerts, store):
    alert_id = alerts.create("ETH-USD", 2500, "below")
    for price in (2400, 2600, 2300, 2500):
        feed(store, "ETH-USD", price)
        alerts.evaluate_all(store)
        assert alerts.get(alert_id).active is False


def test_missing_snapshot_is_skipped(alerts, store):
    alert_id = alerts.create("DOGE-USD", 1, "above")
    assert alerts.evaluate_all(store) == []
    assert alerts.get(alert_id).active is True


def test_callback_receives_price_and_failure_does_not_stop_scan(alerts, store):
    seen = []

    def broken(price):
        raise RuntimeError("boom")

    first = alerts.create("BTC-USD", 100, "above", broken)
    second = alerts.create("BTC-USD", 100, "above", seen.append)
    feed(store, "BTC-USD", 150)

    fired = alerts.evaluate_all(store)

    assert [alert.id for alert in fired] == [first, second]
    assert seen == [150]
    assert not alerts.get(first).active


def test_same_cycle_ties_fire_in_insertion_order(alerts, store, recorder):
    ids = [alerts.create("BTC-USD", target, "above") for target in (100, 90, 80)]
    feed(store, "BTC-USD", 120)
    alerts.evaluate_all(store)
    assert [event.data['alert_id'] for event in recorder.of(EventTypes.ALERT_TRIGGERED)] == ids


@pytest.mark.parametrize("target", [0, -5, math.inf, math.nan, True, "abc", None])
def test_invalid_target_price_rejected(alerts, target):
    with pytest.raises(InvalidParameterError):
        alerts.create("BTC-USD", target, "above")


def test_invalid_condition_rejected(alerts):
    with pytest.raises(InvalidParameterError):
        alerts.create("BTC-USD", 100, "sideways")


def test_remove_and_list_keep_insertion_order(alerts):
    a = alerts.create("BTC-USD", 1, "above")
    b = alerts.create("ETH-USD", 2, "below")
    c = alerts.create("SOL-USD", 3, "above")

    assert [alert.id for alert in alerts.list()] == [a, b, c]
    assert alerts.remove(b) is True
    assert alerts.remove(b) is False
    assert [alert.id for alert in alerts.list()] == [a, c]
    with pytest.raises(NotFoundError):
        alerts.get(b)


def test_alert_removed_by_callback_of_earlier_alert_is_not_evaluated(alerts, store):
    holder = {}
    first = alerts.create("BTC-USD", 100, "above", lambda price: alerts.remove(holder['second']))
    holder['second'] = alerts.create("BTC-USD", 100, "above")
    feed(store, "BTC-USD", 200)

    fired = alerts.evaluate_all(store)

    assert [alert.id for alert in fired] == [first]
