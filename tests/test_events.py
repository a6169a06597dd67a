from __future__ import annotations

import pytest

from trading_agent.core.errors import InvalidParameterError
from trading_agent.utils.events import EventBus, EventTypes, on_event

ALERT = {
    'alert_id': 'alert_1',
    'instrument': 'BTC-USD',
    'current_price': 51000.0,
    'target_price': 50000.0,
    'condition': 'above'
}


def test_publish_delivers_to_subscribers_in_order(bus):
    received = []
    bus.subscribe(EventTypes.ALERT_TRIGGERED, lambda event: received.append(('a', event.data['alert_id'])))
    bus.subscribe(EventTypes.ALERT_TRIGGERED, lambda event: received.append(('b', event.data['alert_id'])))

    event = bus.publish(EventTypes.ALERT_TRIGGERED, ALERT, source='test')

    assert received == [('a', 'alert_1'), ('b', 'alert_1')]
    assert event.source == 'test'
    assert event.type == "alert-triggered"


def test_failing_subscriber_does_not_block_others(bus):
    received = []

    def broken(event):
        raise RuntimeError("handler failed")

    bus.subscribe(EventTypes.ALERT_TRIGGERED, broken)
    bus.subscribe(EventTypes.ALERT_TRIGGERED, received.append)
    bus.publish(EventTypes.ALERT_TRIGGERED, ALERT)

    assert len(received) == 1
    assert bus.delivery_errors == 1


def test_payload_missing_fields_rejected_before_delivery(bus):
    received = []
    bus.subscribe(EventTypes.TRADE_EXECUTED, received.append)

    with pytest.raises(InvalidParameterError, match="executed_price"):
        bus.publish(EventTypes.TRADE_EXECUTED, {'id': 't1', 'instrument': 'BTC-USD'})

    assert received == []


def test_untyped_events_accept_any_payload(bus):
    received = []
    bus.subscribe(EventTypes.SYSTEM_STARTED, received.append)
    bus.publish(EventTypes.SYSTEM_STARTED, {'interval_ms': 1000})
    bus.publish("custom-event", {})
    assert len(received) == 1


def test_unsubscribe_and_clear(bus):
    handler = lambda event: None
    bus.subscribe(EventTypes.ALERT_TRIGGERED, handler)
    bus.subscribe(EventTypes.TRADE_EXECUTED, handler)
    assert bus.get_subscriber_count() == 2

    assert bus.unsubscribe(EventTypes.ALERT_TRIGGERED, handler) is True
    assert bus.unsubscribe(EventTypes.ALERT_TRIGGERED, handler) is False
    assert bus.unsubscribe(EventTypes.SYSTEM_STOPPED, handler) is False
    assert bus.get_subscriber_count(EventTypes.ALERT_TRIGGERED) == 0

    bus.clear_subscribers()
    assert bus.get_subscriber_count() == 0


def test_on_event_decorator():
    bus = EventBus()
    received = []

    @on_event(EventTypes.GRID_LEVEL_HIT, bus)
    def handle(event):
        received.append(event.data['level_index'])

    bus.publish(EventTypes.GRID_LEVEL_HIT, {
        'strategy_id': 'strategy_1',
        'instrument': 'ETH-USD',
        'level_index': 5,
        'level_price': 2500.0,
        'current_price': 2503.0,
        'side': 'sell'
    })
    assert received == [5]
