from __future__ import annotations

import logging

from hicurate.core.event_bus import EventBus


def test_publish_reaches_channel_subscribers_only() -> None:
    bus = EventBus()
    cuts, joins = [], []
    bus.subscribe("curation:cut", cuts.append)
    bus.subscribe("curation:join", joins.append)
    bus.publish("curation:cut", {"position": 1})
    assert cuts == [{"position": 1}]
    assert joins == []


def test_unsubscribe_and_history() -> None:
    bus = EventBus(capacity=2)
    seen = []
    unsubscribe = bus.subscribe("render:request", seen.append)
    bus.publish("render:request", 1)
    unsubscribe()
    unsubscribe()
    bus.publish("render:request", 2)
    bus.publish("render:request", 3)
    assert seen == [1]
    assert bus.drain() == [("render:request", 2), ("render:request", 3)]
    assert bus.drain() == []


def test_failing_handler_is_logged(caplog) -> None:
    bus = EventBus()
    received = []

    def broken(_payload):
        raise ValueError("bad handler")

    bus.subscribe("curation:move", broken)
    bus.subscribe("curation:move", received.append)
    with caplog.at_level(logging.ERROR):
        bus.publish("curation:move", "payload")
    assert received == ["payload"]
    assert "curation:move" in caplog.text
