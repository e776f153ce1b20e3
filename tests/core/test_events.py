"""Tests for event bus."""

from warpforge.core.events import EventBus, EventType


def test_subscribe_publish():
    bus = EventBus()
    received = []
    bus.subscribe(EventType.TERM_SKIPPED, lambda **kw: received.append(kw))
    bus.publish(EventType.TERM_SKIPPED, term_index=3, kind="data")
    assert received == [{"term_index": 3, "kind": "data"}]


def test_unsubscribe():
    bus = EventBus()
    received = []
    handler = lambda **kw: received.append(kw)
    bus.subscribe(EventType.ITERATION_COMPLETE, handler)
    bus.unsubscribe(EventType.ITERATION_COMPLETE, handler)
    bus.publish(EventType.ITERATION_COMPLETE, iteration=1, cost=0.0, evaluated=1, skipped=0)
    assert received == []


def test_has_subscribers():
    bus = EventBus()
    assert not bus.has_subscribers(EventType.PASS_STARTED)
    bus.subscribe(EventType.PASS_STARTED, lambda **kw: None)
    assert bus.has_subscribers(EventType.PASS_STARTED)
    assert not bus.has_subscribers(EventType.PASS_COMPLETE)


def test_handler_may_unsubscribe_itself():
    bus = EventBus()
    calls = []

    def once(**kw):
        calls.append(kw)
        bus.unsubscribe(EventType.PASS_COMPLETE, once)

    bus.subscribe(EventType.PASS_COMPLETE, once)
    bus.publish(EventType.PASS_COMPLETE, summary=None)
    bus.publish(EventType.PASS_COMPLETE, summary=None)
    assert len(calls) == 1


def test_clear():
    bus = EventBus()
    received = []
    bus.subscribe(EventType.PASS_STARTED, lambda **kw: received.append(1))
    bus.clear()
    bus.publish(EventType.PASS_STARTED, terms=0, nodes=0)
    assert received == []
