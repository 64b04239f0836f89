from __future__ import annotations

import pytest

from lifetime_core.arena import UnownedAccessError
from runtime_bus import RuntimeBus, topics


def test_publish_reaches_topic_subscribers_only() -> None:
    bus = RuntimeBus()
    seen = []
    bus.subscribe(topics.DATA_UPDATED, lambda env: seen.append(env.payload["n"]))
    bus.subscribe(topics.SCREEN_DISMISSED, lambda env: seen.append("other"))

    envelope = bus.publish(topics.DATA_UPDATED, {"n": 1}, source="test")

    assert seen == [1]
    assert envelope.topic == topics.DATA_UPDATED
    assert envelope.seq == 1
    assert envelope.source == "test"
    assert envelope.to_dict()["payload"] == {"n": 1}


def test_unsubscribe_stops_delivery() -> None:
    bus = RuntimeBus()
    seen = []
    sub_id = bus.subscribe(topics.DATA_UPDATED, seen.append)
    assert bus.subscriber_count(topics.DATA_UPDATED) == 1

    assert bus.unsubscribe(sub_id) is True
    assert bus.unsubscribe(sub_id) is False
    bus.publish(topics.DATA_UPDATED)

    assert seen == []
    assert bus.subscriber_count() == 0


def test_handler_errors_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    bus = RuntimeBus()
    seen = []

    def _broken(_env) -> None:
        raise RuntimeError("broken handler")

    bus.subscribe(topics.DATA_UPDATED, _broken)
    bus.subscribe(topics.DATA_UPDATED, seen.append)
    bus.publish(topics.DATA_UPDATED)

    assert len(seen) == 1
    assert "broken handler" in caplog.text


def test_fatal_handler_errors_propagate() -> None:
    bus = RuntimeBus()

    def _fatal(_env) -> None:
        raise UnownedAccessError("gone")

    bus.subscribe(topics.DATA_UPDATED, _fatal)
    with pytest.raises(UnownedAccessError):
        bus.publish(topics.DATA_UPDATED)


def test_report_counts_topics() -> None:
    bus = RuntimeBus()
    bus.subscribe(topics.DATA_UPDATED, lambda env: None)
    bus.subscribe(topics.DATA_UPDATED, lambda env: None)
    bus.publish(topics.DATA_UPDATED)
    report = bus.report()
    assert report == {"published": 1, "subscriptions": 2, "topics": {topics.DATA_UPDATED: 2}}
