import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
from events import Event, EventBus, EventType


def test_subscribe_and_unsubscribe():
    bus = EventBus()
    seen = []
    unsubscribe = bus.subscribe(EventType.ASSET_CREATED, seen.append)
    bus.publish(Event(EventType.ASSET_CREATED, "cart", "a1", "Bike"))
    bus.publish(Event(EventType.ASSET_DELETED, "cart", "a1", "Bike"))
    unsubscribe()
    bus.publish(Event(EventType.ASSET_CREATED, "cart", "a2", "Grinder"))
    assert [e.subject_id for e in seen] == ["a1"]
    assert bus.listener_count(EventType.ASSET_CREATED) == 0


def test_failing_listener_does_not_block_others(caplog):
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(EventType.LINE_ITEMS_CHANGED, broken)
    bus.subscribe(EventType.LINE_ITEMS_CHANGED, seen.append)
    bus.publish(Event(EventType.LINE_ITEMS_CHANGED, "cart"))
    assert len(seen) == 1
    assert "line-items-changed" in caplog.text


def test_clear():
    bus = EventBus()
    bus.subscribe(EventType.BONUS_SCHEME_CHANGED, print)
    bus.clear()
    assert bus.listener_count(EventType.BONUS_SCHEME_CHANGED) == 0
