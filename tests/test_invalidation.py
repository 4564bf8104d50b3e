"""Tests for the invalidation bus and events."""

import logging

from drive_tree.invalidation import InvalidationBus, parent_scope
from drive_tree.models import ALL, InvalidationEvent
from drive_tree.paths import ROOT, as_path


class TestInvalidationEvent:
    """Tests for event scope helpers."""

    def test_path_event_covers_only_that_path(self):
        event = InvalidationEvent(scope=as_path("/docs"))
        assert event.covers(as_path("/docs"))
        assert not event.covers(as_path("/docs/reports"))
        assert not event.covers(ROOT)
        assert not event.is_global

    def test_everything_covers_all(self):
        event = InvalidationEvent.everything()
        assert event.is_global
        assert event.scope == ALL
        assert event.covers(ROOT)
        assert event.covers(as_path("/a/b"))

    def test_parent_scope(self):
        assert parent_scope(as_path("/docs/notes.txt")) == as_path("/docs")
        assert parent_scope(as_path("/docs")) == ROOT


class TestInvalidationBus:
    """Tests for publish/subscribe delivery."""

    def test_delivers_in_subscription_order(self):
        bus = InvalidationBus()
        seen = []
        bus.subscribe(lambda e: seen.append(("first", e.scope)))
        bus.subscribe(lambda e: seen.append(("second", e.scope)))

        bus.publish_path("/docs")

        assert seen == [("first", as_path("/docs")), ("second", as_path("/docs"))]
        assert bus.published == 1

    def test_subscribe_twice_delivers_once(self):
        bus = InvalidationBus()
        seen = []

        def handler(event):
            seen.append(event)

        bus.subscribe(handler)
        bus.subscribe(handler)
        bus.publish_all()

        assert len(seen) == 1
        assert bus.subscriber_count == 1

    def test_unsubscribe(self):
        bus = InvalidationBus()
        seen = []
        handler = bus.subscribe(seen.append)

        bus.unsubscribe(handler)
        bus.unsubscribe(handler)
        bus.publish_all()

        assert seen == []
        assert bus.subscriber_count == 0

    def test_failing_handler_does_not_block_others(self, caplog):
        bus = InvalidationBus()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(seen.append)

        with caplog.at_level(logging.ERROR, logger="drive_tree.invalidation"):
            bus.publish_path("/docs")

        assert len(seen) == 1
        assert "failed" in caplog.text

    def test_handler_subscribed_during_publish_waits_for_next_event(self):
        bus = InvalidationBus()
        late = []

        def adder(event):
            bus.subscribe(late.append)

        bus.subscribe(adder)
        bus.publish_all()
        assert late == []

        bus.publish_all()
        assert len(late) == 1
