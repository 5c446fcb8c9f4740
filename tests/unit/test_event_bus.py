"""Unit tests for the synchronous EventBus."""

import asyncio
import logging

import pytest

from common.event_bus import EventBus, TimerEvent


class TestEventBus:
    """Test suite for EventBus publish/subscribe behavior."""

    def test_publish_in_subscription_order(self, event_bus):
        """Handlers receive the payload in the order they subscribed."""
        calls = []
        event_bus.subscribe("demo", lambda payload: calls.append(("a", payload)))
        event_bus.subscribe("demo", lambda payload: calls.append(("b", payload)))

        event_bus.publish("demo", {"n": 1})

        assert calls == [("a", {"n": 1}), ("b", {"n": 1})]

    def test_duplicate_subscription_invoked_twice(self, event_bus):
        """The same handler subscribed twice runs twice per publish."""
        calls = []

        def handler(payload):
            calls.append(payload)

        event_bus.subscribe("demo", handler)
        event_bus.subscribe("demo", handler)
        event_bus.publish("demo", 7)

        assert calls == [7, 7]
        assert event_bus.subscriber_count("demo") == 2

    def test_unsubscribe_removes_first_registration_only(self, event_bus):
        calls = []

        def handler(payload):
            calls.append(payload)

        event_bus.subscribe("demo", handler)
        event_bus.subscribe("demo", handler)
        event_bus.unsubscribe("demo", handler)
        event_bus.publish("demo", "x")

        assert calls == ["x"]

    def test_unsubscribe_absent_handler_is_noop(self, event_bus):
        event_bus.unsubscribe("never-subscribed", print)
        event_bus.subscribe("demo", print)
        event_bus.unsubscribe("demo", len)

        assert event_bus.subscriber_count("demo") == 1

    def test_publish_without_subscribers(self, event_bus):
        event_bus.publish("nobody-listens", {"ignored": True})

    def test_failing_handler_does_not_stop_later_handlers(self, event_bus, caplog):
        """Handler B still receives the event when handler A, subscribed first, raises."""
        received = []

        def handler_a(payload):
            raise RuntimeError("panel exploded")

        def handler_b(payload):
            received.append(payload)

        event_bus.subscribe("timer:update", handler_a)
        event_bus.subscribe("timer:update", handler_b)

        with caplog.at_level(logging.ERROR, logger="common.event_bus"):
            event_bus.publish("timer:update", {"id": "t1"})

        assert received == [{"id": "t1"}]
        assert "panel exploded" in caplog.text
        assert "handler_a" in caplog.text

    def test_enum_and_string_names_share_handlers(self, event_bus):
        calls = []
        event_bus.subscribe(TimerEvent.UPDATE, calls.append)

        event_bus.publish("timer:update", 1)
        event_bus.publish(TimerEvent.UPDATE, 2)
        event_bus.unsubscribe("timer:update", calls.append)
        event_bus.publish(TimerEvent.UPDATE, 3)

        assert calls == [1, 2]

    def test_handler_can_unsubscribe_itself_during_publish(self, event_bus):
        calls = []

        def once(payload):
            calls.append(payload)
            event_bus.unsubscribe("demo", once)

        event_bus.subscribe("demo", once)
        event_bus.subscribe("demo", lambda payload: calls.append(f"after-{payload}"))

        event_bus.publish("demo", 1)
        event_bus.publish("demo", 2)

        assert calls == [1, "after-1", "after-2"]

    def test_async_handler_without_running_loop(self, event_bus):
        """Coroutine handlers run to completion when no loop is running."""
        received = []

        async def handler(payload):
            received.append(payload)

        event_bus.subscribe("demo", handler)
        event_bus.publish("demo", "sync-context")

        assert received == ["sync-context"]

    @pytest.mark.asyncio
    async def test_async_handler_scheduled_on_running_loop(self, event_bus, caplog):
        """Coroutine handlers are scheduled on the loop; their errors are logged."""
        received = []

        async def good(payload):
            received.append(payload)

        async def bad(payload):
            raise ValueError("async failure")

        event_bus.subscribe("demo", bad)
        event_bus.subscribe("demo", good)

        with caplog.at_level(logging.ERROR, logger="common.event_bus"):
            event_bus.publish("demo", "loop-context")
            await asyncio.sleep(0.01)

        assert received == ["loop-context"]
        assert "async failure" in caplog.text

    def test_clear_drops_all_handlers(self, event_bus):
        event_bus.subscribe("a", print)
        event_bus.subscribe("b", print)

        event_bus.clear()

        assert event_bus.subscriber_count("a") == 0
        assert event_bus.subscriber_count("b") == 0
