"""Synchronous publish/subscribe channel for timer lifecycle events.

Delivers named events to every subscribed handler in subscription order.
A failing handler is logged and skipped; it never affects the remaining
handlers or the publisher.
"""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


class TimerEvent(Enum):
    """Event names published by the timer scheduler."""

    CREATE = "timer:create"
    START = "timer:start"
    UPDATE = "timer:update"
    FINISHED = "timer:finished"
    STOP = "timer:stop"
    RESET = "timer:reset"
    LAP = "timer:lap"
    REMOVE = "timer:remove"


EventName = Union[str, TimerEvent]


def _event_key(event_name: EventName) -> str:
    # Enum members and their string values address the same handler list
    if isinstance(event_name, Enum):
        return event_name.value
    return event_name


class EventBus:
    """Publish/subscribe bus used to broadcast events to panels and tools."""

    def __init__(self, context_id: Optional[str] = None):
        """Initialize the bus.

        Args:
            context_id: Id of the owning CoreContext, attached to every log
                record so that context's log buffer keeps it.
        """
        self.logger = logging.LoggerAdapter(logger, {"context_id": context_id})
        self._subscribers: dict[str, list[Callable]] = {}
        self._pending_tasks: set[asyncio.Task] = set()

    def subscribe(self, event_name: EventName, handler: Callable) -> None:
        """Register ``handler`` for ``event_name``.

        Registrations are not de-duplicated: subscribing the same handler twice
        delivers each event to it twice.

        Args:
            event_name: Event name (string or TimerEvent).
            handler: Callable taking the event payload. Coroutine functions are
                scheduled on the running loop.
        """
        key = _event_key(event_name)
        self._subscribers.setdefault(key, []).append(handler)
        self.logger.debug(
            f"Subscribed {getattr(handler, '__name__', repr(handler))} to '{key}'"
        )

    def unsubscribe(self, event_name: EventName, handler: Callable) -> None:
        """Remove the first registration of ``handler``; no-op if absent."""
        handlers = self._subscribers.get(_event_key(event_name))
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return

    def publish(self, event_name: EventName, payload: Any = None) -> None:
        """Deliver ``payload`` to every handler subscribed to ``event_name``.

        Args:
            event_name: Event name (string or TimerEvent).
            payload: Value passed to each handler.
        """
        key = _event_key(event_name)
        handlers = self._subscribers.get(key)
        if not handlers:
            return

        self.logger.debug(f"Publishing '{key}' to {len(handlers)} handler(s)")

        # Handlers may unsubscribe themselves while we iterate
        for handler in list(handlers):
            handler_name = getattr(handler, "__name__", "unknown_handler")
            if asyncio.iscoroutinefunction(handler):
                self._dispatch_async(handler, payload, handler_name, key)
                continue
            try:
                handler(payload)
            except Exception as e:
                self.logger.error(
                    f"Error in handler {handler_name} for '{key}': {e}", exc_info=True
                )

    def _dispatch_async(
        self, handler: Callable, payload: Any, handler_name: str, key: str
    ) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop (headless host or test): run the coroutine to completion
            asyncio.run(self._run_async_handler(handler, payload, handler_name, key))
            return
        task = asyncio.create_task(
            self._run_async_handler(handler, payload, handler_name, key)
        )
        self._pending_tasks.add(task)
        task.add_done_callback(self._pending_tasks.discard)

    async def _run_async_handler(
        self, handler: Callable, payload: Any, handler_name: str, key: str
    ) -> None:
        try:
            await handler(payload)
        except Exception as e:
            self.logger.error(
                f"Error in async handler {handler_name} for '{key}': {e}", exc_info=True
            )

    def subscriber_count(self, event_name: EventName) -> int:
        """Return how many registrations exist for ``event_name``."""
        return len(self._subscribers.get(_event_key(event_name), []))

    def clear(self) -> None:
        """Drop every registration."""
        self._subscribers.clear()
