"""Global pytest configuration and fixtures for the test suite."""

import textwrap
from pathlib import Path

import pytest

from common.clock import ManualClock
from common.event_bus import EventBus, TimerEvent
from host.core_context import CoreContext
from host.host_config import HostConfig, ToolSettings
from host.timer_scheduler import TimerScheduler


class EventRecorder:
    """Subscribes to every timer event and keeps (event name, payload) pairs."""

    def __init__(self, bus: EventBus):
        self.events: list[tuple[str, dict]] = []
        for event in TimerEvent:
            bus.subscribe(event, self._make_handler(event.value))

    def _make_handler(self, name: str):
        def handler(payload):
            self.events.append((name, payload))

        return handler

    def names(self, timer_id: str | None = None) -> list[str]:
        return [
            name
            for name, payload in self.events
            if timer_id is None or payload["id"] == timer_id
        ]

    def payloads(self, name: str) -> list[dict]:
        return [payload for event, payload in self.events if event == name]


@pytest.fixture
def manual_clock():
    """Deterministic 60 Hz frame clock starting at t=0."""
    return ManualClock()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def recorder(event_bus):
    return EventRecorder(event_bus)


@pytest.fixture
def scheduler(manual_clock, event_bus):
    return TimerScheduler(manual_clock, event_bus, max_timers=10)


@pytest.fixture
def core(manual_clock):
    """CoreContext on a manual clock with no tool sources configured."""
    context = CoreContext(
        config=HostConfig(tools=ToolSettings(sources=[])), clock=manual_clock
    )
    yield context
    context.shutdown()


@pytest.fixture
def write_tool(tmp_path):
    """Write a tool module file and return its path as a source locator."""

    def _write(file_name: str, body: str) -> str:
        path = Path(tmp_path) / file_name
        path.write_text(textwrap.dedent(body))
        return str(path)

    return _write
