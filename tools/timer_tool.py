"""Timer Tool

Headless timer panel over the CoreContext. Opening the panel subscribes it to
timer events so its rows stay current; opening it again closes it.

Registers as ``timer_tool``. Extras:
- create: create a timer from panel input
- toggle_timer: start a stopped timer or stop a running one
- render: the panel rows as text
"""

import logging
from typing import Any, Optional

from common.capability import ToolApi
from common.event_bus import TimerEvent

logger = logging.getLogger(__name__)

NAME = "timer_tool"

_ROW_EVENTS = (
    TimerEvent.CREATE,
    TimerEvent.START,
    TimerEvent.UPDATE,
    TimerEvent.FINISHED,
    TimerEvent.STOP,
    TimerEvent.RESET,
    TimerEvent.LAP,
)


def _status(snapshot: dict[str, Any]) -> str:
    if snapshot["running"]:
        return "running"
    if snapshot["finished"]:
        return "finished"
    return "idle"


def render_row(snapshot: dict[str, Any]) -> str:
    """One panel row: name, mode and target, display, status."""
    mode = snapshot["mode"]
    if snapshot["target_seconds"]:
        mode += f" | target {snapshot['target_seconds']:g}s"
    return f"{snapshot['name']}  {mode}  {snapshot['display']}  [{_status(snapshot)}]"


class TimerPanel:
    """Timer list kept in sync with the event bus while open."""

    def __init__(self, core: Any):
        self.core = core
        self.is_open = False
        self.rows: dict[str, str] = {}

    def toggle(self) -> "TimerPanel":
        if self.is_open:
            self.close()
        else:
            self.open()
        return self

    def open(self) -> None:
        if self.is_open:
            return
        for event in _ROW_EVENTS:
            self.core.on(event, self._on_timer_event)
        self.core.on(TimerEvent.REMOVE, self._on_timer_removed)
        self.is_open = True
        self.refresh()
        logger.debug("Timer panel opened")

    def close(self) -> None:
        if not self.is_open:
            return
        for event in _ROW_EVENTS:
            self.core.off(event, self._on_timer_event)
        self.core.off(TimerEvent.REMOVE, self._on_timer_removed)
        self.is_open = False
        logger.debug("Timer panel closed")

    def refresh(self) -> None:
        self.rows = {
            snapshot["id"]: render_row(snapshot) for snapshot in self.core.list_timers()
        }

    def _on_timer_event(self, snapshot: dict[str, Any]) -> None:
        self.rows[snapshot["id"]] = render_row(snapshot)

    def _on_timer_removed(self, snapshot: dict[str, Any]) -> None:
        self.rows.pop(snapshot["id"], None)

    def create(
        self,
        timer_id: Optional[str] = None,
        mode: str = "stopwatch",
        seconds: Any = 0,
        name: Optional[str] = None,
    ) -> dict[str, Any]:
        """Create a timer the way the panel's Create button does."""
        created = self.core.create_timer(
            {"id": timer_id or None, "mode": mode, "seconds": seconds, "name": name}
        )
        if created is None:
            return {"success": False, "error": "Timer could not be created"}
        return {"success": True, "timer_id": created}

    def toggle_timer(self, timer_id: str) -> dict[str, Any]:
        snapshot = self.core.get_timer(timer_id)
        if snapshot is None:
            return {"success": False, "error": f"Unknown timer: {timer_id}"}
        if snapshot["running"]:
            self.core.stop_timer(timer_id)
        else:
            self.core.start_timer(timer_id)
        return {"success": True, "running": not snapshot["running"]}

    def render(self) -> str:
        if not self.rows:
            return "No timers."
        return "\n".join(self.rows.values())


def setup(core: Any) -> None:
    """Register the timer panel with the host."""
    panel = TimerPanel(core)
    core.register_tool(
        NAME,
        ToolApi(
            open_panel=panel.toggle,
            description="Stopwatches and countdowns",
            extras={
                "create": panel.create,
                "toggle_timer": panel.toggle_timer,
                "render": panel.render,
            },
        ),
    )
    core.log(f"Timer tool ready ({len(core.list_timers())} existing timers)")
