"""Timer scheduler for stopwatches and countdowns.

Owns every Timer, drives its state machine, and accumulates elapsed time one
frame at a time using the deltas between consecutive ticks. Pausing and
resuming therefore never counts the time a timer spent stopped.

State machine per timer::

    Idle --start--> Running --stop--> Idle
                    Running --target reached--> Completed (finished, idle)
    any --reset--> Idle (elapsed 0)
"""

import itertools
import logging
import time
from typing import Any, Optional

from common.clock import ClockSource
from common.errors import DuplicateTimerError, TimerLimitError
from common.event_bus import EventBus, TimerEvent
from common.timer_types import (
    DisplayFormat,
    Timer,
    TimerMode,
    coerce_target_seconds,
    parse_display_format,
    parse_mode,
)

logger = logging.getLogger(__name__)


class TimerScheduler:
    """Central timer management for the host.

    All mutation goes through the public operations below or through the
    scheduler's own tick callbacks; callers only ever receive snapshots.
    """

    def __init__(
        self,
        clock: ClockSource,
        event_bus: EventBus,
        max_timers: int = 50,
        default_format: DisplayFormat = DisplayFormat.HMS,
        context_id: Optional[str] = None,
    ):
        """Initialize the scheduler.

        Args:
            clock: Source of timestamps and next-frame registrations
            event_bus: Bus receiving ``timer:*`` events
            max_timers: Maximum number of timers registered at once
            default_format: Display format for timers created without one
            context_id: Id of the owning CoreContext, tagged on log records
        """
        self.logger = logging.LoggerAdapter(logger, {"context_id": context_id})
        self.clock = clock
        self.event_bus = event_bus
        self.max_timers = max_timers
        self.default_format = default_format
        self._timers: dict[str, Timer] = {}
        self._id_counter = itertools.count(1)

    def create_timer(
        self,
        timer_id: Optional[str] = None,
        mode: Any = TimerMode.STOPWATCH,
        target_seconds: Any = 0,
        name: Optional[str] = None,
        display_format: Any = None,
    ) -> str:
        """Register a new idle timer.

        Args:
            timer_id: Explicit id; generated when omitted or empty
            mode: ``"stopwatch"``/``"countdown"`` or a TimerMode
            target_seconds: Countdown target; invalid values become 0
            name: Display name, defaults to the id
            display_format: Format name or DisplayFormat; defaults to the
                scheduler's default format

        Returns:
            Timer ID

        Raises:
            DuplicateTimerError: If ``timer_id`` is already registered
            TimerLimitError: If ``max_timers`` timers already exist
        """
        if timer_id and timer_id in self._timers:
            raise DuplicateTimerError(timer_id)
        if len(self._timers) >= self.max_timers:
            raise TimerLimitError(self.max_timers)

        timer_mode = parse_mode(mode)
        if timer_mode is None:
            self.logger.warning(f"Unknown timer mode '{mode}', using stopwatch")
            timer_mode = TimerMode.STOPWATCH

        target = coerce_target_seconds(target_seconds)
        if target == 0 and target_seconds not in (None, 0):
            self.logger.warning(f"Invalid target_seconds {target_seconds!r}, using 0")

        fmt = parse_display_format(display_format) if display_format else None
        if display_format and fmt is None:
            self.logger.warning(f"Unknown display format '{display_format}', using default")

        timer_id = timer_id or self._generate_id()
        timer = Timer(
            id=timer_id,
            mode=timer_mode,
            target_seconds=target,
            name=name or timer_id,
            display_format=fmt or self.default_format,
        )
        self._timers[timer_id] = timer

        self.logger.info(f"Created {timer_mode.value} timer {timer_id}")
        self._publish(TimerEvent.CREATE, timer)
        return timer_id

    def _generate_id(self) -> str:
        # Time-based seed plus a monotonic counter, skipping any id in use
        while True:
            candidate = f"t_{int(time.time() * 1000)}_{next(self._id_counter)}"
            if candidate not in self._timers:
                return candidate

    def start_timer(self, timer_id: str) -> None:
        """Start accumulating time. No-op if unknown or already running."""
        timer = self._timers.get(timer_id)
        if timer is None:
            self.logger.debug(f"start_timer ignored for unknown timer {timer_id}")
            return
        if timer.running:
            return

        now = self.clock.now()
        timer.scheduling_handle = self.clock.schedule(lambda: self._tick(timer_id))
        timer.last_tick_timestamp = now
        timer.running = True
        timer.finished = False

        self.logger.debug(f"Started timer {timer_id} at {timer.elapsed_ms:.1f}ms")
        self._publish(TimerEvent.START, timer)

    def _tick(self, timer_id: str) -> None:
        timer = self._timers.get(timer_id)
        if timer is None or not timer.running:
            return

        now = self.clock.now()
        timer.elapsed_ms += max(now - timer.last_tick_timestamp, 0.0)
        timer.last_tick_timestamp = now
        # The handle that invoked us is spent
        timer.scheduling_handle = None

        if timer.has_target and timer.elapsed_ms >= timer.target_ms:
            timer.elapsed_ms = timer.target_ms
            timer.running = False
            timer.finished = True
            timer.last_tick_timestamp = None
            self.logger.info(f"Countdown {timer_id} finished after {timer.target_seconds}s")
            self._publish(TimerEvent.FINISHED, timer)
            return

        self._publish(TimerEvent.UPDATE, timer)
        # An update handler may have stopped, restarted or removed this timer
        if (
            timer.running
            and timer.scheduling_handle is None
            and self._timers.get(timer_id) is timer
        ):
            timer.scheduling_handle = self.clock.schedule(lambda: self._tick(timer_id))

    def stop_timer(self, timer_id: str) -> None:
        """Freeze elapsed time. No-op if unknown or not running."""
        timer = self._timers.get(timer_id)
        if timer is None:
            self.logger.debug(f"stop_timer ignored for unknown timer {timer_id}")
            return
        if not timer.running:
            return

        self._cancel_tick(timer)
        timer.running = False
        timer.last_tick_timestamp = None

        self.logger.debug(f"Stopped timer {timer_id} at {timer.elapsed_ms:.1f}ms")
        self._publish(TimerEvent.STOP, timer)

    def reset_timer(self, timer_id: str) -> None:
        """Return a timer to idle with zero elapsed time. No-op if unknown."""
        timer = self._timers.get(timer_id)
        if timer is None:
            self.logger.debug(f"reset_timer ignored for unknown timer {timer_id}")
            return

        self._cancel_tick(timer)
        timer.running = False
        timer.finished = False
        timer.elapsed_ms = 0.0
        timer.last_tick_timestamp = None
        timer.laps.clear()

        self.logger.debug(f"Reset timer {timer_id}")
        self._publish(TimerEvent.RESET, timer)

    def lap_timer(self, timer_id: str) -> Optional[float]:
        """Record the current elapsed time as a lap.

        Returns:
            The recorded elapsed milliseconds, or None for an unknown timer
        """
        timer = self._timers.get(timer_id)
        if timer is None:
            self.logger.debug(f"lap_timer ignored for unknown timer {timer_id}")
            return None

        timer.laps.append(timer.elapsed_ms)
        self._publish(TimerEvent.LAP, timer)
        return timer.elapsed_ms

    def remove_timer(self, timer_id: str) -> bool:
        """Cancel and forget a timer.

        Returns:
            True if the timer existed
        """
        timer = self._timers.pop(timer_id, None)
        if timer is None:
            return False

        self._cancel_tick(timer)
        timer.running = False
        timer.last_tick_timestamp = None

        self.logger.info(f"Removed timer {timer_id}")
        self._publish(TimerEvent.REMOVE, timer)
        return True

    def get_timer(self, timer_id: str) -> Optional[dict[str, Any]]:
        """Return a snapshot of one timer, or None."""
        timer = self._timers.get(timer_id)
        return timer.to_dict() if timer else None

    def list_timers(self) -> list[dict[str, Any]]:
        """Return snapshots of every timer in creation order."""
        return [timer.to_dict() for timer in self._timers.values()]

    def running_count(self) -> int:
        return sum(1 for timer in self._timers.values() if timer.running)

    def shutdown(self) -> None:
        """Cancel every pending tick; timers stay registered but idle."""
        for timer in self._timers.values():
            if timer.running:
                self._cancel_tick(timer)
                timer.running = False
                timer.last_tick_timestamp = None
        self.logger.info(f"Timer scheduler shut down ({len(self._timers)} timers)")

    def _cancel_tick(self, timer: Timer) -> None:
        if timer.scheduling_handle is not None:
            self.clock.cancel(timer.scheduling_handle)
            timer.scheduling_handle = None

    def _publish(self, event: TimerEvent, timer: Timer) -> None:
        self.event_bus.publish(event, timer.to_dict())

    def __len__(self) -> int:
        return len(self._timers)

    def __contains__(self, timer_id: str) -> bool:
        return timer_id in self._timers
