"""Timer data model and display helpers.

Timers are owned by the TimerScheduler; everything outside it sees only the
snapshot dictionaries produced by :meth:`Timer.to_dict`.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class TimerMode(Enum):
    """Counting direction of a timer."""

    STOPWATCH = "stopwatch"
    COUNTDOWN = "countdown"


class DisplayFormat(Enum):
    """Supported renderings of elapsed time."""

    HMS = "hh:mm:ss"
    HMS_MS = "hh:mm:ss.ms"
    MINUTES_SECONDS = "mm:ss"
    SECONDS = "seconds"


def coerce_target_seconds(value: Any) -> float:
    """Return ``value`` as a non-negative finite float, or 0.0 if it is not one."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


# Other names tools use for a mode
_MODE_ALIASES = {"timer": TimerMode.COUNTDOWN}


def parse_mode(value: Any) -> Optional[TimerMode]:
    """Resolve a mode name, alias (``"timer"`` is a countdown) or member.

    Returns None when unrecognized.
    """
    if isinstance(value, TimerMode):
        return value
    name = str(value).strip().lower()
    if name in _MODE_ALIASES:
        return _MODE_ALIASES[name]
    try:
        return TimerMode(name)
    except ValueError:
        return None


def parse_display_format(value: Any) -> Optional[DisplayFormat]:
    """Resolve a format string or member; None when unrecognized."""
    if isinstance(value, DisplayFormat):
        return value
    try:
        return DisplayFormat(str(value).strip())
    except ValueError:
        return None


def format_elapsed(ms: float, fmt: DisplayFormat = DisplayFormat.HMS) -> str:
    """Render milliseconds in the requested display format.

    Args:
        ms: Elapsed milliseconds (negative values render as zero).
        fmt: Target format.

    Returns:
        The formatted string, e.g. ``"00:01:05"`` or ``"65.000s"``.
    """
    total = int(math.floor(max(ms, 0.0)))
    hours, rest = divmod(total, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, millis = divmod(rest, 1000)

    if fmt is DisplayFormat.SECONDS:
        return f"{total / 1000:.3f}s"
    if fmt is DisplayFormat.MINUTES_SECONDS:
        # Minutes are not wrapped at the hour so no time is lost
        return f"{hours * 60 + minutes:02d}:{seconds:02d}"
    if fmt is DisplayFormat.HMS:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"


@dataclass
class Timer:
    """A stopwatch or countdown tracked by the scheduler."""

    id: str
    mode: TimerMode = TimerMode.STOPWATCH
    target_seconds: float = 0.0
    name: str = ""
    display_format: DisplayFormat = DisplayFormat.HMS
    elapsed_ms: float = 0.0
    running: bool = False
    finished: bool = False
    laps: list[float] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    # Scheduler-owned state, never part of a snapshot
    last_tick_timestamp: Optional[float] = field(default=None, repr=False)
    scheduling_handle: Any = field(default=None, repr=False)

    @property
    def has_target(self) -> bool:
        """True for countdowns that complete on their own."""
        return self.mode is TimerMode.COUNTDOWN and self.target_seconds > 0

    @property
    def target_ms(self) -> float:
        return self.target_seconds * 1000.0

    @property
    def remaining_ms(self) -> Optional[float]:
        if not self.has_target:
            return None
        return max(self.target_ms - self.elapsed_ms, 0.0)

    def to_dict(self) -> dict[str, Any]:
        """Return the public snapshot published with every timer event."""
        return {
            "id": self.id,
            "name": self.name or self.id,
            "mode": self.mode.value,
            "target_seconds": self.target_seconds,
            "elapsed_ms": self.elapsed_ms,
            "remaining_ms": self.remaining_ms,
            "running": self.running,
            "finished": self.finished,
            "laps": list(self.laps),
            "display_format": self.display_format.value,
            "display": format_elapsed(self.elapsed_ms, self.display_format),
            "created_at": self.created_at,
        }
