"""Clock sources for the timer scheduler.

A clock supplies monotonic timestamps in milliseconds and a "run on the next
frame" primitive. Ticks are cooperative: every registration fires once, and a
recurring task re-registers itself from inside its own callback.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Optional

from common.errors import MultitoolError

logger = logging.getLogger(__name__)

DEFAULT_FRAME_INTERVAL = 1 / 60


class ClockError(MultitoolError):
    """Raised when a clock cannot register a frame callback."""


class ClockSource(ABC):
    """Interface for the scheduler's time and next-frame primitive."""

    @abstractmethod
    def now(self) -> float:
        """Return a monotonic timestamp in milliseconds."""

    @abstractmethod
    def schedule(self, callback: Callable[[], None]) -> Any:
        """Run ``callback`` once on the next frame.

        Returns:
            An opaque handle accepted by :meth:`cancel`.
        """

    @abstractmethod
    def cancel(self, handle: Any) -> None:
        """Cancel a pending registration. Unknown or spent handles are ignored."""


class LoopClock(ClockSource):
    """Frame clock driven by an asyncio event loop.

    Frames are ``loop.call_later(frame_interval, ...)`` callbacks, so all ticks
    run on the loop thread and never overlap.
    """

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        frame_interval: float = DEFAULT_FRAME_INTERVAL,
    ):
        """Initialize the clock.

        Args:
            loop: Event loop to schedule on. Defaults to the loop running at the
                time of the first ``schedule`` call.
            frame_interval: Seconds between frames (default 1/60).
        """
        self._loop = loop
        self.frame_interval = frame_interval

    def now(self) -> float:
        return time.monotonic() * 1000.0

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError as e:
                raise ClockError("LoopClock needs a running asyncio event loop") from e
        return self._loop

    def schedule(self, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._get_loop().call_later(self.frame_interval, callback)

    def cancel(self, handle: Any) -> None:
        if handle is not None:
            handle.cancel()


class ManualClock(ClockSource):
    """Deterministic clock whose frames are delivered explicitly.

    Used by headless hosts and tests. Callbacks registered while a frame is
    being delivered run on the following frame, the same way a display-refresh
    callback behaves.
    """

    def __init__(self, start_ms: float = 0.0, frame_interval_ms: float = 1000 / 60):
        self._now = float(start_ms)
        self.frame_interval_ms = frame_interval_ms
        self.frame_count = 0
        self._pending: dict[int, Callable[[], None]] = {}
        self._next_handle = 0

    def now(self) -> float:
        return self._now

    def schedule(self, callback: Callable[[], None]) -> int:
        self._next_handle += 1
        self._pending[self._next_handle] = callback
        return self._next_handle

    def cancel(self, handle: Any) -> None:
        self._pending.pop(handle, None)

    @property
    def pending_count(self) -> int:
        """Number of callbacks waiting for the next frame."""
        return len(self._pending)

    def run_frame(self, elapsed_ms: Optional[float] = None) -> int:
        """Advance time by one frame and fire the callbacks that were due.

        Args:
            elapsed_ms: Frame length; defaults to ``frame_interval_ms``.

        Returns:
            Number of callbacks fired.
        """
        self._now += self.frame_interval_ms if elapsed_ms is None else elapsed_ms
        self.frame_count += 1

        fired = 0
        for handle in list(self._pending):
            # A callback earlier in this frame may have cancelled this one
            callback = self._pending.pop(handle, None)
            if callback is None:
                continue
            callback()
            fired += 1
        return fired

    def advance(self, ms: float) -> int:
        """Deliver as many frames as fit in ``ms`` milliseconds.

        The last frame is shortened so that exactly ``ms`` elapses.

        Returns:
            Number of frames delivered.
        """
        frames = 0
        remaining = float(ms)
        while remaining > 1e-9:
            step = min(self.frame_interval_ms, remaining)
            self.run_frame(step)
            remaining -= step
            frames += 1
        return frames

    def skip(self, ms: float) -> None:
        """Move time forward without delivering a frame (a suspended host)."""
        self._now += float(ms)
        logger.debug(f"ManualClock skipped {ms}ms without frames")
