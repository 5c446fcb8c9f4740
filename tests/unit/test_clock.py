"""Unit tests for the clock sources."""

import asyncio

import pytest

from common.clock import ClockError, LoopClock, ManualClock


class TestManualClock:
    """Test suite for ManualClock frame delivery."""

    def test_run_frame_fires_pending_callback_once(self, manual_clock):
        """A registration fires on the next frame and is then spent."""
        calls = []
        manual_clock.schedule(lambda: calls.append(manual_clock.now()))

        assert manual_clock.run_frame() == 1
        assert manual_clock.run_frame() == 0
        assert calls == [pytest.approx(1000 / 60)]

    def test_callback_scheduled_during_frame_runs_next_frame(self, manual_clock):
        """Re-registering from inside a callback waits for the following frame."""
        calls = []

        def recurring():
            calls.append(manual_clock.frame_count)
            manual_clock.schedule(recurring)

        manual_clock.schedule(recurring)
        manual_clock.run_frame()
        manual_clock.run_frame()
        manual_clock.run_frame()

        assert calls == [1, 2, 3]
        assert manual_clock.pending_count == 1

    def test_cancel_prevents_callback(self, manual_clock):
        """Cancelled handles never fire."""
        calls = []
        handle = manual_clock.schedule(lambda: calls.append("fired"))
        manual_clock.cancel(handle)

        manual_clock.run_frame()

        assert calls == []
        assert manual_clock.pending_count == 0

    def test_cancel_later_callback_within_same_frame(self, manual_clock):
        """A callback can cancel one that is due later in the same frame."""
        calls = []
        second = None

        def first():
            calls.append("first")
            manual_clock.cancel(second)

        manual_clock.schedule(first)
        second = manual_clock.schedule(lambda: calls.append("second"))

        manual_clock.run_frame()

        assert calls == ["first"]

    def test_cancel_unknown_handle_is_ignored(self, manual_clock):
        manual_clock.cancel(12345)
        manual_clock.cancel(None)

    def test_advance_delivers_frames_and_exact_time(self):
        """advance() covers the full span, shortening the last frame."""
        clock = ManualClock(frame_interval_ms=10)

        frames = clock.advance(25)

        assert frames == 3
        assert clock.now() == pytest.approx(25)

    def test_skip_moves_time_without_frames(self, manual_clock):
        """skip() simulates a suspended host: time passes, nothing fires."""
        calls = []
        manual_clock.schedule(lambda: calls.append("fired"))

        manual_clock.skip(5000)

        assert manual_clock.now() == 5000
        assert calls == []
        assert manual_clock.pending_count == 1


class TestLoopClock:
    """Test suite for the asyncio-driven LoopClock."""

    def test_now_is_monotonic(self):
        clock = LoopClock()
        first = clock.now()
        second = clock.now()
        assert second >= first

    def test_schedule_without_running_loop_raises_clock_error(self):
        """Scheduling outside an event loop reports a ClockError."""
        clock = LoopClock()
        with pytest.raises(ClockError):
            clock.schedule(lambda: None)

    @pytest.mark.asyncio
    async def test_schedule_fires_on_next_frame(self):
        """The callback runs on the loop after one frame interval."""
        clock = LoopClock(frame_interval=0.01)
        fired = asyncio.Event()

        clock.schedule(fired.set)

        await asyncio.wait_for(fired.wait(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_cancel_prevents_callback(self):
        clock = LoopClock(frame_interval=0.01)
        calls = []

        handle = clock.schedule(lambda: calls.append("fired"))
        clock.cancel(handle)
        await asyncio.sleep(0.05)

        assert calls == []
