"""Unit tests for the bundled timer and log tools."""

import logging

import pytest

from tools import log_tool, timer_tool


@pytest.fixture
def timer_api(core):
    timer_tool.setup(core)
    return core.registry.get_tool(timer_tool.NAME).api


class TestTimerTool:
    """Test suite for the timer panel."""

    def test_render_row(self):
        snapshot = {
            "name": "Tea",
            "mode": "countdown",
            "target_seconds": 180.0,
            "display": "00:01:00",
            "running": True,
            "finished": False,
        }

        assert timer_tool.render_row(snapshot) == (
            "Tea  countdown | target 180s  00:01:00  [running]"
        )

    def test_open_toggles_panel(self, core, timer_api):
        panel = timer_api.open_panel()
        assert panel.is_open is True
        assert panel.render() == "No timers."

        timer_api.open_panel()
        assert panel.is_open is False
        assert core.event_bus.subscriber_count("timer:update") == 0

    def test_rows_follow_timer_events(self, core, manual_clock, timer_api):
        panel = timer_api.open_panel()

        created = timer_api.extras["create"](timer_id="tea", mode="countdown", seconds=2)
        timer_api.extras["toggle_timer"]("tea")
        manual_clock.advance(1100)

        assert created == {"success": True, "timer_id": "tea"}
        assert panel.rows["tea"] == "tea  countdown | target 2s  00:00:01  [running]"

        manual_clock.advance(1000)
        assert panel.rows["tea"].endswith("00:00:02  [finished]")

        core.remove_timer("tea")
        assert timer_api.extras["render"]() == "No timers."

    def test_open_lists_existing_timers(self, core, timer_api):
        core.create_timer({"id": "existing"})

        panel = timer_api.open_panel()

        assert list(panel.rows) == ["existing"]

    def test_toggle_timer(self, core, timer_api):
        core.create_timer({"id": "sw"})

        assert timer_api.extras["toggle_timer"]("sw") == {"success": True, "running": True}
        assert timer_api.extras["toggle_timer"]("sw") == {"success": True, "running": False}
        assert timer_api.extras["toggle_timer"]("ghost")["success"] is False

    def test_create_reports_limit(self, core, timer_api):
        core.scheduler.max_timers = 0

        result = timer_api.extras["create"]()

        assert result["success"] is False


class TestLogTool:
    """Test suite for the log viewer."""

    def test_open_shows_recent_entries(self, core):
        log_tool.setup(core)
        api = core.registry.get_tool(log_tool.NAME).api
        core.log("first", logging.DEBUG)
        core.log("second", logging.DEBUG)

        lines = api.open_panel(limit=2)

        assert len(lines) == 2
        assert lines[0].endswith("[DEBUG] first")
        assert lines[1].endswith("[DEBUG] second")

    def test_clear(self, core):
        log_tool.setup(core)
        api = core.registry.get_tool(log_tool.NAME).api
        core.log("noise", logging.DEBUG)

        assert api.extras["clear"]() == {"success": True}
        assert api.open_panel() == []
