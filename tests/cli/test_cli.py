"""Tests for the command line entry points."""

import argparse
import asyncio

import pytest

from cli import ProgressPrinter, build_parser, run, run_timer
from common.clock import LoopClock
from host.core_context import CoreContext
from host.host_config import HostConfig, ToolSettings


def make_args(**overrides):
    values = {
        "list_tools": False,
        "open": None,
        "countdown": None,
        "stopwatch": None,
        "name": None,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


@pytest.fixture
def loop_core():
    return CoreContext(clock=LoopClock(frame_interval=0.005))


@pytest.mark.asyncio
async def test_list_tools(loop_core, capsys):
    exit_code = await run(make_args(list_tools=True), loop_core)

    assert exit_code == 0
    assert capsys.readouterr().out.split() == ["timer_tool", "log_tool"]
    assert loop_core.started is False


@pytest.mark.asyncio
async def test_open_unknown_tool_fails(loop_core, capsys):
    exit_code = await run(make_args(open="weather_tool"), loop_core)

    assert exit_code == 1
    assert "weather_tool: not available" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_run_countdown(capsys):
    core = CoreContext(
        config=HostConfig(tools=ToolSettings(sources=[])),
        clock=LoopClock(frame_interval=0.005),
    )
    try:
        snapshot = await run_timer(core, "countdown", 0.05, name="quick")
    finally:
        core.shutdown()

    assert snapshot["finished"] is True
    assert snapshot["elapsed_ms"] == 50
    assert "quick: 00:00:00.050 (finished)" in capsys.readouterr().out


def test_progress_printer_throttles(capsys):
    printer = ProgressPrinter(core=None)
    for elapsed in (0, 100, 200, 260):
        printer.on_update(
            {"id": "t", "name": "t", "elapsed_ms": elapsed, "display": f"{elapsed}ms"}
        )

    out = capsys.readouterr().out
    assert "0ms" in out
    assert "100ms" not in out
    assert "260ms" in out


@pytest.mark.parametrize("value", ["0", "-3", "abc", "nan"])
def test_parser_rejects_non_positive_countdown(value, capsys):
    with pytest.raises(SystemExit) as exc_info:
        build_parser().parse_args(["--countdown", value])

    assert exc_info.value.code == 2
    assert "positive number of seconds" in capsys.readouterr().err


def test_parser_accepts_positive_durations():
    args = build_parser().parse_args(["--countdown", "2.5", "--stopwatch", "1"])

    assert args.countdown == 2.5
    assert args.stopwatch == 1.0


@pytest.mark.asyncio
async def test_run_countdown_without_target_returns_immediately(caplog):
    """A zero-second countdown is refused instead of waiting forever."""
    core = CoreContext(
        config=HostConfig(tools=ToolSettings(sources=[])),
        clock=LoopClock(frame_interval=0.005),
    )
    try:
        result = await asyncio.wait_for(run_timer(core, "countdown", 0), timeout=1.0)

        assert result is None
        assert core.list_timers() == []
        assert "positive number of seconds" in caplog.text
    finally:
        core.shutdown()
