#!/usr/bin/env python3
"""Multitool Host CLI.

Runs the multitool host on an asyncio loop: boots the configured tools, and
can drive a stopwatch or countdown while printing its progress.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from common.event_bus import TimerEvent  # noqa: E402
from common.timer_types import coerce_target_seconds  # noqa: E402
from host.core_context import CoreContext  # noqa: E402
from host.logging_config import configure_logging  # noqa: E402

logger = logging.getLogger("cli")

# Progress lines per second while a timer runs
PRINT_RATE = 4


class ProgressPrinter:
    """Prints timer updates, throttled to PRINT_RATE lines per second."""

    def __init__(self, core: CoreContext):
        self.core = core
        self._last_printed_ms: dict[str, float] = {}

    def on_update(self, snapshot: dict[str, Any]) -> None:
        last = self._last_printed_ms.get(snapshot["id"])
        if last is not None and snapshot["elapsed_ms"] - last < 1000 / PRINT_RATE:
            return
        self._last_printed_ms[snapshot["id"]] = snapshot["elapsed_ms"]
        print(f"\r{snapshot['name']}: {snapshot['display']}", end="", flush=True)

    def on_done(self, snapshot: dict[str, Any]) -> None:
        print(f"\r{snapshot['name']}: {snapshot['display']} ({_event_label(snapshot)})")


def positive_seconds(value: str) -> float:
    """argparse type for durations: a finite number of seconds above zero."""
    seconds = coerce_target_seconds(value)
    if seconds <= 0:
        raise argparse.ArgumentTypeError(
            f"expected a positive number of seconds, got '{value}'"
        )
    return seconds


def _event_label(snapshot: dict[str, Any]) -> str:
    return "finished" if snapshot["finished"] else "stopped"


async def run_timer(
    core: CoreContext, mode: str, seconds: float, name: Optional[str] = None
) -> Optional[dict[str, Any]]:
    """Run one timer to completion and return its final snapshot.

    Countdowns end on ``timer:finished``; stopwatches are stopped after
    ``seconds``.
    """
    done = asyncio.Event()
    printer = ProgressPrinter(core)

    def on_done(snapshot: dict[str, Any]) -> None:
        if snapshot["id"] == timer_id:
            printer.on_done(snapshot)
            done.set()

    timer_id = core.create_timer(
        mode=mode,
        target_seconds=seconds if mode == "countdown" else 0,
        name=name or mode,
        display_format="hh:mm:ss.ms",
    )
    if timer_id is None:
        logger.error("Could not create timer")
        return None
    if mode == "countdown" and not core.get_timer(timer_id)["target_seconds"]:
        # A countdown without a target never finishes
        logger.error(f"Countdown needs a positive number of seconds, got {seconds!r}")
        core.remove_timer(timer_id)
        return None

    core.on(TimerEvent.UPDATE, printer.on_update)
    core.on(TimerEvent.FINISHED, on_done)
    core.on(TimerEvent.STOP, on_done)
    try:
        core.start_timer(timer_id)
        if mode == "countdown":
            await done.wait()
        else:
            await asyncio.sleep(seconds)
            core.stop_timer(timer_id)
        return core.get_timer(timer_id)
    finally:
        core.off(TimerEvent.UPDATE, printer.on_update)
        core.off(TimerEvent.FINISHED, on_done)
        core.off(TimerEvent.STOP, on_done)


async def run(args: argparse.Namespace, core: CoreContext) -> int:
    """Boot the host and perform the requested actions."""
    results = await core.start()
    failed = [result for result in results if not result.loaded]
    for result in failed:
        logger.warning(f"Tool source {result.source} failed: {result.error}")

    try:
        if args.list_tools:
            for name in core.list_tools():
                print(name)

        if args.open:
            outcome = await core.open_capability(args.open)
            print(f"{args.open}: {outcome.status.value}")
            if outcome.ok and outcome.value is not None:
                print(outcome.value)
            if not outcome.ok:
                return 1

        if args.countdown is not None:
            await run_timer(core, "countdown", args.countdown, name=args.name)
        elif args.stopwatch is not None:
            await run_timer(core, "stopwatch", args.stopwatch, name=args.name)
    finally:
        core.shutdown()

    return 0


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the host CLI."""
    parser = argparse.ArgumentParser(
        description="Multitool Host CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py --list-tools               # Boot and list registered tools
  python cli.py --countdown 5              # Run a 5 second countdown
  python cli.py --stopwatch 3 --name lap   # Run a stopwatch for 3 seconds
  python cli.py --open log_tool            # Open a tool by name
        """,
    )

    parser.add_argument(
        "--config",
        "-c",
        default="config.yaml",
        help="Configuration file path (default: config.yaml, skipped if missing)",
    )
    parser.add_argument(
        "--countdown", type=positive_seconds, help="Run a countdown of N seconds"
    )
    parser.add_argument(
        "--stopwatch", type=positive_seconds, help="Run a stopwatch for N seconds"
    )
    parser.add_argument("--name", help="Timer name")
    parser.add_argument("--open", "-o", help="Open a tool by name and print its result")
    parser.add_argument(
        "--list-tools", "-l", action="store_true", help="List registered tools"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    return parser


def main():
    """Main CLI entry point."""
    args = build_parser().parse_args()

    config_file = args.config if os.path.exists(args.config) else None
    try:
        core = CoreContext.from_config_file(config_file)
    except Exception as e:
        print(f"Failed to load configuration: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(core.config.logging, core.log_buffer)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    if config_file is None:
        logger.info(f"No configuration file at {args.config}, using defaults")

    sys.exit(asyncio.run(run(args, core)))


if __name__ == "__main__":
    main()
