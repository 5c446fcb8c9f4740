"""Log Tool

Shows the host's recent log entries. Registers as ``log_tool``; opening it
returns the newest entries formatted one per line.
"""

from typing import Any

from common.capability import ToolApi

NAME = "log_tool"
DEFAULT_LIMIT = 50


def format_entry(entry: dict[str, Any]) -> str:
    return f"{entry['t']} [{entry['level']}] {entry['m']}"


def setup(core: Any) -> None:
    """Register the log viewer with the host."""

    def open_panel(limit: int = DEFAULT_LIMIT) -> list[str]:
        entries = core.logs[-limit:] if limit > 0 else []
        return [format_entry(entry) for entry in entries]

    def clear() -> dict[str, Any]:
        core.log_buffer.clear()
        return {"success": True}

    core.register_tool(
        NAME,
        ToolApi(open_panel=open_panel, description="Recent host log", extras={"clear": clear}),
    )
    core.log("Log tool ready")
