"""Host configuration classes and settings management.

This module provides the pydantic models for the multitool host: logging,
timer limits and display defaults, and the tool sources loaded at boot.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from common.timer_types import DisplayFormat, parse_display_format

DEFAULT_TOOL_SOURCES = ["tools.timer_tool", "tools.log_tool"]


class LoggingConfig(BaseModel):
    """Configuration settings for host logging.

    Defines log levels, file output settings, per-logger overrides, and the
    size of the in-memory log buffer exposed through the CoreContext.
    """

    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_file_max_size: int = 10  # MB
    disable_console_logging: Optional[bool] = None
    loggers: Optional[dict[str, str]] = None
    log_buffer_size: int = Field(500, ge=1)


class TimerSettings(BaseModel):
    """Configuration for the timer scheduler."""

    default_format: str = DisplayFormat.HMS.value
    max_timers: int = Field(50, ge=1)
    frame_interval: float = Field(1 / 60, gt=0)

    @field_validator("default_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        if parse_display_format(value) is None:
            allowed = ", ".join(fmt.value for fmt in DisplayFormat)
            raise ValueError(f"Unknown display format '{value}' (expected one of {allowed})")
        return value

    @property
    def display_format(self) -> DisplayFormat:
        return parse_display_format(self.default_format)


class ToolSettings(BaseModel):
    """Tool sources loaded by the bulk loader at boot, in order."""

    sources: list[str] = Field(default_factory=lambda: list(DEFAULT_TOOL_SOURCES))
    load_on_start: bool = True


class HostConfig(BaseModel):
    """Main configuration class for the multitool host.

    Aggregates logging, timer, and tool settings. Every section has defaults,
    so an empty configuration file yields a working host.
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    timers: TimerSettings = Field(default_factory=TimerSettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)
