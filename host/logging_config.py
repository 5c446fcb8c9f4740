"""Logging configuration module for the multitool host.

This module provides centralized logging configuration and the in-memory
log buffer that the CoreContext exposes to tool modules.
"""

import logging
import os
import re
from collections import deque
from collections.abc import Iterable
from datetime import datetime
from inspect import getmodulename
from typing import Any, Optional

from host.host_config import LoggingConfig

# Top-level loggers of the host's own packages
HOST_LOGGERS = ("common", "host", "tool_provider", "tools")


class CustomLogRecord(logging.LogRecord):
    """Log record carrying the short module name used by the host's format."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.module_name = getmodulename(self.pathname)


class ContextFilter(logging.Filter):
    """Logging filter that passes only records tagged with one context id.

    Host components log through a ``LoggerAdapter`` that sets
    ``record.context_id``. Several CoreContexts may share the process-wide
    loggers, so each context's buffer carries this filter to keep its own
    records and drop everyone else's.
    """

    def __init__(self, context_id: str):
        """Initialize ContextFilter.

        Args:
            context_id: The only context id whose records pass.
        """
        super().__init__()
        self.context_id = context_id

    def filter(self, record: logging.LogRecord) -> bool:
        return getattr(record, "context_id", None) == self.context_id


class CoreLogBuffer(logging.Handler):
    """Keeps the most recent log entries in memory.

    Entries are plain dicts ``{"t": iso timestamp, "level": name, "m": message}``
    so a log panel can render them without touching logging internals.
    """

    def __init__(
        self,
        capacity: int = 500,
        level: int = logging.NOTSET,
        context_id: Optional[str] = None,
    ):
        """Initialize the buffer.

        Args:
            capacity: Maximum number of entries kept; older entries are dropped.
            level: Minimum level recorded.
            context_id: When set, only records tagged with this context id are
                kept (see ContextFilter).
        """
        super().__init__(level=level)
        self._entries: deque = deque(maxlen=capacity)
        self.context_id = context_id
        if context_id is not None:
            self.addFilter(ContextFilter(context_id))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._entries.append(
                {
                    "t": datetime.fromtimestamp(record.created).isoformat(),
                    "level": record.levelname,
                    "logger": record.name,
                    "m": record.getMessage(),
                }
            )
        except Exception:
            self.handleError(record)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def entries(self, limit: Optional[int] = None) -> list[dict[str, Any]]:
        """Return buffered entries, oldest first; ``limit`` keeps the newest N."""
        items = list(self._entries)
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items

    def clear(self) -> None:
        self._entries.clear()


def attach_log_buffer(
    buffer: CoreLogBuffer, logger_names: Iterable[str] = HOST_LOGGERS
) -> None:
    """Attach ``buffer`` to the given loggers (idempotent)."""
    for name in logger_names:
        target = logging.getLogger(name)
        if buffer not in target.handlers:
            target.addHandler(buffer)


def detach_log_buffer(
    buffer: CoreLogBuffer, logger_names: Iterable[str] = HOST_LOGGERS
) -> None:
    """Remove ``buffer`` from the given loggers."""
    for name in logger_names:
        logging.getLogger(name).removeHandler(buffer)


def _resolve_log_file(log_file: str) -> str:
    # Strip surrounding whitespace and collapse repeated slashes
    log_file = re.sub(r"/+", "/", log_file.strip())
    if not os.path.isabs(log_file):
        log_file = os.path.join(os.getcwd(), log_file)

    log_dir = os.path.dirname(log_file)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir)
    return log_file


def _truncate_log_file(log_file: str, max_bytes: int) -> None:
    if not os.path.exists(log_file) or os.path.getsize(log_file) <= max_bytes:
        return
    with open(log_file, "r+") as f:
        data = f.read()
        f.seek(0)
        f.write(data[len(data) - max_bytes :])
        f.truncate()


def configure_logging(
    logging_config: LoggingConfig, buffer: Optional[CoreLogBuffer] = None
) -> None:
    """Configure logging based on the provided logging configuration.

    Args:
        logging_config: Configuration object containing logging settings.
        buffer: Optional CoreLogBuffer to attach to the host loggers.
    """
    log_level = logging.getLevelName(logging_config.log_level.upper())

    logging.setLogRecordFactory(CustomLogRecord)
    handlers: list[logging.Handler] = []

    if logging_config.log_file:
        log_file = _resolve_log_file(logging_config.log_file)
        _truncate_log_file(log_file, logging_config.log_file_max_size * 1024 * 1024)
        handlers.append(logging.FileHandler(log_file))

    if not logging_config.disable_console_logging:
        handlers.append(logging.StreamHandler())

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] [%(module_name)s] %(message)s",
        handlers=handlers,
        force=True,
    )

    for name, level in (logging_config.loggers or {}).items():
        logging.getLogger(name).setLevel(logging.getLevelName(level.upper()))

    if buffer is not None:
        attach_log_buffer(buffer)
