"""CoreContext: the single object handed to every tool module.

Aggregates the timer scheduler, the event bus and the tool registry behind
one facade. Tool modules receive the context in ``setup(core)`` and never
reach module-level state. No operation on the context raises: failures are
logged and degrade to a None/False return or a reported outcome.
"""

import itertools
import logging
import weakref
from collections.abc import Callable, Mapping
from typing import Any, Optional

from common.capability import LoadResult, OpenResult, OpenStatus, ToolApi
from common.clock import ClockSource, LoopClock
from common.errors import DuplicateTimerError, TimerLimitError
from common.event_bus import EventBus, EventName
from common.timer_types import DisplayFormat, format_elapsed, parse_display_format
from host.config_manager import ConfigManager
from host.host_config import HostConfig
from host.logging_config import CoreLogBuffer, attach_log_buffer, detach_log_buffer
from host.timer_scheduler import TimerScheduler
from tool_provider.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

_context_ids = itertools.count(1)

# Accepted spellings of create_timer options, mapped to scheduler arguments
_TIMER_OPTION_ALIASES = {
    "id": "timer_id",
    "timer_id": "timer_id",
    "mode": "mode",
    "target_seconds": "target_seconds",
    "targetSeconds": "target_seconds",
    "seconds": "target_seconds",
    "name": "name",
    "display_format": "display_format",
    "format": "display_format",
}


class CoreContext:
    """Facade over timers, events and capabilities for tools and panels."""

    def __init__(
        self,
        config: Optional[HostConfig] = None,
        clock: Optional[ClockSource] = None,
        event_bus: Optional[EventBus] = None,
    ):
        """Initialize the context and its components.

        Args:
            config: Host configuration; defaults are used when omitted
            clock: Clock driving timer ticks; defaults to an asyncio LoopClock
            event_bus: Bus for timer events; a new one is created when omitted.
                A bus passed in from outside logs without this context's id.
        """
        self.config = config or HostConfig()
        timer_settings = self.config.timers

        # Tags every record logged on behalf of this context
        self.context_id = f"core_{next(_context_ids)}"
        self.logger = logging.LoggerAdapter(logger, {"context_id": self.context_id})

        self.clock = clock or LoopClock(frame_interval=timer_settings.frame_interval)
        self.event_bus = event_bus or EventBus(context_id=self.context_id)
        self.scheduler = TimerScheduler(
            self.clock,
            self.event_bus,
            max_timers=timer_settings.max_timers,
            default_format=timer_settings.display_format,
            context_id=self.context_id,
        )
        self.registry = ToolRegistry(
            sources=self.config.tools.sources, context_id=self.context_id
        )
        self.registry.bind(self)

        self.log_buffer = CoreLogBuffer(
            capacity=self.config.logging.log_buffer_size, context_id=self.context_id
        )
        attach_log_buffer(self.log_buffer)
        # Detach the buffer even if shutdown() is never called
        self._release_log_buffer = weakref.finalize(
            self, detach_log_buffer, self.log_buffer
        )

        self.started = False
        self.logger.info(f"CoreContext {self.context_id} initialized")

    @classmethod
    def from_config_file(
        cls, config_file: Optional[str], clock: Optional[ClockSource] = None
    ) -> "CoreContext":
        """Build a context from a YAML configuration file.

        Configuration errors are raised here, before any tool runs.
        """
        config = ConfigManager(config_file).load_config()
        return cls(config=config, clock=clock)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> list[LoadResult]:
        """Boot the host: bulk-load the configured tool sources in order.

        Returns:
            The per-source load results (empty when loading at start is off)
        """
        self.logger.info("Booting multitool host...")
        results: list[LoadResult] = []
        if self.config.tools.load_on_start:
            results = await self.load_all_capabilities()
        self.started = True
        self.logger.info(f"Multitool host started with tools: {self.list_tools()}")
        return results

    def shutdown(self) -> None:
        """End the context's lifetime: cancel every tick and release the log buffer."""
        try:
            self.scheduler.shutdown()
        except Exception as e:
            self.logger.error(f"Error shutting down timer scheduler: {e}", exc_info=True)
        self.started = False
        self.logger.info("Multitool host shut down")
        self._release_log_buffer()

    async def __aenter__(self) -> "CoreContext":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def create_timer(
        self, options: Optional[Mapping[str, Any]] = None, **kwargs: Any
    ) -> Optional[str]:
        """Create a timer from an options mapping and/or keyword arguments.

        Recognized options: ``id``, ``mode``, ``target_seconds`` (also
        ``targetSeconds`` or ``seconds``), ``name``, ``display_format`` (also
        ``format``). Keyword arguments override the mapping.

        Returns:
            The timer id; the existing id when ``id`` is already taken; None
            when the timer limit is reached or creation failed
        """
        arguments: dict[str, Any] = {}
        for key, value in {**dict(options or {}), **kwargs}.items():
            target = _TIMER_OPTION_ALIASES.get(key)
            if target is None:
                self.logger.debug(f"Ignoring unknown timer option '{key}'")
                continue
            arguments[target] = value

        try:
            return self.scheduler.create_timer(**arguments)
        except DuplicateTimerError as e:
            self.logger.warning(f"{e}; keeping the existing timer")
            return e.timer_id
        except TimerLimitError as e:
            self.logger.warning(f"Cannot create timer: {e}")
            return None
        except Exception as e:
            self.logger.error(f"Failed to create timer: {e}", exc_info=True)
            return None

    def start_timer(self, timer_id: str) -> None:
        self._guard("start_timer", self.scheduler.start_timer, timer_id)

    def stop_timer(self, timer_id: str) -> None:
        self._guard("stop_timer", self.scheduler.stop_timer, timer_id)

    def reset_timer(self, timer_id: str) -> None:
        self._guard("reset_timer", self.scheduler.reset_timer, timer_id)

    def lap_timer(self, timer_id: str) -> Optional[float]:
        return self._guard("lap_timer", self.scheduler.lap_timer, timer_id)

    def remove_timer(self, timer_id: str) -> bool:
        return bool(self._guard("remove_timer", self.scheduler.remove_timer, timer_id))

    def get_timer(self, timer_id: str) -> Optional[dict[str, Any]]:
        return self.scheduler.get_timer(timer_id)

    def list_timers(self) -> list[dict[str, Any]]:
        return self.scheduler.list_timers()

    def format_elapsed(self, ms: float, fmt: Any = None) -> str:
        """Render ``ms`` in ``fmt`` (name or DisplayFormat), or the default format."""
        display_format = parse_display_format(fmt) if fmt else None
        return format_elapsed(ms, display_format or self.scheduler.default_format)

    def _guard(self, operation: str, func: Callable, *args: Any) -> Any:
        try:
            return func(*args)
        except Exception as e:
            self.logger.error(f"{operation}{args} failed: {e}", exc_info=True)
            return None

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event_name: EventName, handler: Callable) -> None:
        self.event_bus.subscribe(event_name, handler)

    def off(self, event_name: EventName, handler: Callable) -> None:
        self.event_bus.unsubscribe(event_name, handler)

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def register_tool(self, name: str, api: Any) -> Optional[ToolApi]:
        """Register a tool API under ``name`` (last write wins).

        Returns:
            The stored ToolApi, or None if the registration was rejected
        """
        try:
            return self.registry.register_tool(name, api).api
        except Exception as e:
            self.logger.error(f"Failed to register tool {name!r}: {e}")
            return None

    async def open_capability(self, name: str) -> OpenResult:
        """Open a tool's panel by name, loading the tool on first use."""
        try:
            return await self.registry.open_capability(name)
        except Exception as e:
            self.logger.error(f"Unexpected error opening tool '{name}': {e}", exc_info=True)
            return OpenResult(name=name, status=OpenStatus.FAILED, error=str(e))

    async def load_all_capabilities(
        self, sources: Optional[list[str]] = None
    ) -> list[LoadResult]:
        """Best-effort bulk load; see ToolRegistry.load_all_capabilities."""
        return await self.registry.load_all_capabilities(sources)

    def list_tools(self) -> list[str]:
        return self.registry.list_tools()

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def log(self, message: str, level: int = logging.INFO) -> None:
        """Log a message on behalf of a tool; it always lands in ``logs``."""
        if self.logger.isEnabledFor(level):
            self.logger.log(level, message)
            return
        # Below the configured level: keep it for the log panel only
        self.log_buffer.handle(
            logger.makeRecord(
                logger.name,
                level,
                __file__,
                0,
                message,
                None,
                None,
                extra={"context_id": self.context_id},
            )
        )

    @property
    def logs(self) -> list[dict[str, Any]]:
        """Recent host log entries, oldest first."""
        return self.log_buffer.entries()

    @property
    def default_format(self) -> DisplayFormat:
        return self.scheduler.default_format
