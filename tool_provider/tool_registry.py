"""Tool Registry Module

Maps capability names to the APIs that tool modules register, and loads tool
modules on demand from their source locators.

A source locator is either a dotted module path (``tools.timer_tool``) or a
path to a ``.py`` file. A tool module exposes ``setup(core)``, sync or async,
and calls ``core.register_tool(...)`` from it.
"""

import importlib
import importlib.util
import inspect
import logging
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Optional

from common.capability import (
    CapabilityRegistration,
    LoadResult,
    OpenResult,
    OpenStatus,
    ToolApi,
)
from common.errors import ToolLoadError

logger = logging.getLogger(__name__)

ENTRY_POINT = "setup"

# Source whose setup() is running in the current task, used to tag registrations
_loading_source: ContextVar[Optional[str]] = ContextVar("loading_source", default=None)


def source_matches(source: str, name: str) -> bool:
    """Return True if ``source`` is a locator for the tool called ``name``.

    Matches on a whole trailing segment: ``tools.timer_tool`` and
    ``plugins/timer_tool.py`` both match ``timer_tool``, while
    ``tools.timer_tool`` does not match ``tool``.
    """
    if not name:
        return False
    if source == name:
        return True
    if source.endswith("." + name) or source.endswith("/" + name):
        return True
    return source.endswith(".py") and Path(source).stem == name


class ToolRegistry:
    """Capability registry for tool modules.

    Registrations live for the lifetime of the registry and are replaced, not
    mutated, when a tool registers again under the same name.
    """

    def __init__(
        self,
        sources: Optional[list[str]] = None,
        entry_point: str = ENTRY_POINT,
        context_id: Optional[str] = None,
    ):
        """Initialize the tool registry.

        Args:
            sources: Known source locators, searched by ``open_capability``
            entry_point: Name of the initialization function in tool modules
            context_id: Id of the owning CoreContext, tagged on log records
        """
        self.logger = logging.LoggerAdapter(logger, {"context_id": context_id})
        self._tools: dict[str, CapabilityRegistration] = {}
        self._sources: list[str] = []
        self.entry_point = entry_point
        self._context: Any = None

        for source in sources or []:
            self.add_source(source)

        self.logger.debug("ToolRegistry initialized (empty)")

    def bind(self, context: Any) -> None:
        """Set the object passed to every tool's entry point."""
        self._context = context

    @property
    def known_sources(self) -> list[str]:
        return list(self._sources)

    def add_source(self, source: str) -> None:
        """Remember a source locator for lazy loading (idempotent)."""
        if source not in self._sources:
            self._sources.append(source)

    def register_tool(
        self, name: str, api: Any, source_locator: Optional[str] = None
    ) -> CapabilityRegistration:
        """Store or replace the registration for ``name``.

        Args:
            name: Capability name
            api: ToolApi, or a mapping/object exposing ``open_panel``
            source_locator: Where the tool was loaded from; defaults to the
                source currently being loaded, if any

        Returns:
            The stored CapabilityRegistration

        Raises:
            ValueError: If ``name`` is empty
        """
        if not name or not isinstance(name, str):
            raise ValueError(f"Invalid tool name: {name!r}")

        if name in self._tools:
            self.logger.info(f"Tool '{name}' already registered, replacing")

        record = CapabilityRegistration(
            name=name,
            api=ToolApi.from_value(api),
            source_locator=source_locator or _loading_source.get(),
        )
        self._tools[name] = record

        self.logger.info(f"Tool registered: {name}")
        return record

    def get_tool(self, name: str) -> Optional[CapabilityRegistration]:
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        """Registered capability names in registration order."""
        return list(self._tools)

    def find_source(self, name: str) -> Optional[str]:
        """Return the first known source locator matching ``name``."""
        return next(
            (source for source in self._sources if source_matches(source, name)), None
        )

    async def load_all_capabilities(
        self, sources: Optional[list[str]] = None
    ) -> list[LoadResult]:
        """Load each source in order, continuing past failures.

        Args:
            sources: Locators to load; defaults to the known sources

        Returns:
            One LoadResult per source, in the same order
        """
        sources = list(self._sources if sources is None else sources)
        self.logger.info(f"Loading {len(sources)} tool source(s)...")

        results = []
        for source in sources:
            self.add_source(source)
            results.append(await self._load_and_record(source))

        loaded = sum(1 for result in results if result.loaded)
        self.logger.info(
            f"Tool loading finished: {loaded}/{len(results)} sources loaded, "
            f"{len(self._tools)} tools registered"
        )
        return results

    async def _load_and_record(self, source: str) -> LoadResult:
        before = dict(self._tools)
        try:
            await self.load_source(source)
        except ToolLoadError as e:
            self.logger.warning(f"Failed to load {source}: {e.reason}")
            return LoadResult(source=source, loaded=False, error=e.reason)

        registered = [
            name for name, record in self._tools.items() if before.get(name) is not record
        ]
        self.logger.info(f"Loaded tool source {source}: {registered}")
        return LoadResult(source=source, loaded=True, registered=registered)

    async def load_source(self, source: str) -> None:
        """Import ``source`` and run its entry point with the bound context.

        Raises:
            ToolLoadError: If the module cannot be imported, has no entry
                point, or its entry point raises
        """
        module = self._import_source(source)

        setup = getattr(module, self.entry_point, None)
        if not callable(setup):
            raise ToolLoadError(source, f"no {self.entry_point}() entry point")

        token = _loading_source.set(source)
        try:
            result = setup(self._context)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            raise ToolLoadError(source, f"{type(e).__name__}: {e}") from e
        finally:
            _loading_source.reset(token)

    def _import_source(self, source: str) -> Any:
        try:
            if source.endswith(".py") or "/" in source:
                return self._import_file(source)
            return importlib.import_module(source)
        except ToolLoadError:
            raise
        except Exception as e:
            raise ToolLoadError(source, f"{type(e).__name__}: {e}") from e

    def _import_file(self, source: str) -> Any:
        path = Path(source)
        if not path.is_file():
            raise ToolLoadError(source, "file not found")

        spec = importlib.util.spec_from_file_location(f"tool_{path.stem}", path)
        if spec is None or spec.loader is None:
            raise ToolLoadError(source, "cannot create module spec")

        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module

    async def open_capability(self, name: str) -> OpenResult:
        """Open a tool's panel, loading its module first if needed.

        Resolution is two-phase: an openable registration is used directly;
        otherwise a matching source is loaded once and the lookup retried.

        Returns:
            OpenResult with status OPENED, FAILED (open_panel raised), or
            NOT_AVAILABLE (nothing openable under ``name``)
        """
        record = self._tools.get(name)
        if record is not None and record.api.can_open:
            return await self._invoke_open(record)

        source = self.find_source(name)
        if source is None:
            self.logger.warning(f"Tool '{name}' not available (no source found)")
            return OpenResult(name=name, status=OpenStatus.NOT_AVAILABLE, error="no source found")

        try:
            await self.load_source(source)
        except ToolLoadError as e:
            self.logger.warning(f"Failed to load tool '{name}' from {source}: {e.reason}")
            return OpenResult(name=name, status=OpenStatus.NOT_AVAILABLE, error=e.reason)

        record = self._tools.get(name)
        if record is not None and record.api.can_open:
            return await self._invoke_open(record)

        self.logger.warning(f"Tool panel not exposed by '{name}'")
        return OpenResult(
            name=name, status=OpenStatus.NOT_AVAILABLE, error="tool panel not exposed"
        )

    async def _invoke_open(self, record: CapabilityRegistration) -> OpenResult:
        try:
            value = record.api.open_panel()
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            self.logger.error(f"Tool '{record.name}' failed to open: {e}", exc_info=True)
            return OpenResult(name=record.name, status=OpenStatus.FAILED, error=str(e))

        self.logger.debug(f"Opened tool panel: {record.name}")
        return OpenResult(name=record.name, status=OpenStatus.OPENED, value=value)
