"""Capability types shared by the tool registry and tool modules."""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

_OPEN_KEYS = ("open_panel", "openPanel")


@dataclass
class ToolApi:
    """Operations a tool exposes once registered.

    ``open_panel`` is optional: a tool may register only to provide ``extras``
    to other tools, in which case it cannot be opened by name.
    """

    open_panel: Optional[Callable[[], Any]] = None
    description: str = ""
    extras: dict[str, Callable] = field(default_factory=dict)

    @property
    def can_open(self) -> bool:
        return self.open_panel is not None

    @classmethod
    def from_value(cls, api: Any) -> "ToolApi":
        """Normalize a ToolApi, a mapping, or an object with an open operation."""
        if isinstance(api, ToolApi):
            return api

        if isinstance(api, Mapping):
            open_panel = next(
                (api[key] for key in _OPEN_KEYS if callable(api.get(key))), None
            )
            extras = {
                key: value
                for key, value in api.items()
                if key not in _OPEN_KEYS and key != "description" and callable(value)
            }
            return cls(
                open_panel=open_panel,
                description=str(api.get("description", "")),
                extras=extras,
            )

        open_panel = next(
            (
                getattr(api, key)
                for key in _OPEN_KEYS
                if callable(getattr(api, key, None))
            ),
            None,
        )
        return cls(open_panel=open_panel, description=getattr(api, "description", ""))


@dataclass(frozen=True)
class CapabilityRegistration:
    """A registered tool. Replaced, never mutated, on re-registration."""

    name: str
    api: ToolApi
    source_locator: Optional[str] = None
    registered_at: str = field(default_factory=lambda: datetime.now().isoformat())


class OpenStatus(Enum):
    """Outcome of opening a capability by name."""

    OPENED = "opened"
    NOT_AVAILABLE = "not available"
    FAILED = "failed"


@dataclass
class OpenResult:
    """Result of ``open_capability``; ``value`` is what ``open_panel`` returned."""

    name: str
    status: OpenStatus
    value: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is OpenStatus.OPENED


@dataclass
class LoadResult:
    """Per-source record produced by the bulk loader."""

    source: str
    loaded: bool
    error: Optional[str] = None
    registered: list[str] = field(default_factory=list)
