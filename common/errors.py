"""Exception types raised inside the multitool host.

These never cross the CoreContext boundary: the context catches them,
logs them, and degrades to a reported outcome.
"""


class MultitoolError(Exception):
    """Base class for host errors."""


class TimerLimitError(MultitoolError):
    """Raised when creating a timer would exceed the configured maximum."""

    def __init__(self, limit: int):
        super().__init__(f"Timer limit reached ({limit} timers)")
        self.limit = limit


class DuplicateTimerError(MultitoolError):
    """Raised when a timer id is already registered."""

    def __init__(self, timer_id: str):
        super().__init__(f"Timer '{timer_id}' already exists")
        self.timer_id = timer_id


class ToolLoadError(MultitoolError):
    """Raised when a tool module cannot be imported or initialized."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"Failed to load tool source '{source}': {reason}")
        self.source = source
        self.reason = reason
