"""Exception hierarchy for flowstate.

Faults raised by a use case's own logic are never wrapped in these types;
they travel as ``Error`` states. The classes here describe misuse of the
library itself: bad configuration, a closed dispatcher, or an impossible
state value.
"""

from __future__ import annotations


class FlowStateError(Exception):
    """Base exception for all library-specific errors."""

    def __init__(self, message: str, hint: str | None = None):
        """Initialize with an optional actionable hint."""
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        """Return the full error message including the hint."""
        msg = super().__str__()
        return f"{msg}. {self.hint}" if self.hint else msg


# --- Actionable Hints ---

HINTS = {
    "dispatcher_closed": (
        "Create a new dispatcher or keep the 'with' block open while streams "
        "are being collected."
    ),
    "loop_not_running": (
        "LoopDispatcher only hands work to a loop that is already running; "
        "use ThreadLoopDispatcher to own one."
    ),
    "invalid_capacity": "Channel capacity must be at least 1.",
    "unknown_dispatcher": "Supported dispatchers: 'unconfined', 'task', 'thread'.",
    "not_a_state": (
        "Build states with loading(), success() or error(); other objects are "
        "not ResultState values."
    ),
}


class ConfigurationError(FlowStateError):
    """Raised for invalid configuration values."""


class DispatcherClosedError(FlowStateError):
    """Raised when work is submitted to a dispatcher that cannot accept it."""


class InvariantViolationError(FlowStateError):
    """Raised when an internal invariant is violated.

    Used to signal impossible states, e.g. a value that claims to be a
    ``ResultState`` but is none of the three variants.
    """

    def __init__(
        self, message: str, stage_name: str | None = None, hint: str | None = None
    ):
        """Create an invariant violation error.

        Args:
            message: Human-readable description of the violated invariant.
            stage_name: Optional name of the operation that detected it.
            hint: Optional actionable hint for resolution.
        """
        self.stage_name = stage_name
        msg = message if stage_name is None else f"[{stage_name}] {message}"
        super().__init__(msg, hint=hint)


__all__ = [
    "HINTS",
    "ConfigurationError",
    "DispatcherClosedError",
    "FlowStateError",
    "InvariantViolationError",
]
