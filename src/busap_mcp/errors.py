"""Error types raised by the simulator and calendar services.

All errors are raised synchronously to the caller of the triggering
operation. MCP tools let them propagate so the client sees the message.
"""


class BusapError(Exception):
    """Base class for all domain errors."""


class NotFoundError(BusapError, LookupError):
    """Unknown session, trip, calendar or calendar entry."""


class ConflictError(BusapError):
    """Duplicate active simulation for a trip, or duplicate calendar data."""


class InvalidStateError(BusapError):
    """Lifecycle operation called in a state that does not allow it."""


class InvalidRouteError(BusapError):
    """Route has fewer than two resolvable points."""


class InvalidDateRuleError(BusapError, ValueError):
    """Calendar entry has a malformed or inconsistent date rule."""


class UnsupportedRuleError(BusapError, ValueError):
    """Calendar entry uses an unknown date type."""
