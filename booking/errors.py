# booking/errors.py

"""
Typed errors raised by the booking engine.

Routers turn these into HTTP responses (see booking.deps.to_http_error);
nothing below the router layer catches them.
"""


class BookingError(Exception):
    """Base class for every error the engine reports to its caller."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Missing or malformed fields, invalid interval, duration below minimum."""


class InvalidReferenceError(BookingError):
    """A provider/customer/service id does not exist or lacks the required role."""


class NotFoundError(BookingError):
    pass


class ConflictError(BookingError):
    """The slot is occupied or blocked.

    ``result`` is the AvailabilityResult that caused the rejection, so callers
    can show which records are in the way.
    """

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result


class BlockedPeriodOverlapError(ConflictError):
    def __init__(self, message: str, overlapping=None):
        super().__init__(message)
        self.overlapping = list(overlapping or [])


class StateTransitionError(BookingError):
    """Illegal status change, e.g. confirming a cancelled appointment."""


class ExhaustionError(BookingError):
    """No unique appointment hash could be generated."""
