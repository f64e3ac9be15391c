# booking_assistant/core/exceptions.py
"""Typed errors raised by the scheduling and booking services"""
from typing import Optional


class BookingAssistantError(Exception):
    """Base class; carries the HTTP status and a stable machine-readable code"""
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class ValidationError(BookingAssistantError):
    """Malformed input, rejected before any calendar I/O"""
    status_code = 400
    code = "VALIDATION_ERROR"


class BusinessNotFound(BookingAssistantError):
    status_code = 404
    code = "BUSINESS_NOT_FOUND"


class BookingNotFound(BookingAssistantError):
    status_code = 404
    code = "BOOKING_NOT_FOUND"


class BookingAlreadyCancelled(BookingAssistantError):
    status_code = 409
    code = "BOOKING_ALREADY_CANCELLED"


# ---------------------------------------------------------------------------
# Calendar gateway
# ---------------------------------------------------------------------------

class CalendarGatewayError(BookingAssistantError):
    status_code = 502
    code = "CALENDAR_ERROR"


class AuthExpired(CalendarGatewayError):
    """Refresh failed; the owner has to reconnect. Never retried."""
    status_code = 401
    code = "AUTH_EXPIRED"


class CalendarNotConnected(AuthExpired):
    """No usable integration on record, fail fast without calling the provider"""
    code = "CALENDAR_NOT_CONNECTED"


class GatewayUnavailable(CalendarGatewayError):
    """Transient provider or network failure; the caller may retry with backoff"""
    status_code = 503
    code = "CALENDAR_UNAVAILABLE"


class GatewayRequestRejected(CalendarGatewayError):
    """The provider refused the request for a non-transient reason"""
    status_code = 502
    code = "CALENDAR_REQUEST_REJECTED"


# ---------------------------------------------------------------------------
# Booking commit
# ---------------------------------------------------------------------------

class ConflictError(BookingAssistantError):
    """The fresh re-check found the window taken. Expected under concurrency."""
    status_code = 409
    code = "BOOKING_CONFLICT"

    OVERLAP = "overlap"
    CAPACITY = "capacity"

    def __init__(self, reason: str, message: Optional[str] = None):
        if reason not in (self.OVERLAP, self.CAPACITY):
            raise ValueError(f"Unknown conflict reason: {reason}")
        self.reason = reason
        super().__init__(message or f"Requested time is no longer available ({reason})")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reason": self.reason}


class PartialCommitInconsistency(BookingAssistantError):
    """The calendar event exists but the local booking row could not be written"""
    status_code = 500
    code = "PARTIAL_COMMIT"

    def __init__(self, event_id: str, message: Optional[str] = None):
        self.event_id = event_id
        super().__init__(message or f"Calendar event {event_id} was created but the booking could not be saved")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "event_id": self.event_id}
