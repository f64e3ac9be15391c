# booking_assistant/schemas/__init__.py
from .scheduling import (
    SlotRule,
    DateOverrideSchema,
    ScheduleResolution,
    ScheduleSource,
    AppointmentSlot,
    DAY_NAMES,
)

from .calendar_events import (
    ExternalCalendarEvent,
    CalendarEventRequest,
    CreatedEvent,
)

from .booking import (
    CreateBookingRequest,
    CheckSlotRequest,
    BookingResult,
    AvailabilityResponse,
    SlotCheckResponse,
)
