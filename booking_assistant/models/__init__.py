# booking_assistant/models/__init__.py
from .base import Base
from .business import Business
from .schedule import WeeklyScheduleDay, DateOverride
from .calendar_integration import CalendarIntegration, IntegrationStatus
from .booking import Booking, BookingStatus, Platform

__all__ = [
    "Base",
    "Business",
    "WeeklyScheduleDay",
    "DateOverride",
    "CalendarIntegration",
    "IntegrationStatus",
    "Booking",
    "BookingStatus",
    "Platform",
]
