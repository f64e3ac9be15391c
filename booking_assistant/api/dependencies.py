# ============================================================================
# FILE: booking_assistant/api/dependencies.py
# Service dependencies shared by the v1 routes
# ============================================================================
from functools import lru_cache

from fastapi import Depends

from booking_assistant.services.availability.availability_service import AvailabilityService
from booking_assistant.services.booking.booking_service import BookingService
from booking_assistant.services.calendar.calendar_gateway import CalendarGateway
from booking_assistant.services.calendar.google_calendar_service import GoogleCalendarService


@lru_cache()
def get_google_calendar_service() -> GoogleCalendarService:
    """One gateway per process so the local refresh lock is shared"""
    return GoogleCalendarService()


def get_calendar_gateway() -> CalendarGateway:
    return get_google_calendar_service()


def get_availability_service(gateway: CalendarGateway = Depends(get_calendar_gateway)) -> AvailabilityService:
    return AvailabilityService(gateway)


def get_booking_service(gateway: CalendarGateway = Depends(get_calendar_gateway)) -> BookingService:
    return BookingService(gateway)
