# ===== booking_assistant/services/availability/availability_service.py =====
from typing import Callable, List, Optional, Tuple
from datetime import date, datetime, timedelta, tzinfo
from sqlalchemy.orm import Session
import logging

from booking_assistant.config.settings import Settings, get_settings
from booking_assistant.core.exceptions import ConflictError, ValidationError
from booking_assistant.models.business import Business
from booking_assistant.schemas.booking import SlotCheckResponse
from booking_assistant.schemas.calendar_events import ExternalCalendarEvent
from booking_assistant.schemas.scheduling import AppointmentSlot
from booking_assistant.services.availability.slot_generator import (
    count_overlapping,
    find_slot,
    generate_slots,
    overlaps,
)
from booking_assistant.services.calendar.calendar_gateway import (
    CalendarGateway,
    CalendarIntegrationService,
    is_booking_event,
)
from booking_assistant.services.schedule.schedule_service import ScheduleService
from booking_assistant.utils.datetime_utils import (
    date_range,
    ensure_utc,
    local_midnight,
    parse_iso_date,
    parse_iso_datetime,
    resolve_timezone,
    utcnow,
)

logger = logging.getLogger(__name__)


def business_timezone(business: Business, settings: Settings = None) -> tzinfo:
    settings = settings or get_settings()
    return resolve_timezone(business.timezone or settings.DEFAULT_TIMEZONE)


def booking_window(business: Business, today: date) -> Tuple[date, date]:
    """First and last local dates the business accepts bookings for"""
    earliest = today if business.same_day_booking else today + timedelta(days=1)
    latest = today + timedelta(days=business.advance_booking_days)
    return earliest, latest


def window_conflict(slot: AppointmentSlot, events: List[ExternalCalendarEvent], marker: str = None) -> Optional[str]:
    """
    Reason the slot window cannot take another booking, or None.

    Non-booking events overlapping the window block it outright; booking events
    count against the slot's capacity.
    """
    overlapping = [e for e in events if overlaps(slot.start, slot.end, e.start, e.end)]

    if any(not is_booking_event(e, marker) for e in overlapping):
        return ConflictError.OVERLAP
    if len(overlapping) >= slot.max_bookings:
        return ConflictError.CAPACITY
    return None


class AvailabilityService:
    """Open appointment slots: schedule rules minus what the external calendar already holds"""

    def __init__(
            self,
            gateway: CalendarGateway,
            clock: Callable[[], datetime] = None,
            settings: Settings = None
    ):
        self.gateway = gateway
        self.clock = clock or utcnow
        self.settings = settings or get_settings()

    def now(self) -> datetime:
        return ensure_utc(self.clock())

    def get_available_slots(
            self,
            db: Session,
            business_id: str,
            start_date,
            end_date,
            staff_id: Optional[str] = None
    ) -> List[AppointmentSlot]:
        """
        Open slots for every date in [start_date, end_date], chronological.

        The external calendar is read once for the whole range. Past slots and
        dates outside the business booking window are left out.
        """
        start_date = parse_iso_date(start_date)
        end_date = parse_iso_date(end_date)

        if end_date < start_date:
            raise ValidationError("end_date must not be before start_date")
        if (end_date - start_date).days + 1 > self.settings.MAX_AVAILABILITY_RANGE_DAYS:
            raise ValidationError(
                f"Date range cannot exceed {self.settings.MAX_AVAILABILITY_RANGE_DAYS} days"
            )

        schedule = ScheduleService.load(db, business_id, start_date, end_date)
        tz = business_timezone(schedule.business, self.settings)
        now = self.now()

        earliest, latest = booking_window(schedule.business, now.astimezone(tz).date())
        first, last = max(start_date, earliest), min(end_date, latest)
        if first > last:
            logger.info(f"Range {start_date}..{end_date} is outside the booking window of business {business_id}")
            return []

        candidates = []
        for day in date_range(first, last):
            resolution = schedule.schedule_for(day)
            candidates.extend(
                slot for slot in generate_slots(resolution.slots, day, tz)
                if slot.start > now
            )

        if not candidates:
            return []

        integration = CalendarIntegrationService.get_connected(db, business_id, staff_id)
        events = self.gateway.list_events(
            db,
            integration,
            local_midnight(first, tz),
            local_midnight(last + timedelta(days=1), tz),
            time_zone=tz,
        )
        booked = [event for event in events if is_booking_event(event, self.settings.BOOKING_EVENT_MARKER)]

        available = []
        for slot in candidates:
            slot.current_bookings = count_overlapping(slot.start, slot.end, booked)
            if slot.is_open:
                available.append(slot)

        logger.info(
            f"Business {business_id}: {len(available)} open of {len(candidates)} slots "
            f"between {first} and {last} ({len(booked)} booked events)"
        )
        return available

    def governing_slot(
            self,
            db: Session,
            business_id: str,
            start: datetime,
            end: datetime
    ) -> Tuple[Business, tzinfo, Optional[AppointmentSlot]]:
        """The generated slot whose window is exactly [start, end) on its local date"""
        business = ScheduleService.get_business(db, business_id)
        tz = business_timezone(business, self.settings)
        target = start.astimezone(tz).date()

        schedule = ScheduleService.load_for(db, business, target, target)
        slots = generate_slots(schedule.schedule_for(target).slots, target, tz)
        return business, tz, find_slot(slots, start, end)

    def check_slot(
            self,
            db: Session,
            business_id: str,
            start,
            end,
            staff_id: Optional[str] = None
    ) -> SlotCheckResponse:
        """Whether one exact window can be booked right now, with its live count"""
        start = parse_iso_datetime(start)
        end = parse_iso_datetime(end)
        if end <= start:
            raise ValidationError("End time must be after start time")

        business, tz, slot = self.governing_slot(db, business_id, start, end)

        if slot is None:
            return SlotCheckResponse(
                is_available=False,
                reason="not_a_slot",
                message="Requested time does not match any bookable slot",
            )

        now = self.now()
        earliest, latest = booking_window(business, now.astimezone(tz).date())
        if slot.start <= now or not earliest <= slot.date <= latest:
            return SlotCheckResponse(
                is_available=False,
                reason="outside_booking_window",
                slot=slot,
                message="Requested time is outside the booking window",
            )

        integration = CalendarIntegrationService.get_connected(db, business_id, staff_id)
        events = self.gateway.list_events(db, integration, slot.start, slot.end, time_zone=tz)
        marker = self.settings.BOOKING_EVENT_MARKER
        slot.current_bookings = count_overlapping(
            slot.start, slot.end, [e for e in events if is_booking_event(e, marker)]
        )

        reason = window_conflict(slot, events, marker)
        if reason is not None:
            return SlotCheckResponse(
                is_available=False,
                reason=reason,
                slot=slot,
                message="Requested time is no longer available",
            )

        return SlotCheckResponse(is_available=True, slot=slot, message="Time slot is available")
