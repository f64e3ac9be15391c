# ============================================================================
# booking_assistant/services/booking/booking_service.py
# ============================================================================
"""Booking commit protocol: validate, re-check the calendar, insert, persist"""
from datetime import datetime
from typing import Callable, List, Optional
import logging

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from booking_assistant.config.settings import Settings, get_settings
from booking_assistant.core.exceptions import (
    BookingAlreadyCancelled,
    BookingNotFound,
    ConflictError,
    PartialCommitInconsistency,
    ValidationError,
)
from booking_assistant.models.booking import Booking, BookingStatus, Platform
from booking_assistant.schemas.booking import BookingResult
from booking_assistant.schemas.calendar_events import CalendarEventRequest
from booking_assistant.services.availability.availability_service import (
    AvailabilityService,
    booking_window,
    window_conflict,
)
from booking_assistant.services.calendar.calendar_gateway import (
    CalendarGateway,
    CalendarIntegrationService,
    booking_properties,
)
from booking_assistant.utils.datetime_utils import ensure_utc, parse_iso_datetime, utcnow

logger = logging.getLogger(__name__)

EMAIL_ADAPTER = TypeAdapter(EmailStr)


class BookingService:
    """Creates, cancels and lists bookings against the owner's external calendar"""

    def __init__(
            self,
            gateway: CalendarGateway,
            clock: Callable[[], datetime] = None,
            settings: Settings = None
    ):
        self.gateway = gateway
        self.clock = clock or utcnow
        self.settings = settings or get_settings()
        self.availability = AvailabilityService(gateway, clock=self.clock, settings=self.settings)

    @staticmethod
    def _validate_request(platform: str, summary: str, start: datetime, end: datetime, attendee_email: Optional[str]):
        if end <= start:
            raise ValidationError("End time must be after start time")
        if platform not in Platform.ALL:
            raise ValidationError(f"Unknown platform {platform!r}; expected one of {', '.join(Platform.ALL)}")
        if not summary or not summary.strip():
            raise ValidationError("Booking summary is required")
        if attendee_email:
            try:
                EMAIL_ADAPTER.validate_python(attendee_email)
            except PydanticValidationError:
                raise ValidationError(f"Invalid attendee email: {attendee_email}")

    def create_booking(
            self,
            db: Session,
            business_id: str,
            conversation_id: str,
            sender_id: str,
            platform: str,
            summary: str,
            start,
            end,
            description: Optional[str] = None,
            attendee_email: Optional[str] = None,
            attendee_name: Optional[str] = None,
            staff_id: Optional[str] = None
    ) -> BookingResult:
        """
        Commit one booking.

        Everything that can be checked locally is checked before any calendar
        I/O. The calendar is then read fresh for exactly the requested window,
        so a slot shown earlier and taken since is reported as a ConflictError.
        The external event is written before the local row; if the row cannot
        be saved the event is left in place and PartialCommitInconsistency is
        raised with its id.
        """
        start = parse_iso_datetime(start)
        end = parse_iso_datetime(end)
        platform = (platform or "").lower()
        self._validate_request(platform, summary, start, end, attendee_email)

        business, tz, slot = self.availability.governing_slot(db, business_id, start, end)

        now = ensure_utc(self.clock())
        if start <= now:
            raise ValidationError("Cannot book a time in the past")

        earliest, latest = booking_window(business, now.astimezone(tz).date())
        local_date = start.astimezone(tz).date()
        if local_date < earliest:
            raise ValidationError("Same-day booking is not allowed for this business")
        if local_date > latest:
            raise ValidationError(f"Bookings can be made at most {business.advance_booking_days} days in advance")

        if slot is None:
            raise ValidationError("Requested time is not a bookable slot")

        integration = CalendarIntegrationService.get_connected(db, business_id, staff_id)

        # Fresh read of exactly the requested window
        events = self.gateway.list_events(db, integration, start.astimezone(tz), end.astimezone(tz), time_zone=tz)
        reason = window_conflict(slot, events, self.settings.BOOKING_EVENT_MARKER)
        if reason is not None:
            logger.info(
                f"Booking conflict ({reason}) for business {business_id} at {start.isoformat()}, "
                f"conversation {conversation_id}"
            )
            raise ConflictError(reason)

        body = (description or "").strip()
        footer = f"Booked via {self.settings.APP_NAME}"
        attendees = []
        if attendee_email:
            attendee = {"email": attendee_email}
            if attendee_name:
                attendee["displayName"] = attendee_name
            attendees.append(attendee)

        created = self.gateway.insert_event(db, integration, CalendarEventRequest(
            summary=f"Booking with {business.name}: {summary.strip()}",
            description=f"{body}\n\n{footer}" if body else footer,
            start=start.astimezone(tz),
            end=end.astimezone(tz),
            time_zone=business.timezone or self.settings.DEFAULT_TIMEZONE,
            attendees=attendees,
            private_properties=booking_properties(business_id),
        ))

        booking = Booking(
            business_id=business_id,
            staff_id=staff_id,
            conversation_id=conversation_id,
            sender_id=sender_id,
            platform=platform,
            event_id=created.event_id,
            event_url=created.event_url,
            summary=summary.strip(),
            description=description,
            start_at=ensure_utc(start),
            end_at=ensure_utc(end),
            time_zone=business.timezone or self.settings.DEFAULT_TIMEZONE,
            attendee_email=attendee_email,
            attendee_name=attendee_name,
            status=BookingStatus.ACTIVE,
        )

        try:
            db.add(booking)
            db.commit()
            db.refresh(booking)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                f"Calendar event {created.event_id} created for business {business_id} "
                f"but booking row could not be saved: {e}"
            )
            raise PartialCommitInconsistency(created.event_id)

        logger.info(
            f"Booked {start.isoformat()}-{end.isoformat()} for business {business_id} "
            f"(booking {booking.id}, event {created.event_id})"
        )

        return BookingResult(
            booking_id=booking.id,
            event_id=created.event_id,
            event_url=created.event_url,
            start=start.astimezone(tz).isoformat(),
            end=end.astimezone(tz).isoformat(),
        )

    def cancel_booking(self, db: Session, business_id: str, event_id: str) -> dict:
        """Delete the external event, then mark the local booking cancelled"""
        booking = db.query(Booking).filter(
            Booking.business_id == business_id,
            Booking.event_id == event_id
        ).first()

        if not booking:
            raise BookingNotFound(f"No booking for event {event_id}")
        if not booking.is_active:
            raise BookingAlreadyCancelled(f"Booking for event {event_id} is already cancelled")

        integration = CalendarIntegrationService.get_connected(db, business_id, booking.staff_id)
        self.gateway.delete_event(db, integration, event_id)

        booking.cancel()
        db.commit()

        logger.info(f"Cancelled booking {booking.id} (event {event_id}) for business {business_id}")
        return {
            "status": BookingStatus.CANCELLED,
            "booking_id": booking.id,
            "event_id": event_id,
        }

    @staticmethod
    def list_bookings(db: Session, conversation_id: str, sender_id: str, business_id: str) -> List[Booking]:
        """Active bookings of one end user in one conversation, newest first"""
        return db.query(Booking).filter(
            Booking.business_id == business_id,
            Booking.conversation_id == conversation_id,
            Booking.sender_id == sender_id,
            Booking.status == BookingStatus.ACTIVE
        ).order_by(Booking.created_at.desc()).all()

    @staticmethod
    def list_business_bookings(
            db: Session,
            business_id: str,
            status: Optional[str] = None,
            limit: int = 50
    ) -> List[Booking]:
        """Recent bookings of a business for the dashboard"""
        query = db.query(Booking).filter(Booking.business_id == business_id)
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.start_at.desc()).limit(limit).all()
