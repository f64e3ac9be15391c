# booking_assistant/services/calendar/calendar_gateway.py
"""Provider-neutral calendar gateway interface and event classification"""
from abc import ABC, abstractmethod
from datetime import datetime, tzinfo
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from booking_assistant.config.settings import get_settings
from booking_assistant.core.exceptions import CalendarNotConnected
from booking_assistant.models.calendar_integration import CalendarIntegration
from booking_assistant.schemas.calendar_events import CalendarEventRequest, CreatedEvent, ExternalCalendarEvent

logger = logging.getLogger(__name__)

# Private extended property written on every event this service creates
BOOKING_PROPERTY_KEY = "bookingAssistant"
BOOKING_PROPERTY_VALUE = "booking"
BUSINESS_PROPERTY_KEY = "businessId"


def booking_properties(business_id: str) -> dict:
    return {BOOKING_PROPERTY_KEY: BOOKING_PROPERTY_VALUE, BUSINESS_PROPERTY_KEY: business_id}


def is_booking_event(event: ExternalCalendarEvent, marker: Optional[str] = None) -> bool:
    """
    True for events that occupy booking capacity.

    Events created here carry the private marker. Older events are recognised by
    the marker word appearing in the title or body.
    """
    if event.private_properties.get(BOOKING_PROPERTY_KEY) == BOOKING_PROPERTY_VALUE:
        return True

    marker = (marker or get_settings().BOOKING_EVENT_MARKER).lower()
    return marker in event.summary.lower() or marker in event.description.lower()


class CalendarGateway(ABC):
    """
    Read/insert/delete against one owner's external calendar.

    Implementations keep the owner's access token valid themselves and raise
    the CalendarGatewayError family on failure.
    """

    @abstractmethod
    def list_events(
            self,
            db: Session,
            integration: CalendarIntegration,
            range_start: datetime,
            range_end: datetime,
            time_zone: Optional[tzinfo] = None
    ) -> List[ExternalCalendarEvent]:
        """Non-cancelled events overlapping [range_start, range_end)

        All-day events span local midnights in time_zone, the business zone.
        Without one, range_start's zone is used.
        """

    @abstractmethod
    def insert_event(self, db: Session, integration: CalendarIntegration, event: CalendarEventRequest) -> CreatedEvent:
        pass

    @abstractmethod
    def delete_event(self, db: Session, integration: CalendarIntegration, event_id: str) -> None:
        pass


class CalendarIntegrationService:
    """Lookup of the integration that serves a business or staff calendar"""

    @staticmethod
    def find(db: Session, business_id: str, staff_id: Optional[str] = None) -> Optional[CalendarIntegration]:
        query = db.query(CalendarIntegration).filter(CalendarIntegration.business_id == business_id)
        if staff_id:
            query = query.filter(CalendarIntegration.staff_id == staff_id)
        else:
            query = query.filter(CalendarIntegration.staff_id.is_(None))
        return query.first()

    @staticmethod
    def get_connected(db: Session, business_id: str, staff_id: Optional[str] = None) -> CalendarIntegration:
        """The owner's integration; CalendarNotConnected when missing or disconnected"""
        integration = CalendarIntegrationService.find(db, business_id, staff_id)

        if integration is None or not integration.is_connected:
            owner = f"staff {staff_id}" if staff_id else f"business {business_id}"
            logger.info(f"No connected calendar for {owner}")
            raise CalendarNotConnected("Calendar is not connected. Please connect Google Calendar first.")

        return integration

    @staticmethod
    def status(db: Session, business_id: str, staff_id: Optional[str] = None) -> dict:
        integration = CalendarIntegrationService.find(db, business_id, staff_id)
        if integration is None:
            return {"business_id": business_id, "staff_id": staff_id, "is_connected": False, "status": None}
        return integration.to_dict()
