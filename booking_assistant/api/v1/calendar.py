# booking_assistant/api/v1/calendar.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from booking_assistant.api.dependencies import get_google_calendar_service
from booking_assistant.config.database import get_db
from booking_assistant.core.exceptions import CalendarNotConnected
from booking_assistant.services.calendar.calendar_gateway import CalendarIntegrationService
from booking_assistant.services.calendar.google_calendar_service import GoogleCalendarService
from booking_assistant.services.schedule.schedule_service import ScheduleService

router = APIRouter(tags=["calendar"])


# ========== GOOGLE CALENDAR ==========
@router.post("/google/authorize/{business_id}")
def initiate_google_auth(
        business_id: str,
        staff_id: Optional[str] = Query(None),
        db: Session = Depends(get_db),
        service: GoogleCalendarService = Depends(get_google_calendar_service)
):
    """Returns authorization URL for the calendar owner to visit"""
    ScheduleService.get_business(db, business_id)
    auth_url = service.generate_authorization_url(business_id, staff_id)
    return {"authorization_url": auth_url}


@router.get("/google/callback")
def google_callback(
        code: str,
        state: str,  # JSON with business_id and staff_id
        db: Session = Depends(get_db),
        service: GoogleCalendarService = Depends(get_google_calendar_service)
):
    """Google redirects here after authorization"""
    owner = service.parse_state(state)
    ScheduleService.get_business(db, owner["business_id"])

    integration = service.handle_oauth_callback(db, code, state)
    return {
        "success": True,
        "integration_id": integration.id,
        "calendar_email": integration.calendar_email,
    }


# ========== STATUS ==========
@router.get("/{business_id}/status")
def calendar_status(
        business_id: str,
        staff_id: Optional[str] = Query(None),
        db: Session = Depends(get_db)
):
    ScheduleService.get_business(db, business_id)
    return CalendarIntegrationService.status(db, business_id, staff_id)


@router.post("/{business_id}/disconnect")
def disconnect_calendar(
        business_id: str,
        staff_id: Optional[str] = Query(None),
        db: Session = Depends(get_db),
        service: GoogleCalendarService = Depends(get_google_calendar_service)
):
    """Revoke access and clear stored tokens"""
    integration = CalendarIntegrationService.find(db, business_id, staff_id)
    if integration is None or not integration.is_connected:
        raise CalendarNotConnected("Calendar is not connected")

    service.disconnect(db, integration)
    return {"success": True, "status": integration.integration_status}
