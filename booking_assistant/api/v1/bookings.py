# booking_assistant/api/v1/bookings.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from booking_assistant.api.dependencies import get_booking_service
from booking_assistant.config.database import get_db
from booking_assistant.core.exceptions import ValidationError
from booking_assistant.schemas.booking import BookingResult, CreateBookingRequest
from booking_assistant.services.booking.booking_service import BookingService
from booking_assistant.services.schedule.schedule_service import ScheduleService

router = APIRouter()


@router.post("/{business_id}/bookings", response_model=BookingResult, status_code=status.HTTP_201_CREATED)
def create_booking(
        business_id: str,
        request: CreateBookingRequest,
        http_request: Request,
        db: Session = Depends(get_db),
        service: BookingService = Depends(get_booking_service)
):
    """Commit a booking for a slot returned by the availability endpoint"""
    result = service.create_booking(
        db,
        business_id=business_id,
        conversation_id=request.conversation_id,
        sender_id=request.sender_id,
        platform=request.platform,
        summary=request.summary,
        start=request.start,
        end=request.end,
        description=request.description,
        attendee_email=request.attendee_email,
        attendee_name=request.attendee_name,
        staff_id=request.staff_id,
    )
    http_request.state.event_id = result.event_id
    return result


@router.get("/{business_id}/bookings")
def list_bookings(
        business_id: str,
        conversation_id: Optional[str] = Query(None),
        sender_id: Optional[str] = Query(None),
        booking_status: Optional[str] = Query(None, alias="status"),
        limit: int = Query(50, ge=1, le=200),
        db: Session = Depends(get_db)
):
    """
    Bookings of a business.

    With conversation_id and sender_id: that user's active bookings, newest first.
    Otherwise the most recent bookings of the business.
    """
    ScheduleService.get_business(db, business_id)

    if conversation_id or sender_id:
        if not (conversation_id and sender_id):
            raise ValidationError("conversation_id and sender_id must be given together")
        bookings = BookingService.list_bookings(db, conversation_id, sender_id, business_id)
    else:
        bookings = BookingService.list_business_bookings(db, business_id, status=booking_status, limit=limit)

    return {
        "business_id": business_id,
        "total": len(bookings),
        "bookings": [booking.to_dict() for booking in bookings],
    }


@router.delete("/{business_id}/bookings/{event_id}")
def cancel_booking(
        business_id: str,
        event_id: str,
        db: Session = Depends(get_db),
        service: BookingService = Depends(get_booking_service)
):
    """Delete the calendar event and mark the booking cancelled"""
    return service.cancel_booking(db, business_id, event_id)
