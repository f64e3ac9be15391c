# booking_assistant/api/v1/availability.py
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from booking_assistant.api.dependencies import get_availability_service
from booking_assistant.config.database import get_db
from booking_assistant.config.settings import get_settings
from booking_assistant.schemas.booking import AvailabilityResponse, CheckSlotRequest, SlotCheckResponse
from booking_assistant.services.availability.availability_service import AvailabilityService
from booking_assistant.services.schedule.schedule_service import ScheduleService
from booking_assistant.utils.datetime_utils import parse_iso_date

router = APIRouter()


# Blocking calendar I/O: plain `def` routes run in the threadpool
@router.get("/{business_id}/availability", response_model=AvailabilityResponse)
def get_availability(
        business_id: str,
        start_date: str = Query(..., description="YYYY-MM-DD"),
        end_date: str = Query(..., description="YYYY-MM-DD"),
        staff_id: Optional[str] = Query(None),
        db: Session = Depends(get_db),
        service: AvailabilityService = Depends(get_availability_service)
):
    """Open slots between two local dates, inclusive"""
    slots = service.get_available_slots(db, business_id, start_date, end_date, staff_id=staff_id)
    business = ScheduleService.get_business(db, business_id)

    return AvailabilityResponse(
        business_id=business_id,
        start_date=start_date,
        end_date=end_date,
        timezone=business.timezone or get_settings().DEFAULT_TIMEZONE,
        total_slots=len(slots),
        slots=slots,
    )


@router.get("/{business_id}/schedule/{day}")
def get_schedule_for_day(
        business_id: str,
        day: str,
        db: Session = Depends(get_db)
):
    """Rules in force on one date (override or regular weekday)"""
    target: date = parse_iso_date(day)
    resolution = ScheduleService.schedule_for(db, business_id, target)
    return resolution.model_dump(mode="json", by_alias=False)


@router.post("/{business_id}/availability/check", response_model=SlotCheckResponse)
def check_availability(
        business_id: str,
        request: CheckSlotRequest,
        db: Session = Depends(get_db),
        service: AvailabilityService = Depends(get_availability_service)
):
    """Whether one exact window can be booked right now"""
    return service.check_slot(db, business_id, request.start, request.end, staff_id=request.staff_id)
