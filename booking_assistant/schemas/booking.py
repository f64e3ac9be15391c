"""
Pydantic schemas for booking requests and responses
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List

from booking_assistant.schemas.scheduling import AppointmentSlot


# ============================================================================
# Request Schemas (for incoming data)
# ============================================================================

class CreateBookingRequest(BaseModel):
    """Body of POST /businesses/{business_id}/bookings"""
    conversation_id: str = Field(..., min_length=1, description="Originating conversation")
    sender_id: str = Field(..., min_length=1, description="End user identity on the platform")
    platform: str = Field(..., description="instagram or whatsapp")
    summary: str = Field(..., min_length=1, max_length=500)
    start: str = Field(..., description="ISO-8601 with offset, e.g. 2025-12-29T09:00:00+05:00")
    end: str = Field(..., description="ISO-8601 with offset")
    description: Optional[str] = None
    attendee_email: Optional[EmailStr] = None
    attendee_name: Optional[str] = None
    staff_id: Optional[str] = None


class CheckSlotRequest(BaseModel):
    """Body of POST /businesses/{business_id}/availability/check"""
    start: str = Field(..., description="ISO-8601 with offset")
    end: str = Field(..., description="ISO-8601 with offset")
    staff_id: Optional[str] = None


# ============================================================================
# Response Schemas
# ============================================================================

class BookingResult(BaseModel):
    """Outcome of a successful commit"""
    booking_id: str
    event_id: str
    event_url: Optional[str] = None
    start: str
    end: str


class AvailabilityResponse(BaseModel):
    business_id: str
    start_date: str
    end_date: str
    timezone: str
    total_slots: int
    slots: List[AppointmentSlot] = Field(default_factory=list)


class SlotCheckResponse(BaseModel):
    is_available: bool
    reason: Optional[str] = None
    slot: Optional[AppointmentSlot] = None
    message: str
