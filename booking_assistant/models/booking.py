# ===== booking_assistant/models/booking.py =====
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index
from booking_assistant.models.base import Base
from booking_assistant.utils.datetime_utils import utcnow, ensure_utc, resolve_timezone
import uuid


class BookingStatus:
    ACTIVE = "active"
    CANCELLED = "cancelled"


class Platform:
    INSTAGRAM = "instagram"
    WHATSAPP = "whatsapp"

    ALL = (INSTAGRAM, WHATSAPP)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # References
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    staff_id = Column(String(36), nullable=True, index=True)
    conversation_id = Column(String(64), nullable=False, index=True)
    sender_id = Column(String(128), nullable=False, index=True)
    platform = Column(String(20), nullable=False)

    # Calendar link, one booking per external event
    event_id = Column(String(255), nullable=False, unique=True)
    event_url = Column(String(1024), nullable=True)

    # Booking details
    summary = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    start_at = Column(DateTime(timezone=True), nullable=False)  # stored in UTC
    end_at = Column(DateTime(timezone=True), nullable=False)
    time_zone = Column(String(50), default="UTC")

    # Attendee
    attendee_email = Column(String(255), nullable=True)
    attendee_name = Column(String(255), nullable=True)

    # Status tracking: active -> cancelled, never back
    status = Column(String(20), default=BookingStatus.ACTIVE, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_bookings_conversation_status", "conversation_id", "status"),
        Index("ix_bookings_business_sender", "business_id", "sender_id"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == BookingStatus.ACTIVE

    def cancel(self):
        if not self.is_active:
            raise ValueError(f"Booking {self.id} is already {self.status}")
        self.status = BookingStatus.CANCELLED
        self.cancelled_at = utcnow()

    def to_dict(self):
        """Serialize with start/end expressed in the booking's own timezone"""
        tz = resolve_timezone(self.time_zone or "UTC")
        return {
            "id": self.id,
            "business_id": self.business_id,
            "staff_id": self.staff_id,
            "conversation_id": self.conversation_id,
            "sender_id": self.sender_id,
            "platform": self.platform,
            "event_id": self.event_id,
            "event_url": self.event_url,
            "summary": self.summary,
            "description": self.description,
            "start": ensure_utc(self.start_at).astimezone(tz).isoformat(),
            "end": ensure_utc(self.end_at).astimezone(tz).isoformat(),
            "time_zone": self.time_zone,
            "attendee": {
                "email": self.attendee_email,
                "name": self.attendee_name,
            },
            "status": self.status,
            "created_at": ensure_utc(self.created_at).isoformat() if self.created_at else None,
            "cancelled_at": ensure_utc(self.cancelled_at).isoformat() if self.cancelled_at else None,
        }
