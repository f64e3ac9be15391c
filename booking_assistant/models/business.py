# booking_assistant/models/business.py
"""
Business Model - the tenant that owns a schedule, calendar integrations and bookings
"""
from sqlalchemy import Column, String, Boolean, DateTime, JSON
from sqlalchemy.sql import func
import uuid
from booking_assistant.models.base import Base

DEFAULT_BOOKING_SETTINGS = {
    "advance_booking_days": 30,
    "same_day_booking": True,
}


class Business(Base):
    __tablename__ = "businesses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)

    # System configuration
    timezone = Column(String(50), default="UTC")  # IANA name or fixed offset like "+05:00"
    booking_settings = Column(JSON, default=dict)

    # Technical fields
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    is_active = Column(Boolean, default=True)

    def __repr__(self):
        return f"<Business(id={self.id}, name={self.name})>"

    @property
    def advance_booking_days(self) -> int:
        settings = {**DEFAULT_BOOKING_SETTINGS, **(self.booking_settings or {})}
        return int(settings["advance_booking_days"])

    @property
    def same_day_booking(self) -> bool:
        settings = {**DEFAULT_BOOKING_SETTINGS, **(self.booking_settings or {})}
        return bool(settings["same_day_booking"])

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "timezone": self.timezone,
            "booking_settings": {**DEFAULT_BOOKING_SETTINGS, **(self.booking_settings or {})},
            "is_active": self.is_active,
        }
