# ===== booking_assistant/models/schedule.py =====
from sqlalchemy import Column, String, Integer, Boolean, Date, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.sql import func
from booking_assistant.models.base import Base
import uuid


class WeeklyScheduleDay(Base):
    """Recurring slot rules for one day of the week (0=Sunday, 6=Saturday)"""
    __tablename__ = "weekly_schedule_days"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    business_id = Column(String(36), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)

    day_of_week = Column(Integer, nullable=False)
    slots = Column(JSON, default=list)  # list of SlotRule dicts
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("business_id", "day_of_week", name="uq_weekly_schedule_business_day"),
    )

    def __repr__(self):
        return f"<WeeklyScheduleDay(business_id={self.business_id}, day={self.day_of_week})>"


class DateOverride(Base):
    """Specific date overrides (holidays, time-off, special hours)"""
    __tablename__ = "date_overrides"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    business_id = Column(String(36), ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)

    date = Column(Date, nullable=False)
    is_available = Column(Boolean, nullable=False)  # False = day off
    custom_slots = Column(JSON, default=list)  # replaces the regular rules when available
    reason = Column(String(200), nullable=True)  # "Holiday", "Vacation", etc.

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("business_id", "date", name="uq_date_override_business_date"),
    )

    def __repr__(self):
        return f"<DateOverride(business_id={self.business_id}, date={self.date}, available={self.is_available})>"
