# booking_assistant/schemas/scheduling.py
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from booking_assistant.utils.datetime_utils import TIME_PATTERN

MIN_SLOT_DURATION = 15
MAX_SLOT_DURATION = 480  # 8 hours
MAX_BOOKINGS_PER_SLOT = 10

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


class ScheduleSource:
    OVERRIDE = "override"
    REGULAR = "regular"


def _to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


class SlotRule(BaseModel):
    """One bookable window of a day, tiled into appointments of `duration` minutes"""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    start_time: str = Field(..., description="Window start (HH:MM, 24-hour)")
    end_time: str = Field(..., description="Window end (HH:MM, 24-hour)")
    duration: int = Field(..., ge=MIN_SLOT_DURATION, le=MAX_SLOT_DURATION, description="Appointment length in minutes")
    max_bookings: int = Field(1, ge=1, le=MAX_BOOKINGS_PER_SLOT, description="Concurrent bookings allowed per appointment")
    slot_name: Optional[str] = Field(None, max_length=100)
    is_active: bool = Field(True)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        if not TIME_PATTERN.match(v):
            raise ValueError("Time must be in HH:MM format (24-hour)")
        hours, minutes = v.split(":")
        return f"{int(hours):02d}:{minutes}"

    @model_validator(mode="after")
    def end_after_start(self) -> "SlotRule":
        if self.end_minutes <= self.start_minutes:
            raise ValueError(f"End time must be after start time for slot: {self.start_time} - {self.end_time}")
        return self

    @property
    def start_minutes(self) -> int:
        return _to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return _to_minutes(self.end_time)


class DateOverrideSchema(BaseModel):
    """Replaces the regular rules of one calendar date"""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    date: date
    is_available: bool
    custom_slots: List[SlotRule] = Field(default_factory=list)
    reason: str = Field("", max_length=200)

    @model_validator(mode="after")
    def no_slots_when_unavailable(self) -> "DateOverrideSchema":
        if not self.is_available and self.custom_slots:
            raise ValueError("Custom slots are only allowed when isAvailable is true")
        return self


class ScheduleResolution(BaseModel):
    """Rules in force on one date and where they came from"""
    date: date
    day_of_week: int
    source: str
    slots: List[SlotRule] = Field(default_factory=list)
    reason: Optional[str] = None

    @computed_field
    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_of_week]

    @computed_field
    @property
    def is_available(self) -> bool:
        return bool(self.slots)


class AppointmentSlot(BaseModel):
    """A generated appointment window; never persisted"""
    date: date
    start: datetime
    end: datetime
    duration_minutes: int
    max_bookings: int
    current_bookings: int = 0
    slot_name: Optional[str] = None

    @computed_field
    @property
    def remaining(self) -> int:
        return max(self.max_bookings - self.current_bookings, 0)

    @computed_field
    @property
    def is_open(self) -> bool:
        return self.current_bookings < self.max_bookings
