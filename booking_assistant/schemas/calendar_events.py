# booking_assistant/schemas/calendar_events.py
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, Dict, List
from datetime import datetime


class ExternalCalendarEvent(BaseModel):
    """An event read from the owner's calendar"""
    id: str = Field(..., description="Provider event ID")
    start: datetime = Field(..., description="Event start (timezone-aware)")
    end: datetime = Field(..., description="Event end (timezone-aware)")
    summary: str = Field("", description="Event title")
    description: str = Field("", description="Event body")
    status: str = Field("confirmed", description="Provider status")
    html_link: Optional[str] = Field(None, description="Link to the event in the provider UI")
    private_properties: Dict[str, str] = Field(default_factory=dict, description="Private extended properties")
    all_day: bool = Field(False)

    @field_validator("summary", "description", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or ""


class CalendarEventRequest(BaseModel):
    """Event to insert into the owner's calendar"""
    summary: str = Field(..., min_length=1)
    description: str = Field("")
    start: datetime
    end: datetime
    time_zone: str = Field("UTC", description="Timezone the event is displayed in")
    attendees: List[Dict[str, str]] = Field(default_factory=list)
    private_properties: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def end_after_start(self) -> "CalendarEventRequest":
        if self.end <= self.start:
            raise ValueError("End time must be after start time")
        return self


class CreatedEvent(BaseModel):
    """Result of a successful insert"""
    event_id: str
    event_url: Optional[str] = None
