import os
from datetime import datetime, timezone
from itertools import count

from cryptography.fernet import Fernet

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CALENDAR_REFRESH_LOCK_BACKEND"] = "local"
os.environ.setdefault("CALENDAR_ENCRYPTION_KEY", Fernet.generate_key().decode())

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from booking_assistant.api.dependencies import get_availability_service, get_booking_service, get_calendar_gateway
from booking_assistant.config.database import build_engine, create_tables, get_db
from booking_assistant.main import app
from booking_assistant.models import Base, Business, CalendarIntegration, DateOverride, WeeklyScheduleDay
from booking_assistant.models.calendar_integration import IntegrationStatus
from booking_assistant.schemas.calendar_events import CalendarEventRequest, CreatedEvent, ExternalCalendarEvent
from booking_assistant.services.availability.availability_service import AvailabilityService
from booking_assistant.services.availability.slot_generator import overlaps
from booking_assistant.services.booking.booking_service import BookingService
from booking_assistant.services.calendar.calendar_gateway import CalendarGateway


class FakeCalendarGateway(CalendarGateway):
    """In-memory calendar shared by every owner"""

    def __init__(self):
        self.events = []
        self.calls = []
        self.fail_with = None
        self.read_time_zones = []
        self._ids = count(1)

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_with is not None:
            raise self.fail_with

    def add_event(self, start, end, summary="Busy", description="", private_properties=None):
        event = ExternalCalendarEvent(
            id=f"ext_{next(self._ids)}",
            start=start,
            end=end,
            summary=summary,
            description=description,
            private_properties=private_properties or {},
        )
        self.events.append(event)
        return event

    def list_events(self, db, integration, range_start, range_end, time_zone=None):
        self.read_time_zones.append(time_zone)
        self._record("list_events", range_start, range_end)
        return [e for e in self.events if overlaps(range_start, range_end, e.start, e.end)]

    def insert_event(self, db, integration, event: CalendarEventRequest):
        self._record("insert_event", event)
        created = self.add_event(
            event.start,
            event.end,
            summary=event.summary,
            description=event.description,
            private_properties=event.private_properties,
        )
        return CreatedEvent(event_id=created.id, event_url=f"https://calendar.test/{created.id}")

    def delete_event(self, db, integration, event_id):
        self._record("delete_event", event_id)
        self.events = [e for e in self.events if e.id != event_id]

    def call_names(self):
        return [call[0] for call in self.calls]


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_tables(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def gateway():
    return FakeCalendarGateway()


@pytest.fixture
def clock():
    # Saturday 2025-12-20, 10:00 UTC
    return FixedClock(datetime(2025, 12, 20, 10, 0, tzinfo=timezone.utc))


MONDAY_RULES = [{"start_time": "09:00", "end_time": "11:00", "duration": 60, "max_bookings": 1}]


@pytest.fixture
def make_business(db):
    def _make(
            name="Glow Studio",
            tz="+05:00",
            weekly=None,
            overrides=None,
            booking_settings=None,
            connected=True,
            staff_id=None
    ):
        business = Business(name=name, timezone=tz, booking_settings=booking_settings or {})
        db.add(business)
        db.flush()

        for day_of_week, rules in (weekly if weekly is not None else {1: MONDAY_RULES}).items():
            db.add(WeeklyScheduleDay(business_id=business.id, day_of_week=day_of_week, slots=rules))

        for override in overrides or []:
            db.add(DateOverride(business_id=business.id, **override))

        if connected:
            db.add(CalendarIntegration(
                business_id=business.id,
                staff_id=staff_id,
                provider="google",
                access_token_encrypted=b"access",
                refresh_token_encrypted=b"refresh",
                integration_status=IntegrationStatus.CONNECTED,
            ))

        db.commit()
        return business

    return _make


@pytest.fixture
def business(make_business):
    return make_business()


@pytest.fixture
def client(db, gateway, clock):
    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_calendar_gateway] = lambda: gateway
    app.dependency_overrides[get_availability_service] = lambda: AvailabilityService(gateway, clock=clock)
    app.dependency_overrides[get_booking_service] = lambda: BookingService(gateway, clock=clock)
    yield TestClient(app)
    app.dependency_overrides.clear()
