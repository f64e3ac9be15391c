# ===== booking_assistant/services/schedule/schedule_service.py =====
"""Weekly schedule resolution: date overrides first, then the regular day-of-week rules"""
from datetime import date
from typing import Dict, Iterable, List, Optional
import logging

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from booking_assistant.core.exceptions import BusinessNotFound, ValidationError
from booking_assistant.models.business import Business
from booking_assistant.models.schedule import WeeklyScheduleDay, DateOverride
from booking_assistant.schemas.scheduling import SlotRule, ScheduleResolution, ScheduleSource
from booking_assistant.utils.datetime_utils import day_of_week

logger = logging.getLogger(__name__)


def parse_slot_rules(raw_rules: Optional[Iterable[dict]], active_only: bool = True) -> List[SlotRule]:
    """Validate stored rule dicts, keeping only active ones by default"""
    rules = []
    for raw in raw_rules or []:
        try:
            rule = raw if isinstance(raw, SlotRule) else SlotRule.model_validate(raw)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid slot rule {raw!r}: {e.errors()[0]['msg']}")
        if active_only and not rule.is_active:
            continue
        rules.append(rule)
    return rules


def resolve_schedule(
        days: Dict[int, WeeklyScheduleDay],
        overrides: Dict[date, DateOverride],
        target: date
) -> ScheduleResolution:
    """
    Rules in force on `target`.

    1. An override for that exact date wins outright: unavailable means no slots,
       available means its custom slots (possibly none).
    2. Otherwise the active rules of the regular day-of-week row.
    There is no further fallback.
    """
    weekday = day_of_week(target)

    override = overrides.get(target)
    if override is not None:
        if not override.is_available:
            return ScheduleResolution(
                date=target,
                day_of_week=weekday,
                source=ScheduleSource.OVERRIDE,
                slots=[],
                reason=override.reason,
            )
        return ScheduleResolution(
            date=target,
            day_of_week=weekday,
            source=ScheduleSource.OVERRIDE,
            slots=parse_slot_rules(override.custom_slots),
            reason=override.reason,
        )

    day = days.get(weekday)
    if day is None or not day.is_active:
        return ScheduleResolution(date=target, day_of_week=weekday, source=ScheduleSource.REGULAR, slots=[])

    return ScheduleResolution(
        date=target,
        day_of_week=weekday,
        source=ScheduleSource.REGULAR,
        slots=parse_slot_rules(day.slots),
    )


class BusinessSchedule:
    """Schedule rows of one business loaded for a date range"""

    def __init__(self, business: Business, days: Dict[int, WeeklyScheduleDay], overrides: Dict[date, DateOverride]):
        self.business = business
        self.days = days
        self.overrides = overrides

    def schedule_for(self, target: date) -> ScheduleResolution:
        return resolve_schedule(self.days, self.overrides, target)


class ScheduleService:
    """Read access to weekly schedules and overrides"""

    @staticmethod
    def get_business(db: Session, business_id: str) -> Business:
        business = db.query(Business).filter(
            Business.id == business_id,
            Business.is_active.is_(True)
        ).first()

        if not business:
            raise BusinessNotFound(f"Business {business_id} not found")
        return business

    @staticmethod
    def load(db: Session, business_id: str, start_date: date, end_date: date) -> BusinessSchedule:
        """Fetch the business, its weekly rows and the overrides inside [start_date, end_date]"""
        business = ScheduleService.get_business(db, business_id)
        return ScheduleService.load_for(db, business, start_date, end_date)

    @staticmethod
    def load_for(db: Session, business: Business, start_date: date, end_date: date) -> BusinessSchedule:
        """Weekly rows and overrides of an already fetched business"""
        business_id = business.id

        days = db.query(WeeklyScheduleDay).filter(
            WeeklyScheduleDay.business_id == business_id
        ).all()

        overrides = db.query(DateOverride).filter(
            DateOverride.business_id == business_id,
            DateOverride.date >= start_date,
            DateOverride.date <= end_date
        ).all()

        logger.debug(
            f"Loaded schedule for business {business_id}: {len(days)} weekly rows, "
            f"{len(overrides)} overrides between {start_date} and {end_date}"
        )

        return BusinessSchedule(
            business=business,
            days={day.day_of_week: day for day in days},
            overrides={override.date: override for override in overrides},
        )

    @staticmethod
    def schedule_for(db: Session, business_id: str, target: date) -> ScheduleResolution:
        return ScheduleService.load(db, business_id, target, target).schedule_for(target)
