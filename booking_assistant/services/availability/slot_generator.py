# ===== booking_assistant/services/availability/slot_generator.py =====
"""Tile slot rules into concrete appointment windows"""
from datetime import date, datetime, time, timezone, tzinfo
from typing import Iterable, List

from booking_assistant.schemas.calendar_events import ExternalCalendarEvent
from booking_assistant.schemas.scheduling import AppointmentSlot, SlotRule


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap: [9:00, 10:00) and [10:00, 11:00) do not overlap"""
    return a_start < b_end and a_end > b_start


def count_overlapping(start: datetime, end: datetime, events: Iterable[ExternalCalendarEvent]) -> int:
    return sum(1 for event in events if overlaps(start, end, event.start, event.end))


def _wall_clock(day: date, minutes: int, tz: tzinfo):
    """Aware datetime for minutes-after-midnight on `day`, or None if that time is skipped by DST"""
    local = datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=tz)
    round_trip = local.astimezone(timezone.utc).astimezone(tz)
    if round_trip.replace(tzinfo=None) != local.replace(tzinfo=None):
        return None
    return local


def generate_slots(rules: List[SlotRule], day: date, tz: tzinfo) -> List[AppointmentSlot]:
    """
    Windows of exactly `rule.duration` minutes, contiguous from start_time.

    A trailing remainder shorter than the duration is dropped. The UTC offset is
    taken from `tz` on `day` itself, so DST transitions are honoured per date.
    """
    slots = []

    for rule in rules:
        if not rule.is_active:
            continue

        current = rule.start_minutes
        while current + rule.duration <= rule.end_minutes:
            slot_end = current + rule.duration
            start = _wall_clock(day, current, tz)
            end = _wall_clock(day, slot_end, tz)

            if start is not None and end is not None:
                slots.append(AppointmentSlot(
                    date=day,
                    start=start,
                    end=end,
                    duration_minutes=rule.duration,
                    max_bookings=rule.max_bookings,
                    current_bookings=0,
                    slot_name=rule.slot_name,
                ))

            current = slot_end

    slots.sort(key=lambda s: s.start)
    return slots


def find_slot(slots: List[AppointmentSlot], start: datetime, end: datetime):
    """The generated slot whose window is exactly [start, end), if any"""
    for slot in slots:
        if slot.start == start and slot.end == end:
            return slot
    return None
