from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from booking_assistant.schemas.scheduling import SlotRule
from booking_assistant.services.availability.slot_generator import (
    count_overlapping,
    find_slot,
    generate_slots,
    overlaps,
)
from booking_assistant.schemas.calendar_events import ExternalCalendarEvent

PLUS_FIVE = timezone(timedelta(hours=5))


def rule(start, end, duration, **kwargs):
    return SlotRule(start_time=start, end_time=end, duration=duration, **kwargs)


def test_window_is_tiled_into_contiguous_slots():
    slots = generate_slots([rule("09:00", "11:00", 60)], date(2025, 12, 29), PLUS_FIVE)

    assert [s.start.isoformat() for s in slots] == [
        "2025-12-29T09:00:00+05:00",
        "2025-12-29T10:00:00+05:00",
    ]
    assert [s.end.isoformat() for s in slots] == [
        "2025-12-29T10:00:00+05:00",
        "2025-12-29T11:00:00+05:00",
    ]
    assert all(s.current_bookings == 0 and s.max_bookings == 1 for s in slots)


def test_trailing_remainder_is_dropped():
    slots = generate_slots([rule("09:00", "10:45", 30)], date(2025, 12, 29), PLUS_FIVE)

    assert len(slots) == 3
    assert slots[-1].end.time().isoformat() == "10:30:00"


def test_slots_from_several_rules_are_sorted_and_carry_rule_settings():
    rules = [
        rule("14:00", "15:00", 30, max_bookings=3, slot_name="Afternoon"),
        rule("09:00", "10:00", 60),
    ]
    slots = generate_slots(rules, date(2025, 12, 29), PLUS_FIVE)

    assert [s.start.hour for s in slots] == [9, 14, 14]
    assert slots[1].max_bookings == 3
    assert slots[1].slot_name == "Afternoon"


def test_inactive_rules_produce_nothing():
    slots = generate_slots([rule("09:00", "11:00", 60, is_active=False)], date(2025, 12, 29), PLUS_FIVE)
    assert slots == []


def test_offset_follows_dst_of_each_date():
    tz = ZoneInfo("America/New_York")
    winter = generate_slots([rule("09:00", "10:00", 60)], date(2025, 1, 6), tz)
    summer = generate_slots([rule("09:00", "10:00", 60)], date(2025, 7, 7), tz)

    assert winter[0].start.utcoffset() == timedelta(hours=-5)
    assert summer[0].start.utcoffset() == timedelta(hours=-4)


def test_times_skipped_by_spring_forward_are_not_generated():
    tz = ZoneInfo("America/New_York")
    slots = generate_slots([rule("01:00", "05:00", 60)], date(2025, 3, 9), tz)
    starts = [s.start.hour for s in slots]

    assert 2 not in starts
    assert 3 in starts


def test_repeated_hour_on_fall_back_is_generated_once():
    tz = ZoneInfo("America/New_York")
    slots = generate_slots([rule("00:00", "03:00", 60)], date(2025, 11, 2), tz)

    assert [s.start.isoformat() for s in slots] == [
        "2025-11-02T00:00:00-04:00",
        "2025-11-02T01:00:00-04:00",
        "2025-11-02T02:00:00-05:00",
    ]
    assert all(a.end == b.start for a, b in zip(slots, slots[1:]))

    # 01:30 EST, the second pass through the wall-clock hour
    repeated = ExternalCalendarEvent(
        id="late",
        start=datetime(2025, 11, 2, 6, 30, tzinfo=timezone.utc),
        end=datetime(2025, 11, 2, 6, 45, tzinfo=timezone.utc),
    )
    assert [count_overlapping(s.start, s.end, [repeated]) for s in slots] == [0, 1, 0]


def test_overlap_is_half_open():
    nine = datetime(2025, 12, 29, 9, tzinfo=PLUS_FIVE)
    ten = nine + timedelta(hours=1)
    eleven = ten + timedelta(hours=1)

    assert not overlaps(nine, ten, ten, eleven)
    assert not overlaps(ten, eleven, nine, ten)
    assert overlaps(nine, eleven, ten, ten + timedelta(minutes=1))
    assert overlaps(nine, ten, nine + timedelta(minutes=59), eleven)


def test_count_overlapping_compares_instants_across_offsets():
    start = datetime(2025, 12, 29, 9, tzinfo=PLUS_FIVE)
    events = [
        # 04:30Z is 09:30+05:00
        ExternalCalendarEvent(id="a", start=datetime(2025, 12, 29, 4, 30, tzinfo=timezone.utc),
                              end=datetime(2025, 12, 29, 5, 30, tzinfo=timezone.utc)),
        ExternalCalendarEvent(id="b", start=datetime(2025, 12, 29, 5, tzinfo=timezone.utc),
                              end=datetime(2025, 12, 29, 6, tzinfo=timezone.utc)),
    ]

    assert count_overlapping(start, start + timedelta(hours=1), events) == 1


def test_find_slot_requires_exact_window():
    slots = generate_slots([rule("09:00", "11:00", 60)], date(2025, 12, 29), PLUS_FIVE)
    start = datetime(2025, 12, 29, 4, tzinfo=timezone.utc)

    assert find_slot(slots, start, start + timedelta(hours=1)) is slots[0]
    assert find_slot(slots, start, start + timedelta(minutes=30)) is None
    assert find_slot(slots, start + timedelta(minutes=15), start + timedelta(minutes=75)) is None
