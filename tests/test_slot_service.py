from datetime import date, datetime, timedelta

import pytest

from agenda.services.slot_service import (
    CandidateSlot,
    DayHours,
    InvalidTimeFormat,
    business_weekday,
    compute_available_slots,
    compute_week_availability,
    filter_conflicting_slots,
    format_clock,
    generate_candidate_slots,
    normalize_weekly_hours,
    parse_clock,
    weekday_from_sunday_based,
)

MONDAY = date(2026, 10, 19)


def open_day(start: str, end: str, day_of_week: int = 0) -> DayHours:
    return DayHours(
        id=day_of_week,
        business_id=1,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        is_closed=False,
    )


def every_day(start: str, end: str) -> list[dict]:
    return [
        {"id": day + 1, "business_id": 1, "day_of_week": day, "start_time": start, "end_time": end, "is_closed": False}
        for day in range(7)
    ]


def appt(day: date, start: str, end: str, status: str = "confirmed") -> dict:
    return {
        "start_time": datetime.combine(day, datetime.strptime(start, "%H:%M").time()),
        "end_time": datetime.combine(day, datetime.strptime(end, "%H:%M").time()),
        "status": status,
    }


def labels(slots) -> list[str]:
    return [slot.label for slot in slots]


# --- normalizer ---

@pytest.mark.parametrize("count", range(8))
def test_normalize_always_yields_full_week(count):
    hours = every_day("09:00", "17:00")[:count]
    week = normalize_weekly_hours(hours, business_id=7)
    assert [d.day_of_week for d in week] == list(range(7))
    assert all(not d.is_closed for d in week[:count])
    assert all(d.is_closed for d in week[count:])


def test_missing_day_gets_placeholder_identity():
    week = normalize_weekly_hours([], business_id=42)
    assert week[3].id == "42-3"
    assert week[3].business_id == 42
    assert week[3].is_closed is True


def test_normalize_keeps_first_duplicate():
    hours = [
        {"id": 1, "day_of_week": 2, "start_time": "08:00", "end_time": "12:00", "is_closed": False},
        {"id": 2, "day_of_week": 2, "start_time": "14:00", "end_time": "20:00", "is_closed": False},
    ]
    week = normalize_weekly_hours(hours, business_id=1)
    assert week[2].id == 1
    assert week[2].start_time == "08:00"


def test_normalize_ignores_out_of_range_days():
    hours = [{"id": 9, "day_of_week": 7, "start_time": "08:00", "end_time": "12:00", "is_closed": False}]
    week = normalize_weekly_hours(hours, business_id=1)
    assert len(week) == 7
    assert all(d.is_closed for d in week)


# --- weekday mapping ---

def test_business_weekday_is_monday_based():
    for offset in range(14):
        assert business_weekday(MONDAY + timedelta(days=offset)) == offset % 7


def test_sunday_based_remap():
    assert weekday_from_sunday_based(0) == 6  # Sunday
    assert weekday_from_sunday_based(1) == 0  # Monday
    assert weekday_from_sunday_based(6) == 5  # Saturday


# --- clock parsing ---

@pytest.mark.parametrize(
    "value, minutes",
    [("09:00", 540), ("9:30", 570), ("17.45", 1065), ("08:15:00", 495), ("24:00", 1440), ("00:00", 0)],
)
def test_parse_clock(value, minutes):
    assert parse_clock(value) == minutes


@pytest.mark.parametrize("value", ["", "nine", "25:00", "10:60", "10-30", None, "24:30"])
def test_parse_clock_rejects_malformed(value):
    with pytest.raises(InvalidTimeFormat):
        parse_clock(value)


def test_format_clock_wraps_past_midnight():
    assert format_clock(570) == "09:30"
    assert format_clock(1440 + 30) == "00:30"


# --- generator ---

def test_nine_to_five_with_one_hour_service():
    slots = labels(generate_candidate_slots(open_day("09:00", "17:00"), 60))
    expected = [format_clock(m) for m in range(9 * 60, 16 * 60 + 1, 30)]
    assert slots == expected
    assert slots[0] == "09:00" and slots[-1] == "16:00"
    assert all(parse_clock(s) + 60 <= 17 * 60 for s in slots)


def test_dot_separator_is_accepted():
    assert labels(generate_candidate_slots(open_day("09.00", "11.00"), 60)) == ["09:00", "09:30", "10:00"]


def test_cross_midnight_schedule():
    slots = list(generate_candidate_slots(open_day("22:00", "02:00"), 60))
    assert "23:30" in labels(slots)
    assert labels(slots) == ["22:00", "22:30", "23:00", "23:30", "00:00", "00:30", "01:00"]
    assert all(slot.offset + 60 <= 26 * 60 for slot in slots)
    assert not any(slot.offset >= 26 * 60 for slot in slots)


def test_equal_open_and_close_means_open_all_day():
    slots = labels(generate_candidate_slots(open_day("08:00", "08:00"), 30))
    assert len(slots) == 48
    assert slots[0] == "08:00" and slots[-1] == "07:30"


def test_duration_equal_to_open_interval_yields_one_slot():
    assert labels(generate_candidate_slots(open_day("10:00", "12:00"), 120)) == ["10:00"]


def test_duration_longer_than_open_interval_yields_nothing():
    assert list(generate_candidate_slots(open_day("10:00", "11:00"), 90)) == []


@pytest.mark.parametrize("duration", [None, 0, -15])
def test_missing_duration_yields_nothing(duration):
    assert list(generate_candidate_slots(open_day("09:00", "17:00"), duration)) == []


def test_closed_or_missing_day_yields_nothing():
    closed = DayHours(id=1, business_id=1, day_of_week=0, start_time="09:00", end_time="17:00", is_closed=True)
    assert list(generate_candidate_slots(closed, 30)) == []
    assert list(generate_candidate_slots(None, 30)) == []


def test_malformed_hours_raise_before_iteration():
    with pytest.raises(InvalidTimeFormat):
        generate_candidate_slots(open_day("9h", "17:00"), 30)


def test_generator_is_lazy_and_restartable():
    day = open_day("09:00", "10:00")
    first = generate_candidate_slots(day, 30)
    assert next(first).label == "09:00"
    assert labels(generate_candidate_slots(day, 30)) == ["09:00", "09:30"]


# --- conflict filter ---

def test_conflicts_use_half_open_intervals():
    slots = [CandidateSlot(9 * 60), CandidateSlot(10 * 60), CandidateSlot(11 * 60)]
    kept = filter_conflicting_slots(slots, 60, MONDAY, [appt(MONDAY, "10:00", "11:00")])
    assert labels(kept) == ["09:00", "11:00"]


def test_partial_overlap_is_a_conflict():
    slots = [CandidateSlot(9 * 60 + 30), CandidateSlot(10 * 60 + 30)]
    kept = filter_conflicting_slots(slots, 60, MONDAY, [appt(MONDAY, "10:00", "11:00")])
    assert kept == []


def test_cancelled_appointment_blocks_nothing():
    slots = list(generate_candidate_slots(open_day("09:00", "17:00"), 60))
    kept = filter_conflicting_slots(slots, 60, MONDAY, [appt(MONDAY, "10:00", "11:00", "cancelled")])
    assert kept == slots


def test_appointments_on_other_dates_are_ignored():
    slots = [CandidateSlot(10 * 60)]
    tuesday = MONDAY + timedelta(days=1)
    assert filter_conflicting_slots(slots, 60, MONDAY, [appt(tuesday, "10:00", "11:00")]) == slots


def test_iso_string_timestamps_are_accepted():
    existing = {"start_time": "2026-10-19T10:00:00", "end_time": "2026-10-19T11:00:00", "status": "pending"}
    kept = filter_conflicting_slots([CandidateSlot(600), CandidateSlot(660)], 60, MONDAY, [existing])
    assert labels(kept) == ["11:00"]


def test_unparseable_appointment_timestamp_raises():
    broken = {"start_time": "yesterday", "end_time": "2026-10-19T11:00:00", "status": "pending"}
    with pytest.raises(ValueError):
        filter_conflicting_slots([CandidateSlot(600)], 60, MONDAY, [broken])


# --- pipeline ---

def test_pipeline_scenario():
    hours = every_day("09:00", "17:00")
    appointments = [appt(MONDAY, "10:00", "11:00"), appt(MONDAY, "13:00", "14:00", "cancelled")]
    slots = compute_available_slots(hours, appointments, MONDAY, 60, business_id=1)
    assert "09:00" in slots
    assert "10:00" not in slots and "09:30" not in slots and "10:30" not in slots
    assert "11:00" in slots
    assert "13:00" in slots


def test_pipeline_uses_business_weekday():
    sunday_only = [{"id": 1, "day_of_week": 6, "start_time": "10:00", "end_time": "12:00", "is_closed": False}]
    sunday = MONDAY + timedelta(days=6)
    assert compute_available_slots(sunday_only, [], sunday, 60) == ["10:00", "10:30", "11:00"]
    assert compute_available_slots(sunday_only, [], MONDAY, 60) == []


def test_pipeline_is_idempotent_and_order_independent():
    hours = every_day("09:00", "17:00")
    appointments = [
        appt(MONDAY, "15:00", "16:00"),
        appt(MONDAY, "09:00", "09:30"),
        appt(MONDAY, "12:00", "12:30", "pending"),
    ]
    first = compute_available_slots(hours, appointments, MONDAY, 30)
    second = compute_available_slots(hours, appointments, MONDAY, 30)
    reordered = compute_available_slots(hours, list(reversed(appointments)), MONDAY, 30)
    assert first == second == reordered
    assert first == sorted(first)


def test_pipeline_without_duration_is_empty():
    assert compute_available_slots(every_day("09:00", "17:00"), [], MONDAY, None) == []


def test_week_view_isolates_malformed_day():
    hours = every_day("09:00", "11:00")
    hours[2]["start_time"] = "nine"
    week = compute_week_availability(hours, [], MONDAY, 60, days=7, business_id=1)
    assert [d.day for d in week] == [MONDAY + timedelta(days=i) for i in range(7)]
    assert week[2].slots == [] and "nine" in week[2].diagnostic
    for i in (0, 1, 3, 4, 5, 6):
        assert week[i].labels == ["09:00", "09:30", "10:00"]
        assert week[i].diagnostic is None
