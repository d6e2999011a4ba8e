"""Bookable slot computation.

Slots are derived in three stages that operate on in-memory data only:

1. ``normalize_weekly_hours`` expands the stored hours into a full 0..6 week.
2. ``generate_candidate_slots`` walks the open interval of one day.
3. ``filter_conflicting_slots`` drops candidates overlapping live appointments.

``compute_available_slots`` chains them for one date. The async helpers at the
bottom load hours and appointments from the database and degrade to an empty
result (with a diagnostic) when the data is missing or malformed.
"""

import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.config import settings
from agenda.core.timeutils import to_wall_clock
from agenda.models.appointment import Appointment, AppointmentStatus
from agenda.models.business_hours import BusinessHours

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
DAYS_PER_WEEK = 7
DEFAULT_STEP_MINUTES = 30

# Placeholder times for days the business never configured
CLOSED_DAY_START = "09:00"
CLOSED_DAY_END = "17:00"

_CLOCK_RE = re.compile(r"^\s*(\d{1,2})[:.](\d{2})(?::\d{2}(?:\.\d+)?)?\s*$")


class InvalidTimeFormat(ValueError):
    """An hours record holds a clock time that cannot be parsed."""


@dataclass(frozen=True)
class DayHours:
    id: int | str
    business_id: int | str | None
    day_of_week: int
    start_time: str
    end_time: str
    is_closed: bool


@dataclass(frozen=True)
class CandidateSlot:
    # Minutes after the target date's midnight; >= 1440 once past midnight
    offset: int

    @property
    def label(self) -> str:
        return format_clock(self.offset)

    def starts_at(self, day: date) -> datetime:
        return datetime.combine(day, time()) + timedelta(minutes=self.offset)

    def bounds(self, day: date, duration: int) -> tuple[datetime, datetime]:
        start = self.starts_at(day)
        return start, start + timedelta(minutes=duration)

    def __str__(self) -> str:
        return self.label


@dataclass
class DayAvailability:
    day: date
    slots: list[CandidateSlot] = field(default_factory=list)
    diagnostic: str | None = None

    @property
    def labels(self) -> list[str]:
        return [slot.label for slot in self.slots]


def _field(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, Mapping):
        return record.get(name, default)
    return getattr(record, name, default)


# --- Day-of-week mapping ---

def weekday_from_sunday_based(native_weekday: int) -> int:
    """Map 0=Sunday..6=Saturday onto the stored 0=Monday..6=Sunday convention."""
    return (native_weekday + 6) % DAYS_PER_WEEK


def business_weekday(d: date) -> int:
    """Day index used by business hours for ``d`` (Monday=0 .. Sunday=6)."""
    return weekday_from_sunday_based(d.isoweekday() % DAYS_PER_WEEK)


# --- Clock parsing ---

def parse_clock(value: str | time) -> int:
    """Minutes since midnight for "HH:MM", "HH.MM" or "HH:MM:SS"."""
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if not isinstance(value, str):
        raise InvalidTimeFormat(f"Expected a clock time string, got {type(value).__name__}")
    match = _CLOCK_RE.match(value)
    if not match:
        raise InvalidTimeFormat(f"Unparseable clock time {value!r}")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 24 or minutes > 59 or (hours == 24 and minutes):
        raise InvalidTimeFormat(f"Clock time out of range {value!r}")
    return hours * 60 + minutes


def format_clock(minutes: int) -> str:
    hours, mins = divmod(minutes % MINUTES_PER_DAY, 60)
    return f"{hours:02d}:{mins:02d}"


# --- Stage 1: schedule normalizer ---

def closed_day(business_id: int | str | None, day_of_week: int) -> DayHours:
    return DayHours(
        id=f"{business_id}-{day_of_week}",
        business_id=business_id,
        day_of_week=day_of_week,
        start_time=CLOSED_DAY_START,
        end_time=CLOSED_DAY_END,
        is_closed=True,
    )


def normalize_weekly_hours(
    hours: Iterable[Any], business_id: int | str | None = None
) -> list[DayHours]:
    """Exactly seven entries in day order; unconfigured days come back closed.

    When a day index appears more than once the first record wins. Records
    with a day index outside 0..6 are ignored.
    """
    by_day: dict[int, DayHours] = {}
    for record in hours or ():
        try:
            day = int(_field(record, "day_of_week"))
        except (TypeError, ValueError):
            continue
        if not 0 <= day < DAYS_PER_WEEK or day in by_day:
            continue
        owner = _field(record, "business_id", business_id)
        record_id = _field(record, "id")
        by_day[day] = DayHours(
            id=record_id if record_id is not None else f"{owner}-{day}",
            business_id=owner,
            day_of_week=day,
            start_time=_field(record, "start_time", CLOSED_DAY_START),
            end_time=_field(record, "end_time", CLOSED_DAY_END),
            is_closed=bool(_field(record, "is_closed", False)),
        )
    return [by_day.get(day) or closed_day(business_id, day) for day in range(DAYS_PER_WEEK)]


# --- Stage 2: slot generator ---

def open_interval(day_hours: DayHours | None) -> tuple[int, int] | None:
    """(open, close) in minutes, or None when closed.

    A closing time at or before the opening time is read as closing after
    midnight, so the close gets 1440 added. Equal times therefore mean open
    for 24 hours, never "closed"; a closed day must set ``is_closed``.
    """
    if day_hours is None or day_hours.is_closed:
        return None
    start = parse_clock(day_hours.start_time)
    end = parse_clock(day_hours.end_time)
    if end <= start:
        end += MINUTES_PER_DAY
    return start, end


def _walk(start: int, end: int, duration: int, step: int) -> Iterator[CandidateSlot]:
    offset = start
    while offset + duration <= end:
        yield CandidateSlot(offset)
        offset += step


def generate_candidate_slots(
    day_hours: DayHours | None,
    duration: int | None,
    step: int = DEFAULT_STEP_MINUTES,
) -> Iterator[CandidateSlot]:
    """Lazy walk over start times of ``day_hours`` that fit ``duration``.

    The hours are parsed eagerly so a malformed record raises here rather
    than halfway through iteration.
    """
    if step <= 0:
        raise ValueError("step must be a positive number of minutes")
    if not duration or duration <= 0:
        return iter(())
    interval = open_interval(day_hours)
    if interval is None:
        return iter(())
    return _walk(interval[0], interval[1], duration, step)


# --- Stage 3: conflict filter ---

def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return to_wall_clock(value)
    if isinstance(value, str):
        try:
            return to_wall_clock(datetime.fromisoformat(value))
        except ValueError as e:
            raise ValueError(f"Unparseable appointment timestamp {value!r}") from e
    raise ValueError(f"Expected an appointment timestamp, got {type(value).__name__}")


def busy_intervals(appointments: Iterable[Any], day: date) -> list[tuple[datetime, datetime]]:
    """Intervals of appointments that block slots on ``day``."""
    busy = []
    for appt in appointments or ():
        if _field(appt, "status") == AppointmentStatus.CANCELLED:
            continue
        start = _as_datetime(_field(appt, "start_time"))
        if start.date() != day:
            continue
        busy.append((start, _as_datetime(_field(appt, "end_time"))))
    return busy


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open overlap; touching endpoints do not count."""
    return a_start < b_end and a_end > b_start


def filter_conflicting_slots(
    slots: Iterable[CandidateSlot],
    duration: int,
    day: date,
    appointments: Iterable[Any],
) -> list[CandidateSlot]:
    busy = busy_intervals(appointments, day)
    survivors = []
    for slot in slots:
        start, end = slot.bounds(day, duration)
        if any(overlaps(start, end, busy_start, busy_end) for busy_start, busy_end in busy):
            continue
        survivors.append(slot)
    return survivors


# --- Pipeline ---

def find_open_slots(
    hours: Iterable[Any],
    appointments: Iterable[Any],
    day: date,
    duration: int | None,
    business_id: int | str | None = None,
    step: int = DEFAULT_STEP_MINUTES,
) -> list[CandidateSlot]:
    if not duration or duration <= 0:
        return []
    week = normalize_weekly_hours(hours, business_id)
    candidates = generate_candidate_slots(week[business_weekday(day)], duration, step)
    return filter_conflicting_slots(candidates, duration, day, appointments)


def compute_available_slots(
    hours: Iterable[Any],
    appointments: Iterable[Any],
    day: date,
    duration: int | None,
    business_id: int | str | None = None,
    step: int = DEFAULT_STEP_MINUTES,
) -> list[str]:
    """Bookable "HH:MM" start times for ``day``, ascending."""
    return [
        slot.label
        for slot in find_open_slots(hours, appointments, day, duration, business_id, step)
    ]


def compute_week_availability(
    hours: Iterable[Any],
    appointments: Iterable[Any],
    start_day: date,
    duration: int | None,
    days: int = DAYS_PER_WEEK,
    business_id: int | str | None = None,
    step: int = DEFAULT_STEP_MINUTES,
) -> list[DayAvailability]:
    """Availability for consecutive days; a malformed day only empties itself."""
    hours = list(hours or ())
    appointments = list(appointments or ())
    week: list[DayAvailability] = []
    for i in range(days):
        day = start_day + timedelta(days=i)
        try:
            slots = find_open_slots(hours, appointments, day, duration, business_id, step)
        except InvalidTimeFormat as e:
            logger.warning("Business %s: no slots for %s: %s", business_id, day, e)
            week.append(DayAvailability(day=day, diagnostic=str(e)))
            continue
        week.append(DayAvailability(day=day, slots=slots))
    return week


# --- Database-backed helpers ---

LOAD_FAILED = "Business hours or appointments could not be loaded"


async def load_business_hours(session: AsyncSession, business_id: int) -> list[BusinessHours]:
    result = await session.execute(
        select(BusinessHours)
        .where(BusinessHours.business_id == business_id)
        .order_by(BusinessHours.id)
    )
    return list(result.scalars().all())


async def load_appointments_between(
    session: AsyncSession,
    business_id: int,
    first_day: date,
    last_day: date,
    exclude_appointment_id: int | None = None,
) -> list[Appointment]:
    """Non-cancelled appointments starting on ``first_day`` .. ``last_day``."""
    start = datetime.combine(first_day, time())
    end = datetime.combine(last_day + timedelta(days=1), time())
    q = select(Appointment).where(
        Appointment.business_id == business_id,
        Appointment.status != AppointmentStatus.CANCELLED.value,
        Appointment.start_time >= start,
        Appointment.start_time < end,
    )
    if exclude_appointment_id is not None:
        q = q.where(Appointment.id != exclude_appointment_id)
    result = await session.execute(q.order_by(Appointment.start_time))
    return list(result.scalars().all())


async def get_week_availability(
    session: AsyncSession,
    business_id: int,
    start_day: date,
    duration: int | None,
    days: int = 1,
    exclude_appointment_id: int | None = None,
) -> list[DayAvailability]:
    """Availability for ``days`` days from ``start_day`` read from the database.

    Loading failures are logged and reported as empty days with a diagnostic.
    """
    if not duration or duration <= 0:
        return [DayAvailability(day=start_day + timedelta(days=i)) for i in range(days)]
    last_day = start_day + timedelta(days=days - 1)
    try:
        hours = await load_business_hours(session, business_id)
        appointments = await load_appointments_between(
            session, business_id, start_day, last_day, exclude_appointment_id
        )
    except SQLAlchemyError:
        logger.exception("Loading schedule for business %s failed", business_id)
        await session.rollback()
        return [
            DayAvailability(day=start_day + timedelta(days=i), diagnostic=LOAD_FAILED)
            for i in range(days)
        ]
    return compute_week_availability(
        hours,
        appointments,
        start_day,
        duration,
        days=days,
        business_id=business_id,
        step=settings.slot_step_minutes,
    )


async def get_available_slots_for_date(
    session: AsyncSession,
    business_id: int,
    day: date,
    duration: int | None,
    exclude_appointment_id: int | None = None,
) -> DayAvailability:
    week = await get_week_availability(
        session, business_id, day, duration, days=1, exclude_appointment_id=exclude_appointment_id
    )
    return week[0]


async def is_slot_available(
    session: AsyncSession,
    business_id: int,
    start: datetime,
    duration: int,
    exclude_appointment_id: int | None = None,
) -> bool:
    """True when ``start`` is one of the bookable slots.

    Starts after midnight may belong to the previous day's late schedule, so
    both that day and the start's own day are checked.
    """
    start = to_wall_clock(start)
    for day in (start.date(), start.date() - timedelta(days=1)):
        availability = await get_available_slots_for_date(
            session, business_id, day, duration, exclude_appointment_id
        )
        if any(slot.starts_at(day) == start for slot in availability.slots):
            return True
    return False
