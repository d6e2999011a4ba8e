import logging
from collections.abc import Iterable
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.timeutils import local_now, to_wall_clock, utc_naive_now
from agenda.models.appointment import Appointment, AppointmentCreate, AppointmentStatus
from agenda.models.service import Service
from agenda.services.business_service import get_config
from agenda.services.slot_service import is_slot_available

logger = logging.getLogger(__name__)

# pending -> confirmed -> completed; pending/confirmed -> cancelled
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

ACTIVE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


class BookingError(Exception):
    """Base for booking requests the service refuses."""


class BookingNotFound(BookingError):
    pass


class BookingNotAllowed(BookingError):
    pass


class SlotUnavailable(BookingError):
    pass


class CancellationTooLate(BookingError):
    pass


class InvalidStatusTransition(BookingError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot change appointment status from {current} to {target}")
        self.current = current
        self.target = target


def can_transition(current: str, target: str) -> bool:
    try:
        return AppointmentStatus(target) in ALLOWED_TRANSITIONS[AppointmentStatus(current)]
    except ValueError:
        return False


def ensure_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidStatusTransition(current, target)


def _record_status(appointment: Appointment, status: AppointmentStatus) -> None:
    now = utc_naive_now()
    appointment.status = status.value
    # Reassign so the JSON column is flagged dirty
    appointment.status_history = [
        *(appointment.status_history or []),
        {"status": status.value, "timestamp": now.isoformat()},
    ]
    appointment.updated_at = now


async def has_overlapping_appointment(
    session: AsyncSession,
    business_id: int,
    start: datetime,
    end: datetime,
    exclude_appointment_id: int | None = None,
) -> bool:
    """Direct overlap check against every live appointment, whatever day it starts on."""
    q = select(Appointment.id).where(
        Appointment.business_id == business_id,
        Appointment.status != AppointmentStatus.CANCELLED.value,
        Appointment.start_time < end,
        Appointment.end_time > start,
    )
    if exclude_appointment_id is not None:
        q = q.where(Appointment.id != exclude_appointment_id)
    result = await session.execute(q.limit(1))
    return result.first() is not None


async def _ensure_bookable(
    session: AsyncSession,
    service: Service,
    start: datetime,
    exclude_appointment_id: int | None = None,
) -> datetime:
    """Validate ``start`` for ``service`` and return the matching end time."""
    if start < local_now():
        raise BookingNotAllowed("Appointments cannot start in the past")
    end = start + timedelta(minutes=service.duration)
    if not await is_slot_available(
        session, service.business_id, start, service.duration, exclude_appointment_id
    ):
        raise SlotUnavailable("The selected time is not available")
    if await has_overlapping_appointment(
        session, service.business_id, start, end, exclude_appointment_id
    ):
        raise SlotUnavailable("The selected time overlaps another appointment")
    return end


async def create_appointment(
    session: AsyncSession, user_id: int, data: AppointmentCreate
) -> Appointment:
    service = await session.get(Service, data.service_id)
    if not service or service.business_id != data.business_id or not service.is_active:
        raise BookingNotFound("Service not found for this business")
    config = await get_config(session, data.business_id)
    if not config.allow_online_booking:
        raise BookingNotAllowed("This business does not accept online bookings")
    if config.require_confirmation and not data.accept_cancellation_terms:
        raise BookingNotAllowed(
            f"The cancellation terms must be accepted ({config.min_cancellation_hours}h notice)"
        )
    start = to_wall_clock(data.start_time)
    end = await _ensure_bookable(session, service, start)
    appointment = Appointment(
        business_id=data.business_id,
        service_id=service.id,
        user_id=user_id,
        start_time=start,
        end_time=end,
        notes=data.notes or None,
    )
    _record_status(appointment, AppointmentStatus.PENDING)
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    logger.info(
        "Appointment %s booked: business=%s service=%s start=%s",
        appointment.id, appointment.business_id, service.id, start,
    )
    return appointment


async def get_appointment(session: AsyncSession, appointment_id: int) -> Appointment | None:
    return await session.get(Appointment, appointment_id)


def _status_filter(q, statuses: Iterable[AppointmentStatus] | None):
    if statuses:
        q = q.where(Appointment.status.in_([AppointmentStatus(s).value for s in statuses]))
    return q


async def list_appointments_for_user(
    session: AsyncSession,
    user_id: int,
    statuses: Iterable[AppointmentStatus] | None = None,
) -> list[Appointment]:
    q = select(Appointment).where(Appointment.user_id == user_id)
    result = await session.execute(_status_filter(q, statuses).order_by(Appointment.start_time))
    return list(result.scalars().all())


async def list_appointments_for_business(
    session: AsyncSession,
    business_id: int,
    statuses: Iterable[AppointmentStatus] | None = None,
) -> list[Appointment]:
    q = select(Appointment).where(Appointment.business_id == business_id)
    result = await session.execute(_status_filter(q, statuses).order_by(Appointment.start_time))
    return list(result.scalars().all())


async def change_status(
    session: AsyncSession, appointment: Appointment, target: AppointmentStatus
) -> Appointment:
    ensure_transition(appointment.status, target)
    _record_status(appointment, AppointmentStatus(target))
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    logger.info("Appointment %s is now %s", appointment.id, appointment.status)
    return appointment


async def cancel_appointment(
    session: AsyncSession, appointment: Appointment, by_owner: bool = False
) -> Appointment:
    """Customers must cancel at least ``min_cancellation_hours`` ahead; owners any time."""
    ensure_transition(appointment.status, AppointmentStatus.CANCELLED)
    if not by_owner:
        config = await get_config(session, appointment.business_id)
        deadline = appointment.start_time - timedelta(hours=config.min_cancellation_hours)
        if local_now() > deadline:
            raise CancellationTooLate(
                f"Appointments must be cancelled at least {config.min_cancellation_hours}h in advance"
            )
    return await change_status(session, appointment, AppointmentStatus.CANCELLED)


async def reschedule_appointment(
    session: AsyncSession, appointment: Appointment, new_start: datetime
) -> Appointment:
    """Move a live appointment; it goes back to pending until the business confirms again."""
    if AppointmentStatus(appointment.status) not in ACTIVE_STATUSES:
        raise InvalidStatusTransition(appointment.status, AppointmentStatus.PENDING)
    service = await session.get(Service, appointment.service_id)
    if not service:
        raise BookingNotFound("Service no longer exists")
    start = to_wall_clock(new_start)
    end = await _ensure_bookable(session, service, start, exclude_appointment_id=appointment.id)
    appointment.start_time = start
    appointment.end_time = end
    if appointment.status != AppointmentStatus.PENDING:
        _record_status(appointment, AppointmentStatus.PENDING)
    else:
        appointment.updated_at = utc_naive_now()
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    logger.info("Appointment %s rescheduled to %s", appointment.id, start)
    return appointment
