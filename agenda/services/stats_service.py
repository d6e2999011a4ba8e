from collections import Counter
from collections.abc import Iterable, Mapping
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.timeutils import local_now
from agenda.models.appointment import Appointment, AppointmentStatus
from agenda.models.review import Review
from agenda.models.service import Service
from agenda.models.user import User
from agenda.services.slot_service import business_weekday

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class BusinessStats(BaseModel):
    total_appointments: int = 0
    upcoming_appointments: int = 0
    past_appointments: int = 0
    total_clients: int = 0
    total_services: int = 0
    total_revenue: float = 0
    confirmation_rate: float = 0  # percent of all appointments
    cancellation_rate: float = 0
    avg_duration: float = 0  # minutes, completed appointments
    avg_price: float = 0
    top_service_name: str | None = None
    top_service_count: int = 0
    top_client_name: str | None = None
    top_client_count: int = 0
    peak_day: str | None = None
    peak_hour: int | None = None
    new_clients: int = 0
    returning_clients: int = 0
    lifetime_value_avg: float = 0
    avg_rating: float = 0


def _most_common(counter: Counter) -> tuple[object, int] | None:
    # Counter.most_common keeps first-seen order on ties
    top = counter.most_common(1)
    return top[0] if top else None


def _percent(part: int, whole: int) -> float:
    return round(part * 100 / whole, 2) if whole else 0


def compute_business_stats(
    appointments: Iterable[Appointment],
    services: Iterable[Service],
    reviews: Iterable[Review],
    client_names: Mapping[int, str | None],
    now: datetime | None = None,
) -> BusinessStats:
    """Dashboard figures for one business.

    Revenue, average duration and average price only count completed
    appointments; rates are over every appointment regardless of status.
    """
    now = now or local_now()
    appointments = list(appointments)
    services_by_id = {s.id: s for s in services}
    ratings = [r.rating for r in reviews]

    total = len(appointments)
    completed = [a for a in appointments if a.status == AppointmentStatus.COMPLETED]
    completed_services = [services_by_id[a.service_id] for a in completed if a.service_id in services_by_id]
    revenue = round(sum(s.price for s in completed_services), 2)

    per_client = Counter(a.user_id for a in appointments)
    per_service = Counter(a.service_id for a in appointments)
    per_day = Counter(business_weekday(a.start_time.date()) for a in appointments)
    per_hour = Counter(a.start_time.hour for a in appointments)

    stats = BusinessStats(
        total_appointments=total,
        upcoming_appointments=sum(1 for a in appointments if a.start_time > now),
        past_appointments=sum(1 for a in appointments if a.start_time <= now),
        total_clients=len(per_client),
        total_services=len(services_by_id),
        total_revenue=revenue,
        confirmation_rate=_percent(
            sum(1 for a in appointments if a.status == AppointmentStatus.CONFIRMED), total
        ),
        cancellation_rate=_percent(
            sum(1 for a in appointments if a.status == AppointmentStatus.CANCELLED), total
        ),
        avg_duration=round(sum(s.duration for s in completed_services) / len(completed), 2) if completed else 0,
        avg_price=round(revenue / len(completed), 2) if completed else 0,
        new_clients=sum(1 for n in per_client.values() if n == 1),
        returning_clients=sum(1 for n in per_client.values() if n > 1),
        lifetime_value_avg=round(revenue / len(per_client), 2) if per_client else 0,
        avg_rating=round(sum(ratings) / len(ratings), 2) if ratings else 0,
    )
    if top := _most_common(per_service):
        service = services_by_id.get(top[0])
        stats.top_service_name = service.name if service else None
        stats.top_service_count = top[1]
    if top := _most_common(per_client):
        stats.top_client_name = client_names.get(top[0])
        stats.top_client_count = top[1]
    if top := _most_common(per_day):
        stats.peak_day = DAY_NAMES[top[0]]
    if top := _most_common(per_hour):
        stats.peak_hour = top[0]
    return stats


async def get_business_stats(session: AsyncSession, business_id: int) -> BusinessStats:
    appointments = (
        await session.execute(
            select(Appointment)
            .where(Appointment.business_id == business_id)
            .order_by(Appointment.start_time)
        )
    ).scalars().all()
    services = (
        await session.execute(select(Service).where(Service.business_id == business_id))
    ).scalars().all()
    reviews = (
        await session.execute(select(Review).where(Review.business_id == business_id))
    ).scalars().all()
    user_ids = {a.user_id for a in appointments}
    names: dict[int, str | None] = {}
    if user_ids:
        rows = await session.execute(select(User.id, User.full_name, User.email).where(User.id.in_(user_ids)))
        names = {uid: full_name or email for uid, full_name, email in rows.all()}
    return compute_business_stats(appointments, services, reviews, names)
