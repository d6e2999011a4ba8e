from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.timeutils import utc_naive_now
from agenda.models.appointment import Appointment
from agenda.models.service import Service, ServiceCreate, ServiceUpdate


async def list_services(
    session: AsyncSession, business_id: int, include_inactive: bool = False
) -> list[Service]:
    q = select(Service).where(Service.business_id == business_id)
    if not include_inactive:
        q = q.where(Service.is_active == True)  # noqa: E712
    result = await session.execute(q.order_by(Service.name, Service.id))
    return list(result.scalars().all())


async def get_service(session: AsyncSession, service_id: int) -> Service | None:
    return await session.get(Service, service_id)


async def create_service(session: AsyncSession, business_id: int, data: ServiceCreate) -> Service:
    service = Service(business_id=business_id, **data.model_dump())
    session.add(service)
    await session.flush()
    await session.refresh(service)
    return service


async def update_service(session: AsyncSession, service: Service, data: ServiceUpdate) -> Service:
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(service, key, value)
    service.updated_at = utc_naive_now()
    session.add(service)
    await session.flush()
    await session.refresh(service)
    return service


async def delete_service(session: AsyncSession, service: Service) -> bool:
    """Returns False when appointments still reference the service; deactivate it instead."""
    booked = await session.execute(
        select(Appointment.id).where(Appointment.service_id == service.id).limit(1)
    )
    if booked.first() is not None:
        return False
    await session.delete(service)
    await session.flush()
    return True
