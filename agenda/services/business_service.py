from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.timeutils import utc_naive_now
from agenda.models.appointment import Appointment
from agenda.models.business import Business, BusinessCreate, BusinessUpdate, slugify
from agenda.models.business_config import BusinessConfig, BusinessConfigBase
from agenda.models.business_hours import BusinessHours, BusinessHoursBase
from agenda.models.user import User
from agenda.services.slot_service import DayHours, normalize_weekly_hours


async def get_business(session: AsyncSession, business_id: int) -> Business | None:
    return await session.get(Business, business_id)


async def get_business_for_owner(session: AsyncSession, owner_id: int) -> Business | None:
    result = await session.execute(select(Business).where(Business.owner_id == owner_id))
    return result.scalar_one_or_none()


async def get_business_by_slug(session: AsyncSession, slug: str) -> Business | None:
    """Slugs are derived from names, so every name is slugified and compared."""
    result = await session.execute(select(Business).order_by(Business.id))
    for business in result.scalars():
        if slugify(business.name) == slug:
            return business
    return None


async def search_businesses(
    session: AsyncSession, q: str | None = None, page: int = 1, page_size: int = 12
) -> tuple[list[Business], int]:
    """Page of businesses whose name or description contains ``q``, and the total."""
    filters = []
    if q:
        like = f"%{q.strip()}%"
        filters.append(or_(Business.name.ilike(like), Business.description.ilike(like)))
    total = (await session.execute(select(func.count(Business.id)).where(*filters))).scalar_one()
    result = await session.execute(
        select(Business)
        .where(*filters)
        .order_by(Business.name, Business.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total


async def create_business(
    session: AsyncSession, owner_id: int, data: BusinessCreate
) -> Business | None:
    """Returns None if the owner already has a business."""
    if await get_business_for_owner(session, owner_id):
        return None
    business = Business(owner_id=owner_id, **data.model_dump())
    session.add(business)
    await session.flush()
    await session.refresh(business)
    return business


async def update_business(
    session: AsyncSession, business: Business, data: BusinessUpdate
) -> Business:
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(business, key, value)
    business.updated_at = utc_naive_now()
    session.add(business)
    await session.flush()
    await session.refresh(business)
    return business


# --- Weekly hours ---

async def get_week(session: AsyncSession, business_id: int) -> list[DayHours]:
    result = await session.execute(
        select(BusinessHours)
        .where(BusinessHours.business_id == business_id)
        .order_by(BusinessHours.id)
    )
    return normalize_weekly_hours(result.scalars().all(), business_id)


async def replace_week(
    session: AsyncSession, business_id: int, hours: list[BusinessHoursBase]
) -> list[DayHours]:
    """Replace every stored hours row of the business with ``hours``."""
    await session.execute(delete(BusinessHours).where(BusinessHours.business_id == business_id))
    for entry in hours:
        session.add(BusinessHours(business_id=business_id, **entry.model_dump()))
    await session.flush()
    return await get_week(session, business_id)


# --- Configuration ---

async def get_config(session: AsyncSession, business_id: int) -> BusinessConfigBase:
    """Stored configuration, or the defaults when the business never saved one."""
    config = await session.get(BusinessConfig, business_id)
    if config is None:
        return BusinessConfigBase()
    return BusinessConfigBase.model_validate(config.model_dump())


async def save_config(
    session: AsyncSession, business_id: int, data: BusinessConfigBase
) -> BusinessConfigBase:
    config = await session.get(BusinessConfig, business_id)
    if config is None:
        config = BusinessConfig(business_id=business_id)
    for key, value in data.model_dump().items():
        setattr(config, key, value)
    config.updated_at = utc_naive_now()
    session.add(config)
    await session.flush()
    return BusinessConfigBase.model_validate(config.model_dump())


# --- Clients ---

async def list_clients(session: AsyncSession, business_id: int) -> list[User]:
    """Distinct customers that booked at least once with the business."""
    booked = select(Appointment.user_id).where(Appointment.business_id == business_id)
    result = await session.execute(
        select(User).where(User.id.in_(booked)).order_by(User.full_name, User.id)
    )
    return list(result.scalars().all())
