from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.models.appointment import Appointment, AppointmentStatus
from agenda.models.review import Review, ReviewCreate


async def get_review_for_appointment(session: AsyncSession, appointment_id: int) -> Review | None:
    result = await session.execute(select(Review).where(Review.appointment_id == appointment_id))
    return result.scalar_one_or_none()


async def create_review(
    session: AsyncSession, appointment: Appointment, data: ReviewCreate
) -> Review | None:
    """Only completed appointments can be reviewed, once. Returns None otherwise."""
    if appointment.status != AppointmentStatus.COMPLETED:
        return None
    if await get_review_for_appointment(session, appointment.id):
        return None
    review = Review(
        appointment_id=appointment.id,
        business_id=appointment.business_id,
        user_id=appointment.user_id,
        rating=data.rating,
        comment=data.comment or None,
    )
    session.add(review)
    await session.flush()
    await session.refresh(review)
    return review


async def list_business_reviews(session: AsyncSession, business_id: int) -> list[Review]:
    result = await session.execute(
        select(Review)
        .where(Review.business_id == business_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
    )
    return list(result.scalars().all())


async def average_rating(session: AsyncSession, business_id: int) -> float | None:
    result = await session.execute(
        select(func.avg(Review.rating)).where(Review.business_id == business_id)
    )
    avg = result.scalar_one_or_none()
    return round(float(avg), 2) if avg is not None else None
