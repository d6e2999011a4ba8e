from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.api.deps import get_business_or_404
from agenda.api.schemas.appointment import (
    AvailableSlotsResponse,
    SlotInfo,
    WeekAvailabilityResponse,
)
from agenda.core.config import settings
from agenda.core.db import get_session
from agenda.models.business import Business
from agenda.models.service import Service
from agenda.services.slot_service import DayAvailability, get_week_availability

router = APIRouter(prefix="/businesses/{business_id}/slots", tags=["slots"])


async def _service_of(session: AsyncSession, business: Business, service_id: int) -> Service:
    service = await session.get(Service, service_id)
    if not service or service.business_id != business.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    return service


def _day_response(availability: DayAvailability, service_id: int, duration: int) -> AvailableSlotsResponse:
    slots = []
    for slot in availability.slots:
        start, end = slot.bounds(availability.day, duration)
        slots.append(SlotInfo(time=slot.label, start=start, end=end))
    return AvailableSlotsResponse(
        date=availability.day,
        service_id=service_id,
        duration=duration,
        slots=slots,
        diagnostic=availability.diagnostic,
    )


@router.get("/available", response_model=AvailableSlotsResponse)
async def available_slots(
    date_param: date = Query(..., alias="date"),
    service_id: int = Query(...),
    business: Business = Depends(get_business_or_404),
    session: AsyncSession = Depends(get_session),
) -> AvailableSlotsResponse:
    """Bookable start times of the service on the given (local) date."""
    service = await _service_of(session, business, service_id)
    # A failed load rolls the session back and expires loaded rows
    business_id, duration = business.id, service.duration
    week = await get_week_availability(session, business_id, date_param, duration, days=1)
    return _day_response(week[0], service_id, duration)


@router.get("/week", response_model=WeekAvailabilityResponse)
async def week_slots(
    service_id: int = Query(...),
    start: date | None = Query(None),
    business: Business = Depends(get_business_or_404),
    session: AsyncSession = Depends(get_session),
) -> WeekAvailabilityResponse:
    """Availability for booking_window_days days starting at ``start`` (default today)."""
    service = await _service_of(session, business, service_id)
    business_id, duration = business.id, service.duration
    first_day = start or date.today()
    week = await get_week_availability(
        session, business_id, first_day, duration, days=settings.booking_window_days
    )
    return WeekAvailabilityResponse(
        service_id=service_id,
        duration=duration,
        days=[_day_response(day, service_id, duration) for day in week],
    )
