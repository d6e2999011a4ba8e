from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.api.deps import get_business_or_404, get_current_user, get_owned_business
from agenda.api.schemas.business import (
    BusinessPage,
    BusinessPublic,
    BusinessReviews,
    DayHoursPublic,
    WeekHoursIn,
)
from agenda.core.db import get_session
from agenda.models.business import Business, BusinessCreate, BusinessUpdate
from agenda.models.business_config import BusinessConfigBase
from agenda.models.review import ReviewPublic
from agenda.models.user import User, UserPublic
from agenda.services import business_service, review_service, stats_service
from agenda.services.auth_service import user_to_public
from agenda.services.stats_service import BusinessStats

router = APIRouter(prefix="/businesses", tags=["businesses"])


async def _public(session: AsyncSession, business: Business) -> BusinessPublic:
    config = await business_service.get_config(session, business.id)
    return BusinessPublic.from_business(business, config)


@router.get("", response_model=BusinessPage)
async def search_businesses(
    q: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(12, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
) -> BusinessPage:
    businesses, total = await business_service.search_businesses(session, q, page, page_size)
    return BusinessPage(
        items=[BusinessPublic.from_business(b) for b in businesses],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=BusinessPublic, status_code=status.HTTP_201_CREATED)
async def create_business(
    body: BusinessCreate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> BusinessPublic:
    business = await business_service.create_business(session, current_user.id, body)
    if not business:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You already have a registered business",
        )
    return await _public(session, business)


@router.get("/mine", response_model=BusinessPublic)
async def my_business(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> BusinessPublic:
    business = await business_service.get_business_for_owner(session, current_user.id)
    if not business:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="You have no business yet")
    return await _public(session, business)


@router.get("/slug/{slug}", response_model=BusinessPublic)
async def business_by_slug(slug: str, session: AsyncSession = Depends(get_session)) -> BusinessPublic:
    business = await business_service.get_business_by_slug(session, slug)
    if not business:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")
    return await _public(session, business)


@router.get("/{business_id}", response_model=BusinessPublic)
async def get_business(
    business: Business = Depends(get_business_or_404),
    session: AsyncSession = Depends(get_session),
) -> BusinessPublic:
    return await _public(session, business)


@router.patch("/{business_id}", response_model=BusinessPublic)
async def update_business(
    body: BusinessUpdate,
    business: Business = Depends(get_owned_business),
    session: AsyncSession = Depends(get_session),
) -> BusinessPublic:
    business = await business_service.update_business(session, business, body)
    return await _public(session, business)


# --- Hours ---

@router.get("/{business_id}/hours", response_model=list[DayHoursPublic])
async def get_hours(
    business: Business = Depends(get_business_or_404),
    session: AsyncSession = Depends(get_session),
) -> list[DayHoursPublic]:
    week = await business_service.get_week(session, business.id)
    return [DayHoursPublic.from_day(day) for day in week]


@router.put("/{business_id}/hours", response_model=list[DayHoursPublic])
async def set_hours(
    body: WeekHoursIn,
    business: Business = Depends(get_owned_business),
    session: AsyncSession = Depends(get_session),
) -> list[DayHoursPublic]:
    week = await business_service.replace_week(session, business.id, body.days)
    return [DayHoursPublic.from_day(day) for day in week]


# --- Config ---

@router.get("/{business_id}/config", response_model=BusinessConfigBase)
async def get_config(
    business: Business = Depends(get_business_or_404),
    session: AsyncSession = Depends(get_session),
) -> BusinessConfigBase:
    return await business_service.get_config(session, business.id)


@router.put("/{business_id}/config", response_model=BusinessConfigBase)
async def set_config(
    body: BusinessConfigBase,
    business: Business = Depends(get_owned_business),
    session: AsyncSession = Depends(get_session),
) -> BusinessConfigBase:
    return await business_service.save_config(session, business.id, body)


# --- Owner dashboard ---

@router.get("/{business_id}/clients", response_model=list[UserPublic])
async def list_clients(
    business: Business = Depends(get_owned_business),
    session: AsyncSession = Depends(get_session),
) -> list[UserPublic]:
    clients = await business_service.list_clients(session, business.id)
    return [user_to_public(u) for u in clients]


@router.get("/{business_id}/stats", response_model=BusinessStats)
async def business_stats(
    business: Business = Depends(get_owned_business),
    session: AsyncSession = Depends(get_session),
) -> BusinessStats:
    return await stats_service.get_business_stats(session, business.id)


# --- Reviews ---

@router.get("/{business_id}/reviews", response_model=BusinessReviews)
async def list_reviews(
    business: Business = Depends(get_business_or_404),
    session: AsyncSession = Depends(get_session),
) -> BusinessReviews:
    reviews = await review_service.list_business_reviews(session, business.id)
    return BusinessReviews(
        average_rating=await review_service.average_rating(session, business.id),
        count=len(reviews),
        reviews=[ReviewPublic.model_validate(r.model_dump()) for r in reviews],
    )
