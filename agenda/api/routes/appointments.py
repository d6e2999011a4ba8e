import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.api.deps import get_current_user, get_owned_business
from agenda.api.schemas.appointment import RescheduleRequest, StatusUpdateRequest
from agenda.core.db import get_session
from agenda.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentStatus,
)
from agenda.models.business import Business
from agenda.models.review import ReviewCreate, ReviewPublic
from agenda.models.service import Service
from agenda.models.user import User
from agenda.services import appointment_service, review_service
from agenda.services.appointment_service import (
    BookingError,
    BookingNotAllowed,
    BookingNotFound,
    CancellationTooLate,
    InvalidStatusTransition,
    SlotUnavailable,
)
from agenda.services.business_service import get_config
from agenda.services.email_service import (
    send_booking_confirmation_email,
    send_new_booking_notice_email,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])

_ERROR_STATUS: dict[type[BookingError], int] = {
    BookingNotFound: status.HTTP_404_NOT_FOUND,
    BookingNotAllowed: status.HTTP_400_BAD_REQUEST,
    SlotUnavailable: status.HTTP_409_CONFLICT,
    CancellationTooLate: status.HTTP_409_CONFLICT,
    InvalidStatusTransition: status.HTTP_409_CONFLICT,
}


def _http_error(exc: BookingError) -> HTTPException:
    return HTTPException(
        status_code=_ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST),
        detail=str(exc),
    )


def _to_public(a: Appointment) -> AppointmentPublic:
    return AppointmentPublic.model_validate(a.model_dump())


async def _visible_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> Appointment:
    """Appointment readable by its customer or the owner of its business."""
    appointment = await appointment_service.get_appointment(session, appointment_id)
    if appointment:
        if appointment.user_id == current_user.id:
            return appointment
        business = await session.get(Business, appointment.business_id)
        if business and business.owner_id == current_user.id:
            return appointment
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")


async def _is_owner(session: AsyncSession, appointment: Appointment, user: User) -> bool:
    business = await session.get(Business, appointment.business_id)
    return business is not None and business.owner_id == user.id


@router.post("", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: AppointmentCreate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentPublic:
    try:
        appointment = await appointment_service.create_appointment(session, current_user.id, body)
    except BookingError as e:
        raise _http_error(e) from e

    config = await get_config(session, appointment.business_id)
    if config.notify_email:
        business = await session.get(Business, appointment.business_id)
        service = await session.get(Service, appointment.service_id)
        background_tasks.add_task(
            send_booking_confirmation_email,
            to_email=current_user.email,
            recipient_name=current_user.full_name,
            business_name=business.name,
            service_name=service.name,
            start=appointment.start_time,
            end=appointment.end_time,
            notes=appointment.notes,
        )
        if business.email:
            background_tasks.add_task(
                send_new_booking_notice_email,
                business_email=business.email,
                business_name=business.name,
                customer_name=current_user.full_name,
                customer_email=current_user.email,
                service_name=service.name,
                start=appointment.start_time,
                end=appointment.end_time,
                notes=appointment.notes,
            )
    return _to_public(appointment)


@router.get("", response_model=list[AppointmentPublic])
async def list_my_appointments(
    status_filter: list[AppointmentStatus] | None = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> list[AppointmentPublic]:
    appointments = await appointment_service.list_appointments_for_user(
        session, current_user.id, status_filter
    )
    return [_to_public(a) for a in appointments]


@router.get("/business/{business_id}", response_model=list[AppointmentPublic])
async def list_business_appointments(
    status_filter: list[AppointmentStatus] | None = Query(None, alias="status"),
    business: Business = Depends(get_owned_business),
    session: AsyncSession = Depends(get_session),
) -> list[AppointmentPublic]:
    appointments = await appointment_service.list_appointments_for_business(
        session, business.id, status_filter
    )
    return [_to_public(a) for a in appointments]


@router.get("/{appointment_id}", response_model=AppointmentPublic)
async def get_appointment(appointment: Appointment = Depends(_visible_appointment)) -> AppointmentPublic:
    return _to_public(appointment)


@router.patch("/{appointment_id}/status", response_model=AppointmentPublic)
async def update_status(
    body: StatusUpdateRequest,
    appointment: Appointment = Depends(_visible_appointment),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentPublic:
    """Business owner moves the appointment through its lifecycle."""
    if not await _is_owner(session, appointment, current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the business owner can change the status",
        )
    try:
        appointment = await appointment_service.change_status(session, appointment, body.status)
    except BookingError as e:
        raise _http_error(e) from e
    return _to_public(appointment)


@router.post("/{appointment_id}/cancel", response_model=AppointmentPublic)
async def cancel_appointment(
    appointment: Appointment = Depends(_visible_appointment),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentPublic:
    by_owner = await _is_owner(session, appointment, current_user)
    try:
        appointment = await appointment_service.cancel_appointment(session, appointment, by_owner=by_owner)
    except BookingError as e:
        raise _http_error(e) from e
    return _to_public(appointment)


@router.post("/{appointment_id}/reschedule", response_model=AppointmentPublic)
async def reschedule_appointment(
    body: RescheduleRequest,
    appointment: Appointment = Depends(_visible_appointment),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentPublic:
    if appointment.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the customer can reschedule this appointment",
        )
    try:
        appointment = await appointment_service.reschedule_appointment(session, appointment, body.start_time)
    except BookingError as e:
        raise _http_error(e) from e
    return _to_public(appointment)


@router.post(
    "/{appointment_id}/review",
    response_model=ReviewPublic,
    status_code=status.HTTP_201_CREATED,
)
async def review_appointment(
    body: ReviewCreate,
    appointment: Appointment = Depends(_visible_appointment),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> ReviewPublic:
    if appointment.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the customer can review this appointment",
        )
    review = await review_service.create_review(session, appointment, body)
    if not review:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Only completed appointments can be reviewed, once",
        )
    return ReviewPublic.model_validate(review.model_dump())
