from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.api.deps import get_business_or_404, get_current_user, get_owned_business
from agenda.core.db import get_session
from agenda.models.business import Business
from agenda.models.service import Service, ServiceCreate, ServicePublic, ServiceUpdate
from agenda.models.user import User
from agenda.services import catalog_service

router = APIRouter(tags=["services"])


def _to_public(service: Service) -> ServicePublic:
    return ServicePublic.model_validate(service.model_dump())


async def _owned_service(
    service_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> Service:
    service = await catalog_service.get_service(session, service_id)
    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    business = await session.get(Business, service.business_id)
    if not business or business.owner_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the business owner can do this",
        )
    return service


@router.get("/businesses/{business_id}/services", response_model=list[ServicePublic])
async def list_services(
    include_inactive: bool = Query(False),
    business: Business = Depends(get_business_or_404),
    session: AsyncSession = Depends(get_session),
) -> list[ServicePublic]:
    services = await catalog_service.list_services(session, business.id, include_inactive)
    return [_to_public(s) for s in services]


@router.post(
    "/businesses/{business_id}/services",
    response_model=ServicePublic,
    status_code=status.HTTP_201_CREATED,
)
async def create_service(
    body: ServiceCreate,
    business: Business = Depends(get_owned_business),
    session: AsyncSession = Depends(get_session),
) -> ServicePublic:
    service = await catalog_service.create_service(session, business.id, body)
    return _to_public(service)


@router.get("/services/{service_id}", response_model=ServicePublic)
async def get_service(service_id: int, session: AsyncSession = Depends(get_session)) -> ServicePublic:
    service = await catalog_service.get_service(session, service_id)
    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    return _to_public(service)


@router.patch("/services/{service_id}", response_model=ServicePublic)
async def update_service(
    body: ServiceUpdate,
    service: Service = Depends(_owned_service),
    session: AsyncSession = Depends(get_session),
) -> ServicePublic:
    service = await catalog_service.update_service(session, service, body)
    return _to_public(service)


@router.delete("/services/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service(
    service: Service = Depends(_owned_service),
    session: AsyncSession = Depends(get_session),
) -> None:
    if not await catalog_service.delete_service(session, service):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Service has appointments; deactivate it instead",
        )
