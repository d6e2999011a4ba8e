from agenda.models.user import User, UserCreate, UserPublic, UserUpdate
from agenda.models.refresh_token import RefreshToken
from agenda.models.business import Business, BusinessCreate, BusinessUpdate
from agenda.models.business_hours import BusinessHours
from agenda.models.business_config import BusinessConfig
from agenda.models.service import Service, ServiceCreate, ServicePublic, ServiceUpdate
from agenda.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentPublic,
    AppointmentStatus,
)
from agenda.models.review import Review, ReviewCreate, ReviewPublic

__all__ = [
    "User",
    "UserCreate",
    "UserPublic",
    "UserUpdate",
    "RefreshToken",
    "Business",
    "BusinessCreate",
    "BusinessUpdate",
    "BusinessHours",
    "BusinessConfig",
    "Service",
    "ServiceCreate",
    "ServicePublic",
    "ServiceUpdate",
    "Appointment",
    "AppointmentCreate",
    "AppointmentPublic",
    "AppointmentStatus",
    "Review",
    "ReviewCreate",
    "ReviewPublic",
]
