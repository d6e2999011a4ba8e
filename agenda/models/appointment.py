from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from agenda.core.timeutils import utc_naive_now


class AppointmentStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: int | None = Field(default=None, primary_key=True)
    business_id: int = Field(foreign_key="businesses.id", index=True)
    service_id: int = Field(foreign_key="services.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    # Local wall-clock, no timezone
    start_time: datetime = Field(index=True)
    end_time: datetime
    status: str = Field(default=AppointmentStatus.PENDING.value, index=True)
    notes: str | None = None
    status_history: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utc_naive_now)
    updated_at: datetime = Field(default_factory=utc_naive_now)


class AppointmentCreate(SQLModel):
    business_id: int
    service_id: int
    start_time: datetime
    notes: str | None = None
    accept_cancellation_terms: bool = False


class StatusHistoryEntry(SQLModel):
    status: AppointmentStatus
    timestamp: datetime


class AppointmentPublic(SQLModel):
    id: int
    business_id: int
    service_id: int
    user_id: int
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    notes: str | None = None
    status_history: list[StatusHistoryEntry] = []
    created_at: datetime
    updated_at: datetime
