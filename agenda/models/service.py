from datetime import datetime

from sqlmodel import Field, SQLModel

from agenda.core.timeutils import utc_naive_now


class ServiceBase(SQLModel):
    name: str
    description: str = ""
    duration: int = Field(gt=0)  # minutes
    price: float = Field(default=0, ge=0)
    provider: str = ""
    is_active: bool = True


class Service(ServiceBase, table=True):
    __tablename__ = "services"
    id: int | None = Field(default=None, primary_key=True)
    business_id: int = Field(foreign_key="businesses.id", index=True)
    created_at: datetime = Field(default_factory=utc_naive_now)
    updated_at: datetime = Field(default_factory=utc_naive_now)


class ServiceCreate(ServiceBase):
    pass


class ServiceUpdate(SQLModel):
    name: str | None = None
    description: str | None = None
    duration: int | None = Field(default=None, gt=0)
    price: float | None = Field(default=None, ge=0)
    provider: str | None = None
    is_active: bool | None = None


class ServicePublic(ServiceBase):
    id: int
    business_id: int
