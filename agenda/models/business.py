import re
from datetime import datetime

from sqlmodel import Field, SQLModel

from agenda.core.timeutils import utc_naive_now

_SPACES = re.compile(r"\s+")
_NON_SLUG = re.compile(r"[^\w\-]+")


def slugify(name: str) -> str:
    """URL-friendly slug derived from the business name."""
    return _NON_SLUG.sub("", _SPACES.sub("-", name.lower()))


class BusinessBase(SQLModel):
    name: str = Field(index=True)
    description: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    whatsapp: str | None = None
    instagram: str | None = None
    facebook: str | None = None
    website: str | None = None
    logo_url: str | None = None
    lat: float | None = None
    lng: float | None = None


class Business(BusinessBase, table=True):
    __tablename__ = "businesses"
    id: int | None = Field(default=None, primary_key=True)
    owner_id: int = Field(foreign_key="users.id", unique=True, index=True)  # one business per owner
    created_at: datetime = Field(default_factory=utc_naive_now)
    updated_at: datetime = Field(default_factory=utc_naive_now)

    @property
    def slug(self) -> str:
        return slugify(self.name)


class BusinessCreate(BusinessBase):
    pass


class BusinessUpdate(SQLModel):
    name: str | None = None
    description: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    whatsapp: str | None = None
    instagram: str | None = None
    facebook: str | None = None
    website: str | None = None
    logo_url: str | None = None
    lat: float | None = None
    lng: float | None = None
