from datetime import datetime

from sqlmodel import Field, SQLModel

from agenda.core.timeutils import utc_naive_now


class UserBase(SQLModel):
    email: str = Field(unique=True, index=True)
    full_name: str | None = None
    phone: str | None = None


class User(UserBase, table=True):
    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
    hashed_password: str
    created_at: datetime = Field(default_factory=utc_naive_now)


class UserCreate(SQLModel):
    email: str
    password: str
    full_name: str | None = None
    phone: str | None = None


class UserUpdate(SQLModel):
    full_name: str | None = None
    phone: str | None = None


class UserPublic(SQLModel):
    id: int
    email: str
    full_name: str | None = None
    phone: str | None = None
