from datetime import datetime

from sqlmodel import Field, SQLModel

from agenda.core.timeutils import utc_naive_now


class Review(SQLModel, table=True):
    __tablename__ = "reviews"
    id: int | None = Field(default=None, primary_key=True)
    appointment_id: int = Field(foreign_key="appointments.id", unique=True)  # one review per appointment
    business_id: int = Field(foreign_key="businesses.id", index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    rating: int = Field(ge=1, le=5)
    comment: str | None = None
    created_at: datetime = Field(default_factory=utc_naive_now)


class ReviewCreate(SQLModel):
    rating: int = Field(ge=1, le=5)
    comment: str | None = None


class ReviewPublic(SQLModel):
    id: int
    appointment_id: int
    business_id: int
    user_id: int
    rating: int
    comment: str | None = None
    created_at: datetime
