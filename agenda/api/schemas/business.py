from datetime import datetime

from pydantic import BaseModel, ValidationInfo, field_validator, model_validator

from agenda.models.business import Business
from agenda.models.business_config import BusinessConfigBase
from agenda.models.business_hours import BusinessHoursBase
from agenda.models.review import ReviewPublic
from agenda.services.slot_service import (
    MINUTES_PER_DAY,
    DayHours,
    InvalidTimeFormat,
    format_clock,
    parse_clock,
)


class BusinessPublic(BaseModel):
    id: int
    owner_id: int
    slug: str
    name: str
    description: str
    address: str
    phone: str
    email: str
    whatsapp: str | None = None
    instagram: str | None = None
    facebook: str | None = None
    website: str | None = None
    logo_url: str | None = None
    lat: float | None = None
    lng: float | None = None
    created_at: datetime
    updated_at: datetime
    config: BusinessConfigBase | None = None

    @classmethod
    def from_business(cls, business: Business, config: BusinessConfigBase | None = None) -> "BusinessPublic":
        return cls(**business.model_dump(), slug=business.slug, config=config)


class BusinessPage(BaseModel):
    items: list[BusinessPublic]
    total: int
    page: int
    page_size: int


class DayHoursIn(BusinessHoursBase):
    """One day of the weekly schedule as submitted by the hours editor.

    Times are stored as canonical "HH:MM". "24:00" is only valid as a
    closing time and is stored as "00:00", which reads as midnight.
    """

    @field_validator("start_time", "end_time")
    @classmethod
    def _clock(cls, value: str, info: ValidationInfo) -> str:
        try:
            minutes = parse_clock(value)
        except InvalidTimeFormat as e:
            raise ValueError(str(e)) from e
        if minutes == MINUTES_PER_DAY and info.field_name == "start_time":
            raise ValueError("24:00 can only be used as a closing time")
        return format_clock(minutes)


class WeekHoursIn(BaseModel):
    days: list[DayHoursIn]

    @model_validator(mode="after")
    def _unique_days(self) -> "WeekHoursIn":
        seen = [d.day_of_week for d in self.days]
        if len(seen) != len(set(seen)):
            raise ValueError("Each day of the week may appear only once")
        return self


class DayHoursPublic(BaseModel):
    id: int | str
    business_id: int | str | None
    day_of_week: int
    start_time: str
    end_time: str
    is_closed: bool

    @classmethod
    def from_day(cls, day: DayHours) -> "DayHoursPublic":
        return cls(**day.__dict__)


class BusinessReviews(BaseModel):
    average_rating: float | None
    count: int
    reviews: list[ReviewPublic]
