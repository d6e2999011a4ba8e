from sqlmodel import Field, SQLModel


class BusinessHoursBase(SQLModel):
    day_of_week: int = Field(ge=0, le=6)  # 0=Monday .. 6=Sunday
    start_time: str = "09:00"  # local wall-clock "HH:MM"
    end_time: str = "17:00"
    is_closed: bool = False


class BusinessHours(BusinessHoursBase, table=True):
    __tablename__ = "business_hours"
    id: int | None = Field(default=None, primary_key=True)
    business_id: int = Field(foreign_key="businesses.id", index=True)
