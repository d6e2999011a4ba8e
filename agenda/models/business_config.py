from datetime import datetime

from sqlmodel import Field, SQLModel

from agenda.core.timeutils import utc_naive_now


class BusinessConfigBase(SQLModel):
    """Booking policy and public-page visibility of a business.

    Defaults apply when a business has never saved its configuration.
    """

    allow_online_booking: bool = True
    show_prices: bool = True
    show_phone: bool = True
    show_email: bool = False
    show_social_links: bool = True
    show_address: bool = True
    require_confirmation: bool = False
    min_cancellation_hours: int = Field(default=48, ge=0)
    notify_email: bool = True
    notify_whatsapp: bool = False


class BusinessConfig(BusinessConfigBase, table=True):
    __tablename__ = "business_configs"
    business_id: int = Field(foreign_key="businesses.id", primary_key=True)
    updated_at: datetime = Field(default_factory=utc_naive_now)
