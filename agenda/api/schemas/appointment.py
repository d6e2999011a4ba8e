from datetime import date, datetime

from pydantic import BaseModel

from agenda.models.appointment import AppointmentStatus


class SlotInfo(BaseModel):
    time: str  # "HH:MM"
    start: datetime
    end: datetime


class AvailableSlotsResponse(BaseModel):
    date: date
    service_id: int
    duration: int
    slots: list[SlotInfo]
    diagnostic: str | None = None  # set when the day could not be computed


class WeekAvailabilityResponse(BaseModel):
    service_id: int
    duration: int
    days: list[AvailableSlotsResponse]


class StatusUpdateRequest(BaseModel):
    status: AppointmentStatus


class RescheduleRequest(BaseModel):
    start_time: datetime
