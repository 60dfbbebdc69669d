# backend/salon_scheduler/schemas/appointments.py

from datetime import date, datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field


class AppointmentCreate(BaseModel):
    salon_id: int
    service_ids: list[int] = Field(min_length=1)
    date_start: datetime
    customer_name: str = Field(min_length=1)

    staff_id: Optional[int] = None  # None → waiting list
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    status: Literal["PENDING", "CONFIRMED"] = "CONFIRMED"


class AppointmentMove(BaseModel):
    staff_id: int
    date_start: datetime


class AppointmentAssign(BaseModel):
    staff_id: int


class AppointmentDuplicate(BaseModel):
    customer_name: str = Field(min_length=1)
    customer_phone: Optional[str] = None


class AppointmentCheckIn(BaseModel):
    staff_id: Optional[int] = None


class AppointmentCancel(BaseModel):
    reason: Optional[str] = None


class AppointmentItemRead(BaseModel):
    service_id: Optional[int] = None
    service_name: str
    duration_min: int
    price: float

    model_config = {"from_attributes": True}


class AppointmentRead(BaseModel):
    id: int

    salon_id: int
    staff_id: Optional[int] = None
    customer_name: str
    customer_phone: Optional[str] = None

    date_start: datetime
    date_end: datetime
    duration_minutes: int

    status: str
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None

    check_in_date: Optional[date] = None
    queue_number: Optional[int] = None
    checked_in_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    items: list[AppointmentItemRead] = []

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CheckInResponse(BaseModel):
    appointment: AppointmentRead
    queue_number: int


class SelfCheckIn(BaseModel):
    appointment_id: int
    phone: str = Field(min_length=1)


class PhoneLookup(BaseModel):
    phone: str = Field(min_length=1)
