# backend/salon_scheduler/schemas/shift.py
"""
Pydantic schemas for shift board and priority API.
"""

from datetime import date, datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

from .appointments import AppointmentRead


class PrioritySet(BaseModel):
    staff_id: int
    priority_order: int = Field(ge=1)
    sort_by_revenue: Optional[Literal["ASC", "DESC"]] = None
    changed_by: Optional[str] = None


class PrioritySwap(BaseModel):
    staff_id: int
    direction: Literal["up", "down"]
    changed_by: Optional[str] = None


class PrioritySwapResponse(BaseModel):
    staff_id: int
    swapped: bool


class StaffPriorityRead(BaseModel):
    staff_id: int
    priority_order: int
    sort_by_revenue: str
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RankedStaffRead(BaseModel):
    """Priority view row; revenue is month to date."""
    staff_id: int
    display_name: str
    priority_order: int
    sort_by_revenue: str
    revenue: float

    model_config = {"from_attributes": True}


class DailyResetResponse(BaseModel):
    salon_id: int
    date: date
    ran: bool


class StaffBoardRead(BaseModel):
    staff_id: int
    display_name: str
    priority_order: int
    sort_by_revenue: str
    status: str  # busy | free
    current: Optional[AppointmentRead] = None
    next: Optional[AppointmentRead] = None
    completed_today: int
    revenue_today: float
    revenue_yesterday: float
    revenue_diff: float
    working_minutes: int

    model_config = {"from_attributes": True}


class BoardRead(BaseModel):
    salon_id: int
    date: date
    generated_at: datetime
    reset_ran: bool
    auto_started: list[int]
    staff: list[StaffBoardRead]
    queue: list[AppointmentRead]
    waiting_list: list[AppointmentRead]

    model_config = {"from_attributes": True}
