# backend/salon_scheduler/schemas/availability.py
"""
Pydantic schemas for availability API.
"""

from datetime import date
from typing import Optional
from pydantic import BaseModel, Field


class WorkWindowRead(BaseModel):
    """Effective work window of the day."""
    start: str  # "HH:MM"
    end: str
    break_start: Optional[str] = None
    break_end: Optional[str] = None
    source: str = Field(description="date | weekly | salon | default")


class SlotRead(BaseModel):
    time: str  # "HH:MM"
    available: bool = True
    reason: Optional[str] = None  # past | break | booked

    model_config = {"from_attributes": True}


class AvailabilityResponse(BaseModel):
    """Bookable start times for one staff member on one day."""
    staff_id: int
    date: date
    duration_minutes: int
    granularity_minutes: int
    reason: str = Field(description="AVAILABLE | ALL_BOOKED | NO_STAFF")
    window: Optional[WorkWindowRead] = None
    slots: list[SlotRead]
    times: list[str]


class AvailableStaffResponse(BaseModel):
    """Staff able to take a fixed time, best priority first."""
    salon_id: int
    date: date
    time: str
    staff_ids: list[int]
