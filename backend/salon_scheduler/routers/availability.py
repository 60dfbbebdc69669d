# backend/salon_scheduler/routers/availability.py
"""
Availability API endpoints.

GET /availability        - Bookable start times for staff + services on a day
GET /availability/staff  - Staff able to take a fixed start time
"""

from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.availability import (
    AvailabilityResponse,
    AvailableStaffResponse,
    SlotRead,
    WorkWindowRead,
)
from ..services.scheduling import AvailabilityResolver, get_scheduling_config
from ..services.scheduling.config import minutes_to_time_str


router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("", response_model=AvailabilityResponse)
def get_availability(
    staff_id: int,
    service_ids: list[int] = Query(...),
    target_date: date = Query(..., alias="date"),
    granularity: int | None = Query(None, description="Grid step in minutes (15/30/60)"),
    include_details: bool = False,
    db: Session = Depends(get_db),
):
    config = get_scheduling_config()
    result = AvailabilityResolver(db, config).resolve_slots(
        staff_id,
        service_ids,
        target_date,
        granularity_minutes=granularity,
        include_details=include_details,
    )

    window = None
    if result.window:
        w = result.window
        window = WorkWindowRead(
            start=minutes_to_time_str(w.start_minute),
            end=minutes_to_time_str(w.end_minute),
            break_start=minutes_to_time_str(w.break_start_minute) if w.has_break else None,
            break_end=minutes_to_time_str(w.break_end_minute) if w.has_break else None,
            source=w.source,
        )

    return AvailabilityResponse(
        staff_id=result.staff_id,
        date=result.date,
        duration_minutes=result.duration_minutes,
        granularity_minutes=granularity or config.slot_step_minutes,
        reason=result.reason,
        window=window,
        slots=[SlotRead.model_validate(slot) for slot in result.slots],
        times=result.times,
    )


@router.get("/staff", response_model=AvailableStaffResponse)
def get_available_staff(
    salon_id: int,
    time: str,
    service_ids: list[int] = Query(...),
    target_date: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
):
    staff_ids = AvailabilityResolver(db).available_staff(salon_id, service_ids, target_date, time)
    return AvailableStaffResponse(
        salon_id=salon_id,
        date=target_date,
        time=time,
        staff_ids=staff_ids,
    )
