# backend/salon_scheduler/routers/shift.py
"""
Shift board and staff priority endpoints.

POST /shift/priority        - Set absolute priority
POST /shift/priority/swap   - Move one place up / down
GET  /shift/priorities      - Priority view (month-to-date revenue)
POST /shift/daily-reset     - Run today's reset (no-op if it already ran)
GET  /shift/board           - Live board
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.shift import (
    BoardRead,
    DailyResetResponse,
    PrioritySet,
    PrioritySwap,
    PrioritySwapResponse,
    RankedStaffRead,
    StaffPriorityRead,
)
from ..services.events import EventEmitter, get_emitter
from ..services.scheduling import PriorityRotation, ShiftBoardAggregator
from ..services.scheduling.clock import local_today
from ..services.scheduling.stores import ScheduleStore


router = APIRouter(prefix="/shift", tags=["shift"])


@router.post("/priority", response_model=StaffPriorityRead)
def set_priority(data: PrioritySet, db: Session = Depends(get_db)):
    return PriorityRotation(db).set_priority(
        data.staff_id,
        data.priority_order,
        sort_by_revenue=data.sort_by_revenue,
        changed_by=data.changed_by,
    )


@router.post("/priority/swap", response_model=PrioritySwapResponse)
def swap_priority(data: PrioritySwap, db: Session = Depends(get_db)):
    swapped = PriorityRotation(db).swap_priority(
        data.staff_id,
        data.direction,
        changed_by=data.changed_by,
    )
    return PrioritySwapResponse(staff_id=data.staff_id, swapped=swapped)


@router.get("/priorities", response_model=list[RankedStaffRead])
def list_priorities(salon_id: int, db: Session = Depends(get_db)):
    return PriorityRotation(db).priority_view(salon_id)


@router.post("/daily-reset", response_model=DailyResetResponse)
def daily_reset(salon_id: int, db: Session = Depends(get_db)):
    salon = ScheduleStore(db).get_salon(salon_id)
    if not salon:
        raise HTTPException(status_code=404, detail="Salon not found")
    today = local_today(salon.timezone)
    ran = PriorityRotation(db).run_daily_reset(salon_id, today=today)
    return DailyResetResponse(salon_id=salon_id, date=today, ran=ran)


@router.get("/board", response_model=BoardRead)
def get_board(
    salon_id: int,
    db: Session = Depends(get_db),
    emit: EventEmitter = Depends(get_emitter),
):
    return ShiftBoardAggregator(db, events=emit).build_board(salon_id)
