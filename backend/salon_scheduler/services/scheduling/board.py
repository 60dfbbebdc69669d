# backend/salon_scheduler/services/scheduling/board.py
"""
Live shift board.

build_board() runs, in order:
1. daily priority reset check (own transaction, idempotent)
2. auto-start of due CONFIRMED bookings (BookingWorkflow.promote_due)
3. per-staff projection: current / next booking, today's work and revenue
4. CHECKED_IN queue, first come first served
5. staff list sorted by live_order()

Steps 1 and 2 write; everything after is a read-only projection.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import AppointmentStatus, Appointments
from ..events import EventEmitter
from .booking import BookingWorkflow
from .clock import local_now
from .config import SchedulingConfig, get_scheduling_config
from .errors import NotFoundError
from .intervals import day_bounds
from .priority import PriorityRotation, live_order
from .stores import AppointmentStore, RevenueLedger, ScheduleStore

logger = logging.getLogger(__name__)

STAFF_BUSY = "busy"
STAFF_FREE = "free"


@dataclass
class StaffBoardEntry:
    staff_id: int
    display_name: str
    priority_order: int
    sort_by_revenue: str
    status: str = STAFF_FREE
    current: Optional[Appointments] = None
    next: Optional[Appointments] = None
    completed_today: int = 0
    revenue_today: float = 0.0
    revenue_yesterday: float = 0.0
    working_minutes: int = 0

    @property
    def revenue_diff(self) -> float:
        return self.revenue_today - self.revenue_yesterday


@dataclass
class Board:
    salon_id: int
    date: date
    generated_at: datetime
    reset_ran: bool = False
    auto_started: list[int] = field(default_factory=list)
    staff: list[StaffBoardEntry] = field(default_factory=list)
    queue: list[Appointments] = field(default_factory=list)
    waiting_list: list[Appointments] = field(default_factory=list)


def worked_minutes(bookings: list[Appointments]) -> int:
    """Σ (completed_at − started_at) over bookings with both stamps."""
    total = timedelta()
    for booking in bookings:
        if booking.started_at and booking.completed_at and booking.completed_at > booking.started_at:
            total += booking.completed_at - booking.started_at
    return int(total.total_seconds() // 60)


class ShiftBoardAggregator:

    def __init__(
        self,
        db: Session,
        config: SchedulingConfig | None = None,
        events: EventEmitter | None = None,
    ):
        self.db = db
        self.config = config or get_scheduling_config()
        self.schedules = ScheduleStore(db)
        self.appointments = AppointmentStore(db)
        self.ledger = RevenueLedger(db)
        self.rotation = PriorityRotation(db, self.config)
        self.workflow = BookingWorkflow(db, self.config, events)

    def build_board(self, salon_id: int, now: Optional[datetime] = None) -> Board:
        salon = self.schedules.get_salon(salon_id)
        if salon is None:
            raise NotFoundError(f"Salon {salon_id} not found")

        now = now or local_now(salon.timezone)
        today = now.date()

        reset_ran = self.rotation.run_daily_reset(salon_id, today=today)
        auto_started = self.workflow.promote_due(salon_id, now=now)

        day_start, day_end = day_bounds(today)
        yesterday_start, _ = day_bounds(today - timedelta(days=1))

        completed = self.appointments.list_completed_between(salon_id, day_start, day_end)
        in_progress = self.appointments.list_for_salon(salon_id, [AppointmentStatus.IN_PROGRESS])
        upcoming = self.appointments.list_for_salon(
            salon_id, [AppointmentStatus.CONFIRMED], range_start=now
        )

        entries = []
        for staff_id, priority in self.rotation.ensure_priorities(salon_id).items():
            mine_completed = [a for a in completed if a.staff_id == staff_id]
            current = next((a for a in in_progress if a.staff_id == staff_id), None)
            following = next((a for a in upcoming if a.staff_id == staff_id), None)

            entries.append(StaffBoardEntry(
                staff_id=staff_id,
                display_name=priority.staff.display_name,
                priority_order=priority.priority_order,
                sort_by_revenue=priority.sort_by_revenue,
                status=STAFF_BUSY if current else STAFF_FREE,
                current=current,
                next=following,
                completed_today=len(mine_completed),
                revenue_today=self.ledger.sum_paid(staff_id, day_start, day_end),
                revenue_yesterday=self.ledger.sum_paid(staff_id, yesterday_start, day_start),
                working_minutes=worked_minutes(mine_completed),
            ))
        # ensure_priorities may have created rows
        self.db.commit()

        waiting = [
            a for a in self.appointments.list_for_salon(
                salon_id, [AppointmentStatus.PENDING], range_start=day_start, range_end=day_end
            )
            if a.staff_id is None
        ]

        board = Board(
            salon_id=salon_id,
            date=today,
            generated_at=now,
            reset_ran=reset_ran,
            auto_started=auto_started,
            staff=live_order(entries, revenue_attr="revenue_today"),
            queue=self.appointments.list_checked_in_queue(salon_id, today),
            waiting_list=waiting,
        )
        logger.debug(
            f"Board salon={salon_id}: {len(board.staff)} staff, "
            f"{len(board.queue)} in queue, {len(board.waiting_list)} waiting"
        )
        return board
