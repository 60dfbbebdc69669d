# backend/salon_scheduler/services/scheduling/priority.py
"""
Staff priority rotation.

priority_order: smaller = offered the next customer first (default 999).

Manual changes
    set_priority  : absolute value, history snapshot first
    swap_priority : exchange order with the exact neighbour (order ± 1)

Daily reset (once per salon-day, guarded by daily_reset_markers)
    yesterday's paid revenue per staff, ascending → priority 1..N,
    so whoever earned least yesterday is served first today.

Orderings
    live_order    : shift board: order asc, ties by today's revenue asc
    history_order : priority view: order asc, ties by revenue in each
                    staff's persisted sort_by_revenue direction
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...database import atomic
from ...models import DailyResetMarkers, PriorityHistory, Staff, StaffPriorities
from .clock import local_now
from .config import SchedulingConfig, get_scheduling_config
from .errors import NotFoundError, ValidationError
from .intervals import day_bounds
from .stores import AppointmentStore, RevenueLedger, ScheduleStore

logger = logging.getLogger(__name__)

DIRECTION_UP = "up"
DIRECTION_DOWN = "down"
SORT_DIRECTIONS = ("ASC", "DESC")


@dataclass
class RankedStaff:
    staff_id: int
    display_name: str
    priority_order: int
    sort_by_revenue: str
    revenue: float = 0.0


def live_order(entries: Iterable, revenue_attr: str = "revenue") -> list:
    """
    Shift board ordering.

    priority_order ascending; ties by today's revenue ascending, whatever
    the stored sort_by_revenue flag says; then staff id.
    """
    return sorted(
        entries,
        key=lambda e: (e.priority_order, getattr(e, revenue_attr), e.staff_id),
    )


def history_order(entries: Iterable[RankedStaff]) -> list[RankedStaff]:
    """
    Priority view ordering.

    priority_order ascending; ties by revenue in the direction stored on
    each staff row (DESC = higher earner first).
    """
    def key(entry: RankedStaff):
        revenue = entry.revenue if entry.sort_by_revenue == "ASC" else -entry.revenue
        return (entry.priority_order, revenue, entry.staff_id)

    return sorted(entries, key=key)


class PriorityRotation:

    def __init__(self, db: Session, config: SchedulingConfig | None = None):
        self.db = db
        self.config = config or get_scheduling_config()
        self.schedules = ScheduleStore(db)
        self.appointments = AppointmentStore(db)
        self.ledger = RevenueLedger(db)

    # ── Rows ─────────────────────────────────────────────────────────────

    def get_or_create(self, staff: Staff) -> StaffPriorities:
        priority = (
            self.db.query(StaffPriorities)
            .filter(StaffPriorities.staff_id == staff.id)
            .first()
        )
        if priority:
            return priority

        priority = StaffPriorities(
            staff_id=staff.id,
            salon_id=staff.salon_id,
            priority_order=self.config.default_priority_order,
            sort_by_revenue=self.config.default_sort_by_revenue,
        )
        self.db.add(priority)
        self.db.flush()
        return priority

    def ensure_priorities(self, salon_id: int) -> dict[int, StaffPriorities]:
        """Priority row for every active staff member of the salon."""
        return {
            staff.id: self.get_or_create(staff)
            for staff in self.schedules.list_staff(salon_id)
        }

    def _snapshot(self, priority: StaffPriorities, changed_by: Optional[str]) -> None:
        self.db.add(PriorityHistory(
            staff_priority_id=priority.id,
            priority_order=priority.priority_order,
            sort_by_revenue=priority.sort_by_revenue,
            changed_by=changed_by,
        ))

    def _require_staff(self, staff_id: int) -> Staff:
        staff = self.schedules.get_staff(staff_id)
        if staff is None:
            raise NotFoundError(f"Staff {staff_id} not found")
        return staff

    # ── Manual changes ───────────────────────────────────────────────────

    def set_priority(
        self,
        staff_id: int,
        priority_order: int,
        sort_by_revenue: Optional[str] = None,
        changed_by: Optional[str] = None,
    ) -> StaffPriorities:
        if priority_order is None or priority_order < 1:
            raise ValidationError("priority_order must be a positive integer")
        if sort_by_revenue is not None and sort_by_revenue not in SORT_DIRECTIONS:
            raise ValidationError("sort_by_revenue must be ASC or DESC")

        with atomic(self.db):
            staff = self._require_staff(staff_id)
            self.appointments.lock_salon(staff.salon_id)
            priority = self.get_or_create(staff)
            self._snapshot(priority, changed_by)

            priority.priority_order = priority_order
            if sort_by_revenue is not None:
                priority.sort_by_revenue = sort_by_revenue
            priority.updated_at = local_now(staff.salon.timezone)
            self.db.flush()

        logger.info(f"Priority set: staff={staff_id} order={priority_order}")
        return priority

    def swap_priority(
        self,
        staff_id: int,
        direction: str,
        changed_by: Optional[str] = None,
    ) -> bool:
        """
        Move staff one place up or down by swapping with its neighbour.

        Returns False (no-op) when no staff holds exactly order ± 1.
        """
        if direction not in (DIRECTION_UP, DIRECTION_DOWN):
            raise ValidationError("direction must be 'up' or 'down'")

        with atomic(self.db):
            staff = self._require_staff(staff_id)
            # All priority writes of a salon serialize on the salon row
            self.appointments.lock_salon(staff.salon_id)
            priority = self.get_or_create(staff)

            target_order = priority.priority_order + (-1 if direction == DIRECTION_UP else 1)
            if target_order < 1:
                return False

            neighbour = (
                self.db.query(StaffPriorities)
                .filter(
                    StaffPriorities.salon_id == staff.salon_id,
                    StaffPriorities.priority_order == target_order,
                    StaffPriorities.staff_id != staff_id,
                )
                .order_by(StaffPriorities.staff_id)
                .first()
            )
            if neighbour is None:
                logger.info(
                    f"Priority swap skipped: staff={staff_id} has no neighbour at {target_order}"
                )
                return False

            self._snapshot(priority, changed_by)
            self._snapshot(neighbour, changed_by)

            now = local_now(staff.salon.timezone)
            neighbour.priority_order, priority.priority_order = (
                priority.priority_order,
                neighbour.priority_order,
            )
            priority.updated_at = now
            neighbour.updated_at = now
            self.db.flush()

        logger.info(
            f"Priority swapped: staff={staff_id} → {priority.priority_order}, "
            f"staff={neighbour.staff_id} → {neighbour.priority_order}"
        )
        return True

    # ── Daily reset ──────────────────────────────────────────────────────

    def run_daily_reset(self, salon_id: int, today: Optional[date] = None) -> bool:
        """
        Re-rank the salon's staff by yesterday's revenue, once per day.

        Marker check, priority writes and marker insert form one
        transaction on the locked salon row.

        Returns:
            True if the reset ran, False if it already ran today.
        """
        with atomic(self.db):
            salon = self.appointments.lock_salon(salon_id)
            if salon is None:
                raise NotFoundError(f"Salon {salon_id} not found")
            if today is None:
                today = local_now(salon.timezone).date()

            if self._has_marker(salon_id, today):
                return False

            try:
                with self.db.begin_nested():
                    self.db.add(DailyResetMarkers(salon_id=salon_id, reset_date=today))
                    self.db.flush()
            except IntegrityError:
                logger.info(f"Daily reset for salon={salon_id} on {today} already taken")
                return False

            yesterday = today - timedelta(days=1)
            start, end = day_bounds(yesterday)
            revenue = self.ledger.sums_by_staff(salon_id, start, end)

            priorities = self.ensure_priorities(salon_id)
            ranked = sorted(priorities, key=lambda sid: (revenue.get(sid, 0.0), sid))
            now = local_now(salon.timezone)
            for rank, sid in enumerate(ranked):
                priorities[sid].priority_order = rank + 1
                priorities[sid].updated_at = now
            self.db.flush()

        logger.info(
            f"Daily priority reset for salon={salon_id} on {today.isoformat()}: "
            f"order={ranked}"
        )
        return True

    def _has_marker(self, salon_id: int, day: date) -> bool:
        return (
            self.db.query(DailyResetMarkers.id)
            .filter(
                DailyResetMarkers.salon_id == salon_id,
                DailyResetMarkers.reset_date == day,
            )
            .first()
            is not None
        )

    # ── Views ────────────────────────────────────────────────────────────

    def ranked_staff(self, salon_id: int, since: datetime, until: datetime) -> list[RankedStaff]:
        """Staff with priority fields and revenue earned in [since, until)."""
        priorities = self.ensure_priorities(salon_id)
        revenue = self.ledger.sums_by_staff(salon_id, since, until)
        return [
            RankedStaff(
                staff_id=staff_id,
                display_name=priority.staff.display_name,
                priority_order=priority.priority_order,
                sort_by_revenue=priority.sort_by_revenue,
                revenue=revenue.get(staff_id, 0.0),
            )
            for staff_id, priority in priorities.items()
        ]

    def priority_view(self, salon_id: int, now: Optional[datetime] = None) -> list[RankedStaff]:
        """
        Priority list with month-to-date revenue, ordered by history_order.

        Creates default rows for staff that have none, hence committed.
        """
        with atomic(self.db):
            salon = self.schedules.get_salon(salon_id)
            if salon is None:
                raise NotFoundError(f"Salon {salon_id} not found")
            now = now or local_now(salon.timezone)
            month_start = datetime(now.year, now.month, 1)
            entries = self.ranked_staff(salon_id, month_start, now + timedelta(seconds=1))
        return history_order(entries)
