# backend/salon_scheduler/services/scheduling/stores.py
"""
Collaborator stores consumed by the scheduling engine.

ScheduleStore   : staff working windows, salon default hours, durations
AppointmentStore: bookings, with locking and atomic writes
RevenueLedger   : paid invoice totals per staff

All three wrap the caller's Session. They never commit: the operation that
uses them owns the transaction.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from ...models import (
    Appointments,
    AppointmentStatus,
    Invoices,
    SalonWorkingHours,
    Salons,
    Services,
    Staff,
    StaffSchedules,
    StaffServices,
)
from .config import time_str_to_minutes
from .intervals import day_bounds


@dataclass(frozen=True)
class WorkWindow:
    """
    Working interval of one day, minutes since local midnight.

    source: "date" | "weekly" | "salon" | "default"
    """
    start_minute: int
    end_minute: int
    break_start_minute: Optional[int] = None
    break_end_minute: Optional[int] = None
    source: str = "weekly"

    def __post_init__(self):
        if self.start_minute >= self.end_minute:
            raise ValueError(
                f"Work window start {self.start_minute} must be before end {self.end_minute}"
            )
        if self.has_break and not (
            self.start_minute <= self.break_start_minute < self.break_end_minute <= self.end_minute
        ):
            raise ValueError("Break must lie inside the work window")

    @property
    def has_break(self) -> bool:
        return self.break_start_minute is not None and self.break_end_minute is not None

    @classmethod
    def from_strings(
        cls,
        start: str,
        end: str,
        break_start: Optional[str] = None,
        break_end: Optional[str] = None,
        source: str = "weekly",
    ) -> "WorkWindow":
        has_break = bool(break_start) and bool(break_end)
        return cls(
            start_minute=time_str_to_minutes(start),
            end_minute=time_str_to_minutes(end),
            break_start_minute=time_str_to_minutes(break_start) if has_break else None,
            break_end_minute=time_str_to_minutes(break_end) if has_break else None,
            source=source,
        )


def overlap_clause(start_col, end_col, start: datetime, end: datetime):
    """
    SQL form of intervals.overlaps(): start_col < end AND start < end_col.

    Used to narrow queries; final verdicts still go through overlaps().
    """
    return and_(start_col < end, end_col > start)


# ── Schedule store ───────────────────────────────────────────────────────


class ScheduleStore:
    """Working windows and service durations."""

    def __init__(self, db: Session):
        self.db = db

    def get_salon(self, salon_id: int) -> Optional[Salons]:
        return self.db.get(Salons, salon_id)

    def get_staff(self, staff_id: int) -> Optional[Staff]:
        staff = self.db.get(Staff, staff_id)
        if staff is None or not staff.is_active:
            return None
        return staff

    def list_staff(self, salon_id: int) -> list[Staff]:
        return (
            self.db.query(Staff)
            .filter(Staff.salon_id == salon_id, Staff.is_active == 1)
            .order_by(Staff.id)
            .all()
        )

    def get_work_window(self, staff_id: int, target_date: date) -> Optional[WorkWindow]:
        """Date-specific window for the day, else the recurring weekday window."""
        specific = (
            self.db.query(StaffSchedules)
            .filter(
                StaffSchedules.staff_id == staff_id,
                StaffSchedules.schedule_date == target_date,
            )
            .order_by(StaffSchedules.id)
            .first()
        )
        if specific:
            return _window_from_schedule(specific, "date")

        weekly = (
            self.db.query(StaffSchedules)
            .filter(
                StaffSchedules.staff_id == staff_id,
                StaffSchedules.schedule_date.is_(None),
                StaffSchedules.day_of_week == target_date.weekday(),
            )
            .order_by(StaffSchedules.id)
            .first()
        )
        if weekly:
            return _window_from_schedule(weekly, "weekly")
        return None

    def get_salon_default_hours(self, salon_id: int, weekday: int) -> Optional[WorkWindow]:
        hours = (
            self.db.query(SalonWorkingHours)
            .filter(
                SalonWorkingHours.salon_id == salon_id,
                SalonWorkingHours.day_of_week == weekday,
                SalonWorkingHours.is_open == 1,
            )
            .first()
        )
        if not hours:
            return None
        return WorkWindow.from_strings(hours.start_time, hours.end_time, source="salon")

    def get_services(self, service_ids: Iterable[int]) -> list[Services]:
        ids = list(service_ids)
        rows = self.db.query(Services).filter(Services.id.in_(ids)).all()
        by_id = {row.id: row for row in rows}
        # Keep the caller's order
        return [by_id[i] for i in ids if i in by_id]

    def service_duration(self, staff_id: int, service: Services) -> int:
        """Staff-specific duration if configured, else the service default."""
        override = (
            self.db.query(StaffServices.duration_min)
            .filter(
                StaffServices.staff_id == staff_id,
                StaffServices.service_id == service.id,
            )
            .scalar()
        )
        return override if override else service.duration_min


def _window_from_schedule(row: StaffSchedules, source: str) -> WorkWindow:
    return WorkWindow.from_strings(
        row.start_time,
        row.end_time,
        row.break_start,
        row.break_end,
        source=source,
    )


# ── Appointment store ────────────────────────────────────────────────────


class AppointmentStore:
    """Bookings. Mutations are flushed, never committed."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, appointment_id: int, lock: bool = False) -> Optional[Appointments]:
        query = self.db.query(Appointments).filter(Appointments.id == appointment_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def lock_staff(self, staff_id: int) -> Optional[Staff]:
        """
        Row-lock the staff member for the rest of the transaction.

        All booking writes for one staff member serialize on this lock.
        """
        return self.db.query(Staff).filter(Staff.id == staff_id).with_for_update().first()

    def lock_salon(self, salon_id: int) -> Optional[Salons]:
        return self.db.query(Salons).filter(Salons.id == salon_id).with_for_update().first()

    def list_active(
        self,
        staff_id: int,
        range_start: datetime,
        range_end: datetime,
        exclude_id: Optional[int] = None,
    ) -> list[Appointments]:
        """Non-cancelled bookings of the staff touching [range_start, range_end)."""
        query = self.db.query(Appointments).filter(
            Appointments.staff_id == staff_id,
            Appointments.status != AppointmentStatus.CANCELLED,
            overlap_clause(Appointments.date_start, Appointments.date_end, range_start, range_end),
        )
        if exclude_id is not None:
            query = query.filter(Appointments.id != exclude_id)
        return query.order_by(Appointments.date_start, Appointments.id).all()

    def list_active_for_day(self, staff_id: int, target_date: date) -> list[Appointments]:
        start, end = day_bounds(target_date)
        return self.list_active(staff_id, start, end)

    def list_for_salon(
        self,
        salon_id: int,
        statuses: Iterable[str],
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> list[Appointments]:
        query = self.db.query(Appointments).filter(
            Appointments.salon_id == salon_id,
            Appointments.status.in_(list(statuses)),
        )
        if range_start is not None:
            query = query.filter(Appointments.date_start >= range_start)
        if range_end is not None:
            query = query.filter(Appointments.date_start < range_end)
        return query.order_by(Appointments.date_start, Appointments.id).all()

    def list_confirmed_due(self, salon_id: int, now: datetime) -> list[Appointments]:
        return (
            self.db.query(Appointments)
            .filter(
                Appointments.salon_id == salon_id,
                Appointments.status == AppointmentStatus.CONFIRMED,
                Appointments.date_start <= now,
            )
            .order_by(Appointments.date_start, Appointments.id)
            .with_for_update()
            .all()
        )

    def list_completed_between(
        self,
        salon_id: int,
        range_start: datetime,
        range_end: datetime,
    ) -> list[Appointments]:
        return (
            self.db.query(Appointments)
            .filter(
                Appointments.salon_id == salon_id,
                Appointments.status == AppointmentStatus.COMPLETED,
                Appointments.completed_at >= range_start,
                Appointments.completed_at < range_end,
            )
            .all()
        )

    def list_checked_in_queue(self, salon_id: int, local_date: date) -> list[Appointments]:
        """CHECKED_IN bookings of the day, first come first served."""
        return (
            self.db.query(Appointments)
            .filter(
                Appointments.salon_id == salon_id,
                Appointments.status == AppointmentStatus.CHECKED_IN,
                Appointments.check_in_date == local_date,
            )
            .order_by(Appointments.checked_in_at, Appointments.queue_number, Appointments.id)
            .all()
        )

    def list_open_by_phone(self, phone: str, since: datetime) -> list[Appointments]:
        """Bookings of the phone starting at or after `since`, not completed or cancelled."""
        return (
            self.db.query(Appointments)
            .filter(
                Appointments.customer_phone == phone,
                Appointments.status.not_in([AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED]),
                Appointments.date_start >= since,
            )
            .order_by(Appointments.date_start, Appointments.id)
            .all()
        )

    def add(self, appointment: Appointments) -> Appointments:
        self.db.add(appointment)
        self.db.flush()
        return appointment

    def touch(self, appointment: Appointments, now: datetime) -> None:
        appointment.updated_at = now
        self.db.flush()


# ── Revenue ledger ───────────────────────────────────────────────────────


class RevenueLedger:
    """Paid invoice totals attributed to staff via their appointments."""

    PAID = "PAID"

    def __init__(self, db: Session):
        self.db = db

    def sum_paid(self, staff_id: int, range_start: datetime, range_end: datetime) -> float:
        total = (
            self.db.query(func.coalesce(func.sum(Invoices.final_amount), 0.0))
            .select_from(Invoices)
            .join(Appointments, Invoices.appointment_id == Appointments.id)
            .filter(
                Appointments.staff_id == staff_id,
                Invoices.status == self.PAID,
                Invoices.created_at >= range_start,
                Invoices.created_at < range_end,
            )
            .scalar()
        )
        return float(total or 0.0)

    def sums_by_staff(
        self,
        salon_id: int,
        range_start: datetime,
        range_end: datetime,
    ) -> dict[int, float]:
        rows = (
            self.db.query(Appointments.staff_id, func.sum(Invoices.final_amount))
            .select_from(Invoices)
            .join(Appointments, Invoices.appointment_id == Appointments.id)
            .filter(
                Invoices.salon_id == salon_id,
                Invoices.status == self.PAID,
                Invoices.created_at >= range_start,
                Invoices.created_at < range_end,
                Appointments.staff_id.is_not(None),
            )
            .group_by(Appointments.staff_id)
            .all()
        )
        return {staff_id: float(amount or 0.0) for staff_id, amount in rows}

    def record_paid(
        self,
        appointment: Appointments,
        amount: float,
        at: datetime,
        payment_method: str = "CASH",
    ) -> Invoices:
        invoice = Invoices(
            salon_id=appointment.salon_id,
            appointment_id=appointment.id,
            final_amount=amount,
            status=self.PAID,
            payment_method=payment_method,
            created_at=at,
        )
        self.db.add(invoice)
        self.db.flush()
        return invoice
