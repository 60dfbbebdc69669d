# backend/salon_scheduler/services/scheduling/booking.py
"""
Booking write paths.

Every operation is one transaction:
    lock (staff row / appointment row) → validate → ConflictGuard /
    QueueSequencer → write → commit
and emits its event only after the commit succeeded.

Status machine:

    PENDING ──┐
              ├─ check-in ─→ CHECKED_IN ─┐
    CONFIRMED ┘                          ├─ start ─→ IN_PROGRESS ─ complete ─→ COMPLETED
    CONFIRMED ───────────────────────────┘
    any non-final ─ cancel ─→ CANCELLED
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...database import atomic
from ...models import AppointmentServices, AppointmentStatus, Appointments
from ..events import EventEmitter, emit_event
from .availability import AvailabilityResolver
from .clock import local_now, to_local_naive
from .config import SchedulingConfig, get_scheduling_config
from .conflicts import ConflictGuard
from .errors import (
    InvalidStatusError,
    NoStaffAvailableError,
    NotFoundError,
    PhoneMismatchError,
    ValidationError,
)
from .intervals import day_bounds
from .queue import QueueSequencer
from .stores import AppointmentStore, RevenueLedger, ScheduleStore

logger = logging.getLogger(__name__)

S = AppointmentStatus

ALLOWED_FROM = {
    "check in": (S.PENDING, S.CONFIRMED),
    "start": (S.CONFIRMED, S.CHECKED_IN),
    "complete": (S.IN_PROGRESS,),
    "cancel": (S.PENDING, S.CONFIRMED, S.CHECKED_IN, S.IN_PROGRESS),
    "move": (S.PENDING, S.CONFIRMED, S.CHECKED_IN),
    "assign": (S.PENDING, S.CONFIRMED, S.CHECKED_IN),
    "duplicate": (S.PENDING, S.CONFIRMED, S.CHECKED_IN, S.IN_PROGRESS, S.COMPLETED),
}


def same_phone(stored: Optional[str], given: Optional[str]) -> bool:
    if not stored or not given:
        return False
    return stored.strip() == given.strip()


def ensure_status(appointment: Appointments, action: str) -> None:
    if appointment.status not in ALLOWED_FROM[action]:
        raise InvalidStatusError(action, appointment.status)


class BookingWorkflow:
    """Create / move / assign / duplicate / check-in / start / complete / cancel."""

    def __init__(
        self,
        db: Session,
        config: SchedulingConfig | None = None,
        events: EventEmitter | None = None,
    ):
        self.db = db
        self.config = config or get_scheduling_config()
        self.emit = events or emit_event
        self.schedules = ScheduleStore(db)
        self.appointments = AppointmentStore(db)
        self.ledger = RevenueLedger(db)
        self.guard = ConflictGuard(db)
        self.queue = QueueSequencer(db)
        self.resolver = AvailabilityResolver(db, self.config)

    # ── Helpers ──────────────────────────────────────────────────────────

    def _now(self, salon_id: int, now: Optional[datetime]) -> datetime:
        if now is not None:
            return now
        salon = self.schedules.get_salon(salon_id)
        return local_now(salon.timezone if salon else None)

    def _load(self, appointment_id: int) -> Appointments:
        appointment = self.appointments.get(appointment_id, lock=True)
        if appointment is None:
            raise NotFoundError(f"Appointment {appointment_id} not found")
        return appointment

    def _lock_staff(self, staff_id: int, salon_id: int):
        staff = self.appointments.lock_staff(staff_id)
        if staff is None or not staff.is_active:
            raise NotFoundError(f"Staff {staff_id} not found")
        if staff.salon_id != salon_id:
            raise ValidationError(f"Staff {staff_id} does not belong to salon {salon_id}")
        return staff

    def _service_items(self, staff_id: Optional[int], service_ids: list[int]) -> list[AppointmentServices]:
        services = self.schedules.get_services(service_ids)
        if len(services) != len(service_ids):
            found = {s.id for s in services}
            raise ValidationError(
                f"Some services not found: {[i for i in service_ids if i not in found]}"
            )
        return [
            AppointmentServices(
                service_id=service.id,
                service_name=service.name,
                duration_min=(
                    self.schedules.service_duration(staff_id, service)
                    if staff_id is not None
                    else service.duration_min
                ),
                price=service.price or 0.0,
            )
            for service in services
        ]

    def _lock_first_free(self, candidates: list, start: datetime, end: datetime):
        """
        First candidate still free once its row is locked.

        Candidates come from an unlocked read, so each one is checked again
        under its staff lock.
        """
        for candidate in candidates:
            self.appointments.lock_staff(candidate.id)
            if self.guard.check_conflict(candidate.id, start, end) is None:
                return candidate
        return None

    def _duration_for_staff(self, appointment: Appointments, staff_id: int) -> int:
        service_ids = [item.service_id for item in appointment.items if item.service_id]
        if not service_ids:
            return appointment.duration_minutes
        return self.resolver.total_duration(staff_id, service_ids)

    # ── Create ───────────────────────────────────────────────────────────

    def create_booking(
        self,
        salon_id: int,
        service_ids: Iterable[int],
        date_start: datetime,
        customer_name: str,
        staff_id: Optional[int] = None,
        customer_phone: Optional[str] = None,
        notes: Optional[str] = None,
        status: str = S.CONFIRMED,
        now: Optional[datetime] = None,
    ) -> Appointments:
        """
        Create a booking. Without staff_id it lands on the waiting list as
        PENDING and is assigned later.

        Raises:
            ValidationError, NotFoundError, ConflictError
        """
        service_ids = list(dict.fromkeys(service_ids or []))
        if not service_ids:
            raise ValidationError("At least one service is required")
        if date_start is None:
            raise ValidationError("date_start is required")
        if not customer_name or not customer_name.strip():
            raise ValidationError("customer_name is required")
        if status not in (S.PENDING, S.CONFIRMED):
            raise ValidationError("New bookings must be PENDING or CONFIRMED")
        if staff_id is None:
            status = S.PENDING

        with atomic(self.db):
            salon = self.schedules.get_salon(salon_id)
            if salon is None:
                raise NotFoundError(f"Salon {salon_id} not found")
            date_start = to_local_naive(date_start, salon.timezone)

            if staff_id is not None:
                self._lock_staff(staff_id, salon_id)

            items = self._service_items(staff_id, service_ids)
            duration = sum(item.duration_min for item in items)
            date_end = date_start + timedelta(minutes=duration)

            if staff_id is not None:
                self.guard.ensure_free(staff_id, date_start, date_end)

            current = self._now(salon_id, now)
            appointment = Appointments(
                salon_id=salon_id,
                staff_id=staff_id,
                customer_name=customer_name.strip(),
                customer_phone=customer_phone,
                notes=notes,
                date_start=date_start,
                date_end=date_end,
                duration_minutes=duration,
                status=status,
                created_at=current,
                updated_at=current,
            )
            appointment.items = items
            self.appointments.add(appointment)

        logger.info(
            f"Booking created: id={appointment.id} salon={salon_id} staff={staff_id} "
            f"{date_start:%Y-%m-%d %H:%M}-{date_end:%H:%M} status={status}"
        )
        self.emit("booking_created", {"booking_id": appointment.id, "salon_id": salon_id})
        return appointment

    # ── Move / assign ────────────────────────────────────────────────────

    def move_booking(
        self,
        appointment_id: int,
        new_staff_id: int,
        new_start: datetime,
        now: Optional[datetime] = None,
    ) -> Appointments:
        """
        Move a booking to another staff member and/or start time.

        Duration is recomputed for the target staff. On ConflictError the
        transaction rolls back and the booking is left untouched.
        """
        if new_staff_id is None or new_start is None:
            raise ValidationError("new_staff_id and new_start are required")

        with atomic(self.db):
            appointment = self._load(appointment_id)
            ensure_status(appointment, "move")
            self._lock_staff(new_staff_id, appointment.salon_id)
            new_start = to_local_naive(new_start, appointment.salon.timezone)

            duration = self._duration_for_staff(appointment, new_staff_id)
            new_end = new_start + timedelta(minutes=duration)
            self.guard.ensure_free(new_staff_id, new_start, new_end, exclude_booking_id=appointment.id)

            appointment.staff_id = new_staff_id
            appointment.date_start = new_start
            appointment.date_end = new_end
            appointment.duration_minutes = duration
            if appointment.status == S.PENDING:
                appointment.status = S.CONFIRMED
            self.appointments.touch(appointment, self._now(appointment.salon_id, now))

        logger.info(
            f"Booking moved: id={appointment_id} → staff={new_staff_id} "
            f"{new_start:%Y-%m-%d %H:%M}-{new_end:%H:%M}"
        )
        self.emit("booking_moved", {"booking_id": appointment_id, "staff_id": new_staff_id})
        return appointment

    def assign_staff(
        self,
        appointment_id: int,
        staff_id: int,
        now: Optional[datetime] = None,
    ) -> Appointments:
        """Put a booking (typically from the waiting list) on a staff member, same time."""
        if staff_id is None:
            raise ValidationError("staff_id is required")

        with atomic(self.db):
            appointment = self._load(appointment_id)
            ensure_status(appointment, "assign")
            self._lock_staff(staff_id, appointment.salon_id)
            self.guard.ensure_free(
                staff_id,
                appointment.date_start,
                appointment.date_end,
                exclude_booking_id=appointment.id,
            )

            appointment.staff_id = staff_id
            if appointment.status == S.PENDING:
                appointment.status = S.CONFIRMED
            self.appointments.touch(appointment, self._now(appointment.salon_id, now))

        logger.info(f"Booking assigned: id={appointment_id} → staff={staff_id}")
        self.emit("booking_assigned", {"booking_id": appointment_id, "staff_id": staff_id})
        return appointment

    # ── Duplicate ────────────────────────────────────────────────────────

    def duplicate_booking(
        self,
        source_id: int,
        customer_name: str,
        customer_phone: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Appointments:
        """
        Same services and time for another customer, on the first other
        staff member who works that day and is free.

        Raises:
            NoStaffAvailableError when nobody qualifies (not retried)
        """
        if not customer_name or not customer_name.strip():
            raise ValidationError("customer_name is required")

        with atomic(self.db):
            source = self._load(source_id)
            ensure_status(source, "duplicate")
            if not source.items:
                raise ValidationError("Source booking has no services")

            candidates = self.guard.eligible_staff(
                source.salon_id,
                source.date_start,
                source.date_end,
                exclude_staff_id=source.staff_id,
            )
            staff = self._lock_first_free(candidates, source.date_start, source.date_end)
            if staff is None:
                raise NoStaffAvailableError(
                    "No other staff member is free at this time. "
                    "Please choose another time or staff member."
                )

            current = self._now(source.salon_id, now)
            duplicate = Appointments(
                salon_id=source.salon_id,
                staff_id=staff.id,
                customer_name=customer_name.strip(),
                customer_phone=customer_phone,
                notes=source.notes,
                date_start=source.date_start,
                date_end=source.date_end,
                duration_minutes=source.duration_minutes,
                status=S.CONFIRMED,
                created_at=current,
                updated_at=current,
            )
            duplicate.items = [
                AppointmentServices(
                    service_id=item.service_id,
                    service_name=item.service_name,
                    duration_min=item.duration_min,
                    price=item.price,
                )
                for item in source.items
            ]
            self.appointments.add(duplicate)

        logger.info(f"Booking duplicated: source={source_id} → id={duplicate.id} staff={staff.id}")
        self.emit("booking_created", {"booking_id": duplicate.id, "salon_id": duplicate.salon_id})
        return duplicate

    # ── Status transitions ───────────────────────────────────────────────

    def check_in(
        self,
        appointment_id: int,
        staff_id: Optional[int] = None,
        now: Optional[datetime] = None,
        customer_phone: Optional[str] = None,
    ) -> tuple[Appointments, int]:
        """
        CHECKED_IN + queue number for the salon's local day.

        An optional staff_id reassigns the booking in the same transaction.
        With customer_phone the booking's phone must match before anything
        else is checked or a number is taken.
        """
        with atomic(self.db):
            appointment = self._load(appointment_id)
            if customer_phone is not None and not same_phone(
                appointment.customer_phone, customer_phone
            ):
                raise PhoneMismatchError("Phone number does not match the appointment")
            ensure_status(appointment, "check in")

            if staff_id is not None and staff_id != appointment.staff_id:
                self._lock_staff(staff_id, appointment.salon_id)
                self.guard.ensure_free(
                    staff_id,
                    appointment.date_start,
                    appointment.date_end,
                    exclude_booking_id=appointment.id,
                )
                appointment.staff_id = staff_id

            current = self._now(appointment.salon_id, now)
            number = self.queue.next_queue_number(appointment.salon_id, current.date())

            appointment.status = S.CHECKED_IN
            appointment.checked_in_at = current
            appointment.check_in_date = current.date()
            appointment.queue_number = number
            self.appointments.touch(appointment, current)

        logger.info(f"Checked in: booking={appointment_id} queue_number={number}")
        self.emit("booking_checked_in", {
            "booking_id": appointment_id,
            "salon_id": appointment.salon_id,
            "queue_number": number,
        })
        return appointment, number

    def self_check_in(
        self,
        appointment_id: int,
        phone: str,
        now: Optional[datetime] = None,
    ) -> tuple[Appointments, int]:
        """Customer check-in at the salon terminal, verified by phone."""
        if not phone or not phone.strip():
            raise ValidationError("phone is required")
        return self.check_in(appointment_id, now=now, customer_phone=phone)

    def find_by_phone(self, phone: str, now: Optional[datetime] = None) -> list[Appointments]:
        """Open bookings of a customer from today on, soonest first."""
        if not phone or not phone.strip():
            raise ValidationError("phone is required")
        today = (now or local_now()).date()
        return self.appointments.list_open_by_phone(phone.strip(), day_bounds(today)[0])

    def start_service(self, appointment_id: int, now: Optional[datetime] = None) -> Appointments:
        with atomic(self.db):
            appointment = self._load(appointment_id)
            ensure_status(appointment, "start")
            if appointment.staff_id is None:
                raise ValidationError("Assign a staff member before starting the service")
            self._start(appointment, self._now(appointment.salon_id, now))

        logger.info(f"Service started: booking={appointment_id}")
        self.emit("booking_started", {"booking_id": appointment_id})
        return appointment

    def promote_due(self, salon_id: int, now: Optional[datetime] = None) -> list[int]:
        """
        CONFIRMED bookings whose start time has come → IN_PROGRESS.

        Same write path as start_service, one transaction for the batch.
        """
        with atomic(self.db):
            current = self._now(salon_id, now)
            due = self.appointments.list_confirmed_due(salon_id, current)
            for appointment in due:
                self._start(appointment, current)
            promoted = [a.id for a in due]

        if promoted:
            logger.info(f"Auto-started {len(promoted)} booking(s) in salon={salon_id}: {promoted}")
            for appointment_id in promoted:
                self.emit("booking_started", {"booking_id": appointment_id, "auto": True})
        return promoted

    def _start(self, appointment: Appointments, current: datetime) -> None:
        appointment.status = S.IN_PROGRESS
        appointment.started_at = current
        self.appointments.touch(appointment, current)

    def complete_service(self, appointment_id: int, now: Optional[datetime] = None) -> Appointments:
        """
        IN_PROGRESS → COMPLETED and a PAID invoice over the booked items,
        which is what the revenue ledger counts.
        """
        with atomic(self.db):
            appointment = self._load(appointment_id)
            ensure_status(appointment, "complete")
            current = self._now(appointment.salon_id, now)

            appointment.status = S.COMPLETED
            appointment.completed_at = current
            self.appointments.touch(appointment, current)

            amount = sum(item.price or 0.0 for item in appointment.items)
            invoice = self.ledger.record_paid(appointment, amount, current)

        logger.info(
            f"Service completed: booking={appointment_id} invoice={invoice.id} amount={amount:.2f}"
        )
        self.emit("booking_completed", {"booking_id": appointment_id, "invoice_id": invoice.id})
        return appointment

    def cancel_booking(
        self,
        appointment_id: int,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Appointments:
        with atomic(self.db):
            appointment = self._load(appointment_id)
            ensure_status(appointment, "cancel")
            appointment.status = S.CANCELLED
            appointment.cancel_reason = reason
            self.appointments.touch(appointment, self._now(appointment.salon_id, now))

        logger.info(f"Booking cancelled: id={appointment_id} reason={reason!r}")
        self.emit("booking_cancelled", {"booking_id": appointment_id})
        return appointment
