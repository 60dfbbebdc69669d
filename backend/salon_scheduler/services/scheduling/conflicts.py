# backend/salon_scheduler/services/scheduling/conflicts.py
"""
Double-booking guard.

Every write path that places a booking on a staff member's calendar
(create, move, assign, duplicate) asks ConflictGuard first, inside the
same transaction that performs the write and after the staff row lock.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Appointments, Staff
from .errors import ConflictError, ValidationError
from .intervals import overlaps
from .stores import AppointmentStore, ScheduleStore

logger = logging.getLogger(__name__)


class ConflictGuard:

    def __init__(self, db: Session):
        self.db = db
        self.appointments = AppointmentStore(db)
        self.schedules = ScheduleStore(db)

    def check_conflict(
        self,
        staff_id: int,
        proposed_start: datetime,
        proposed_end: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> Optional[Appointments]:
        """First active booking of the staff overlapping the proposal, or None."""
        if proposed_start >= proposed_end:
            raise ValidationError("Booking start must be before its end")

        candidates = self.appointments.list_active(
            staff_id,
            proposed_start,
            proposed_end,
            exclude_id=exclude_booking_id,
        )
        for booking in candidates:
            if overlaps(proposed_start, proposed_end, booking.date_start, booking.date_end):
                return booking
        return None

    def ensure_free(
        self,
        staff_id: int,
        proposed_start: datetime,
        proposed_end: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> None:
        """Raise ConflictError if the staff member is busy in the range."""
        conflict = self.check_conflict(staff_id, proposed_start, proposed_end, exclude_booking_id)
        if conflict is None:
            return

        logger.info(
            f"Conflict for staff={staff_id} "
            f"{proposed_start:%Y-%m-%d %H:%M}-{proposed_end:%H:%M}: "
            f"booking {conflict.id} ({conflict.date_start:%H:%M}-{conflict.date_end:%H:%M})"
        )
        raise ConflictError(
            "Staff already has an appointment at this time",
            conflict_id=conflict.id,
            conflict_start=conflict.date_start,
            conflict_end=conflict.date_end,
        )

    def eligible_staff(
        self,
        salon_id: int,
        proposed_start: datetime,
        proposed_end: datetime,
        exclude_staff_id: Optional[int] = None,
    ) -> list[Staff]:
        """
        Staff with a work window on the day and no overlapping booking.

        Order is stable (staff id); callers take the first entry.
        """
        target_date = proposed_start.date()
        eligible = []
        for staff in self.schedules.list_staff(salon_id):
            if staff.id == exclude_staff_id:
                continue
            if self.schedules.get_work_window(staff.id, target_date) is None:
                continue
            if self.check_conflict(staff.id, proposed_start, proposed_end) is not None:
                continue
            eligible.append(staff)
        return eligible
