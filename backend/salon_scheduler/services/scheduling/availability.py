# backend/salon_scheduler/services/scheduling/availability.py
"""
Bookable start times for a staff member.

Takes into account:
- Requested services (summed duration, staff-specific overrides)
- Effective work window: date-specific → weekly → salon hours → 09:00-18:00
- Break window
- Existing non-cancelled bookings of the staff member
- Current salon-local time (no starts in the past)

Candidates are enumerated across the whole day at the grid step, then
filtered. Every overlap test uses intervals.overlaps().
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from .clock import local_now
from .config import (
    MINUTES_PER_DAY,
    SchedulingConfig,
    get_scheduling_config,
    minutes_to_time_str,
    time_str_to_minutes,
)
from .conflicts import ConflictGuard
from .errors import ValidationError
from .intervals import combine_minutes, contains, overlaps
from .stores import AppointmentStore, ScheduleStore, WorkWindow

logger = logging.getLogger(__name__)

REASON_AVAILABLE = "AVAILABLE"
REASON_ALL_BOOKED = "ALL_BOOKED"
REASON_NO_STAFF = "NO_STAFF"

EXCLUDED_PAST = "past"
EXCLUDED_BREAK = "break"
EXCLUDED_BOOKED = "booked"


@dataclass
class Slot:
    time: str  # "HH:MM", salon-local
    start: datetime
    available: bool = True
    reason: Optional[str] = None  # past | break | booked


@dataclass
class SlotResult:
    staff_id: int
    date: date
    duration_minutes: int
    window: Optional[WorkWindow]
    slots: list[Slot] = field(default_factory=list)
    reason: str = REASON_AVAILABLE

    @property
    def times(self) -> list[str]:
        return [slot.time for slot in self.slots if slot.available]


class AvailabilityResolver:
    """Computes candidate slots and slot-level staff availability."""

    def __init__(self, db: Session, config: SchedulingConfig | None = None):
        self.db = db
        self.config = config or get_scheduling_config()
        self.schedules = ScheduleStore(db)
        self.appointments = AppointmentStore(db)
        self.guard = ConflictGuard(db)

    # ── Durations and windows ────────────────────────────────────────────

    def require_services(self, service_ids: Iterable[int]) -> list:
        """Requested services in order; ValidationError if any is unknown."""
        ids = list(dict.fromkeys(service_ids))
        if not ids:
            raise ValidationError("No services selected")

        services = self.schedules.get_services(ids)
        if len(services) != len(ids):
            found = {s.id for s in services}
            missing = [i for i in ids if i not in found]
            raise ValidationError(f"Some services not found: {missing}")
        return services

    def total_duration(self, staff_id: int, service_ids: Iterable[int]) -> int:
        """Sum of effective durations of all requested services."""
        services = self.require_services(service_ids)
        return sum(self.schedules.service_duration(staff_id, s) for s in services)

    def effective_window(self, staff_id: int, salon_id: int, target_date: date) -> WorkWindow:
        """
        Work window for the day. Never None.

        Falls back to salon hours, then to the configured default window.
        The last fallback is a configuration gap and is logged.
        """
        window = self.schedules.get_work_window(staff_id, target_date)
        if window:
            return window

        window = self.schedules.get_salon_default_hours(salon_id, target_date.weekday())
        if window:
            return window

        logger.warning(
            f"Configuration gap: no schedule for staff={staff_id} and no salon hours "
            f"for salon={salon_id} on {target_date.isoformat()}; "
            f"using {self.config.fallback_open}-{self.config.fallback_close}"
        )
        return WorkWindow.from_strings(
            self.config.fallback_open,
            self.config.fallback_close,
            source="default",
        )

    # ── Slots ────────────────────────────────────────────────────────────

    def resolve_slots(
        self,
        staff_id: int,
        service_ids: Iterable[int],
        target_date: date,
        granularity_minutes: int | None = None,
        include_details: bool = False,
        now: datetime | None = None,
    ) -> SlotResult:
        """
        Available start times for staff + services on target_date.

        Returns:
            SlotResult. `slots` holds available starts only, or every
            in-window candidate with a reason when include_details is set.
            `reason` is ALL_BOOKED when nothing is bookable and NO_STAFF when
            the staff member does not exist or is inactive.
        """
        step = granularity_minutes or self.config.slot_step_minutes
        if step <= 0 or MINUTES_PER_DAY % step:
            raise ValidationError(f"Granularity must divide a day, got {step}")
        if target_date is None:
            raise ValidationError("date is required")

        service_ids = list(service_ids or [])
        if not service_ids:
            raise ValidationError("No services selected")

        staff = self.schedules.get_staff(staff_id)
        if staff is None:
            return SlotResult(
                staff_id=staff_id,
                date=target_date,
                duration_minutes=0,
                window=None,
                reason=REASON_NO_STAFF,
            )

        duration = self.total_duration(staff_id, service_ids)
        window = self.effective_window(staff_id, staff.salon_id, target_date)

        if now is None:
            now = local_now(staff.salon.timezone if staff.salon else None)

        bookings = self.appointments.list_active_for_day(staff_id, target_date)

        slots: list[Slot] = []
        for start_min in range(0, MINUTES_PER_DAY, step):
            end_min = start_min + duration
            if not contains(window.start_minute, window.end_minute, start_min, end_min):
                continue

            slot_start = combine_minutes(target_date, start_min)
            slot_end = slot_start + timedelta(minutes=duration)
            slot = Slot(time=minutes_to_time_str(start_min), start=slot_start)

            if slot_start < now:
                slot.available, slot.reason = False, EXCLUDED_PAST
            elif window.has_break and overlaps(
                start_min, end_min, window.break_start_minute, window.break_end_minute
            ):
                slot.available, slot.reason = False, EXCLUDED_BREAK
            elif any(overlaps(slot_start, slot_end, b.date_start, b.date_end) for b in bookings):
                slot.available, slot.reason = False, EXCLUDED_BOOKED

            if slot.available or include_details:
                slots.append(slot)

        has_available = any(slot.available for slot in slots)
        return SlotResult(
            staff_id=staff_id,
            date=target_date,
            duration_minutes=duration,
            window=window,
            slots=slots,
            reason=REASON_AVAILABLE if has_available else REASON_ALL_BOOKED,
        )

    # ── Staff for one fixed slot ─────────────────────────────────────────

    def available_staff(
        self,
        salon_id: int,
        service_ids: Iterable[int],
        target_date: date,
        time_str: str,
    ) -> list[int]:
        """
        Staff able to take [time, time + duration) on target_date.

        Only staff with their own schedule for the day qualify; salon hours
        and the default window are not used here.
        """
        service_ids = list(service_ids or [])
        if not service_ids:
            raise ValidationError("No services selected")
        try:
            start_min = time_str_to_minutes(time_str)
        except (AttributeError, ValueError):
            raise ValidationError(f"Time must be in HH:MM format, got {time_str!r}")

        if self.schedules.get_salon(salon_id) is None:
            raise ValidationError(f"Salon {salon_id} not found")
        services = self.require_services(service_ids)

        result = []
        for staff in self._staff_by_priority(salon_id):
            window = self.schedules.get_work_window(staff.id, target_date)
            if window is None:
                continue

            duration = sum(self.schedules.service_duration(staff.id, s) for s in services)
            end_min = start_min + duration
            if not contains(window.start_minute, window.end_minute, start_min, end_min):
                continue
            if window.has_break and overlaps(
                start_min, end_min, window.break_start_minute, window.break_end_minute
            ):
                continue

            start = combine_minutes(target_date, start_min)
            end = start + timedelta(minutes=duration)
            if self.guard.check_conflict(staff.id, start, end) is not None:
                continue

            result.append(staff.id)

        return result

    def _staff_by_priority(self, salon_id: int) -> list:
        default = self.config.default_priority_order
        staff = self.schedules.list_staff(salon_id)
        return sorted(
            staff,
            key=lambda s: (s.priority.priority_order if s.priority else default, s.id),
        )
