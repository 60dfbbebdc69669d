# backend/salon_scheduler/services/scheduling/errors.py
"""
Scheduling error taxonomy.

Persistence errors (timeouts, lock contention) are never wrapped here;
they propagate from SQLAlchemy as-is.
"""

from datetime import datetime
from typing import Optional


class SchedulingError(Exception):
    """Base class for engine decisions the caller must surface."""

    code = "scheduling_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class ValidationError(SchedulingError):
    """Malformed input, rejected before any store access."""

    code = "validation_error"


class NotFoundError(SchedulingError):
    code = "not_found"


class ConflictError(SchedulingError):
    """Proposed interval overlaps an active booking of the same staff."""

    code = "conflict"

    def __init__(
        self,
        message: str = "Slot is no longer available",
        conflict_id: Optional[int] = None,
        conflict_start: Optional[datetime] = None,
        conflict_end: Optional[datetime] = None,
    ):
        super().__init__(message)
        self.conflict_id = conflict_id
        self.conflict_start = conflict_start
        self.conflict_end = conflict_end

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.conflict_id is not None:
            data["conflict_with"] = {
                "id": self.conflict_id,
                "date_start": self.conflict_start.isoformat() if self.conflict_start else None,
                "date_end": self.conflict_end.isoformat() if self.conflict_end else None,
            }
        return data


class InvalidStatusError(SchedulingError):
    """Status transition not allowed from the booking's current status."""

    code = "invalid_status"

    def __init__(self, action: str, current_status: str):
        super().__init__(f"Cannot {action}. Current status: {current_status}")
        self.action = action
        self.current_status = current_status

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["current_status"] = self.current_status
        return data


class NoStaffAvailableError(SchedulingError):
    """No eligible staff for the duplicate flow. Terminal."""

    code = "no_staff_available"


class PhoneMismatchError(SchedulingError):
    """Phone given at self check-in does not match the booking."""

    code = "phone_mismatch"
