# backend/salon_scheduler/services/scheduling/__init__.py
"""
Scheduling engine.

Read side: AvailabilityResolver (slots, staff per slot)
Write side: BookingWorkflow, guarded by ConflictGuard and QueueSequencer
Rotation: PriorityRotation (manual changes, daily reset)
Board: ShiftBoardAggregator (live operator view)
"""

from .config import SchedulingConfig, get_scheduling_config
from .errors import (
    ConflictError,
    InvalidStatusError,
    NoStaffAvailableError,
    NotFoundError,
    PhoneMismatchError,
    SchedulingError,
    ValidationError,
)
from .intervals import overlaps
from .availability import AvailabilityResolver, Slot, SlotResult
from .conflicts import ConflictGuard
from .queue import QueueSequencer
from .priority import PriorityRotation, RankedStaff, history_order, live_order
from .booking import BookingWorkflow
from .board import Board, ShiftBoardAggregator, StaffBoardEntry

__all__ = [
    "SchedulingConfig",
    "get_scheduling_config",
    "SchedulingError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "InvalidStatusError",
    "NoStaffAvailableError",
    "PhoneMismatchError",
    "overlaps",
    "AvailabilityResolver",
    "Slot",
    "SlotResult",
    "ConflictGuard",
    "QueueSequencer",
    "PriorityRotation",
    "RankedStaff",
    "history_order",
    "live_order",
    "BookingWorkflow",
    "Board",
    "ShiftBoardAggregator",
    "StaffBoardEntry",
]
