# backend/salon_scheduler/services/scheduling/config.py
"""
Scheduling engine configuration.
"""

from dataclasses import dataclass
from functools import lru_cache

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class SchedulingConfig:
    """
    Configuration for the scheduling engine.

    Attributes:
        slot_step_minutes: Default grid step for candidate start times
        fallback_open: Work window start used when nothing is configured
        fallback_close: Work window end used when nothing is configured
        default_priority_order: priority_order of staff never ranked
        default_sort_by_revenue: Tie-break direction stored for new rows
    """
    slot_step_minutes: int = 30
    fallback_open: str = "09:00"
    fallback_close: str = "18:00"
    default_priority_order: int = 999
    default_sort_by_revenue: str = "DESC"

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes <= 0 or MINUTES_PER_DAY % self.slot_step_minutes:
            raise ValueError(
                f"slot_step_minutes must divide a day, got {self.slot_step_minutes}"
            )
        if time_str_to_minutes(self.fallback_open) >= time_str_to_minutes(self.fallback_close):
            raise ValueError("fallback_open must be before fallback_close")


def time_str_to_minutes(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    hours, minutes = value.strip().split(":")[:2]
    return int(hours) * 60 + int(minutes)


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@lru_cache
def get_scheduling_config() -> SchedulingConfig:
    """Get scheduling configuration (singleton)."""
    return SchedulingConfig()
