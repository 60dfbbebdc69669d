# backend/salon_scheduler/services/scheduling/clock.py
"""
Salon-local wall clock.

The engine works on naive datetimes in the salon's local frame. "Now" and
"today" are taken in the salon's timezone, so day boundaries are local
midnight, not UTC.
"""

import logging
from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ...config import settings

logger = logging.getLogger(__name__)


def salon_zone(tz_name: str | None) -> ZoneInfo:
    name = tz_name or settings.default_timezone
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Invalid salon timezone '{name}', using {settings.default_timezone}")
        return ZoneInfo(settings.default_timezone)


def local_now(tz_name: str | None = None) -> datetime:
    """Current salon-local time as a naive datetime."""
    return datetime.now(salon_zone(tz_name)).replace(tzinfo=None, microsecond=0)


def local_today(tz_name: str | None = None) -> date:
    return local_now(tz_name).date()


def to_local_naive(value: datetime, tz_name: str | None = None) -> datetime:
    """
    Salon-local naive form of `value`.

    Naive input is already salon-local and returned as is; aware input is
    converted into the salon's zone and stripped of its offset.
    """
    if value.tzinfo is None or value.utcoffset() is None:
        return value
    return value.astimezone(salon_zone(tz_name)).replace(tzinfo=None)
