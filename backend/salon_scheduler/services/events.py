"""
backend/salon_scheduler/services/events.py

Event emitter: pushes scheduling events to a Redis queue for the
notification / socket layer.

Queue:
- events:p2p: instant delivery (booking and shift-board updates)
"""

import json
import time
import logging
from typing import Callable

from ..config import settings

logger = logging.getLogger(__name__)

EVENTS_QUEUE = "events:p2p"

EventEmitter = Callable[[str, dict], None]


def emit_event(event_type: str, payload: dict) -> None:
    """
    Emit a p2p event (instant delivery).

    Pushed to Redis list `events:p2p` for the consumer loop.
    Delivery problems are logged and never reach the caller.
    """
    if not settings.events_enabled:
        return

    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        from ..redis_client import redis_client

        redis_client.rpush(EVENTS_QUEUE, json.dumps(event, default=str))
        logger.info(f"Event emitted: {event_type} → {EVENTS_QUEUE}")
    except Exception as e:
        logger.error(f"Failed to emit event {event_type}: {e}")


# Dependency for FastAPI
def get_emitter() -> EventEmitter:
    return emit_event
