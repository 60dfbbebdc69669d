# backend/salon_scheduler/services/scheduling/queue.py
"""
Check-in queue numbers.

One counter row per (salon, local date). Allocation is a single
INSERT … ON CONFLICT DO UPDATE SET last_number = last_number + 1, so the
read-increment-write happens inside the database and the counter row stays
write-locked until the caller's transaction ends. Concurrent check-ins for
the same salon-day therefore get k+1, k+2, … with no repeats.
"""

from datetime import date

from sqlalchemy.orm import Session

from ...models import QueueCounters


class QueueSequencer:

    def __init__(self, db: Session):
        self.db = db

    def next_queue_number(self, salon_id: int, local_date: date) -> int:
        """Allocate the next queue number. Must run inside the check-in transaction."""
        dialect = self.db.get_bind().dialect.name

        if dialect in ("sqlite", "postgresql"):
            if dialect == "sqlite":
                from sqlalchemy.dialects.sqlite import insert
            else:
                from sqlalchemy.dialects.postgresql import insert

            stmt = insert(QueueCounters).values(
                salon_id=salon_id,
                queue_date=local_date,
                last_number=1,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["salon_id", "queue_date"],
                set_={"last_number": QueueCounters.last_number + 1},
            )
            self.db.execute(stmt)
        else:
            self._increment_locked(salon_id, local_date)

        return (
            self.db.query(QueueCounters.last_number)
            .filter(
                QueueCounters.salon_id == salon_id,
                QueueCounters.queue_date == local_date,
            )
            .scalar()
        )

    def current(self, salon_id: int, local_date: date) -> int:
        """Last issued number for the salon-day, 0 if none yet."""
        value = (
            self.db.query(QueueCounters.last_number)
            .filter(
                QueueCounters.salon_id == salon_id,
                QueueCounters.queue_date == local_date,
            )
            .scalar()
        )
        return value or 0

    def _increment_locked(self, salon_id: int, local_date: date) -> None:
        counter = (
            self.db.query(QueueCounters)
            .filter(
                QueueCounters.salon_id == salon_id,
                QueueCounters.queue_date == local_date,
            )
            .with_for_update()
            .first()
        )
        if counter is None:
            counter = QueueCounters(salon_id=salon_id, queue_date=local_date, last_number=0)
            self.db.add(counter)
        counter.last_number += 1
        self.db.flush()
