from __future__ import annotations

import threading
from datetime import date, datetime, timedelta
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from salon_scheduler.database import build_engine, configure_sqlite
from salon_scheduler.models import (
    AppointmentServices,
    AppointmentStatus,
    Appointments,
    Base,
    Invoices,
    SalonWorkingHours,
    Salons,
    Services,
    Staff,
    StaffPriorities,
    StaffSchedules,
    StaffServices,
)

# Monday
DAY = date(2030, 3, 4)


def at(hhmm: str, day: date = DAY) -> datetime:
    hours, minutes = hhmm.split(":")
    return datetime.combine(day, datetime.min.time()) + timedelta(hours=int(hours), minutes=int(minutes))


class EventRecorder:
    """Stands in for the redis emitter; keeps (type, payload) pairs."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def __call__(self, event_type: str, payload: dict) -> None:
        self.events.append((event_type, payload))

    @property
    def types(self) -> list[str]:
        return [event_type for event_type, _ in self.events]


def run_concurrently(count, target):
    """Run target(index) in `count` threads released together; return the results."""
    barrier = threading.Barrier(count)
    results, errors = [], []
    lock = threading.Lock()

    def worker(index):
        barrier.wait()
        try:
            value = target(index)
        except Exception as e:  # surfaced by the assertion below
            with lock:
                errors.append(e)
            return
        with lock:
            results.append(value)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    return results


class Seed:
    """Row factory for tests. Every helper commits."""

    def __init__(self, db):
        self.db = db

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        return obj

    def salon(self, name: str = "Studio Mitte", timezone: str = "Europe/Vienna") -> Salons:
        return self._save(Salons(name=name, timezone=timezone, is_active=1))

    def salon_hours(self, salon: Salons, weekday: int, start: str, end: str) -> SalonWorkingHours:
        return self._save(SalonWorkingHours(
            salon_id=salon.id, day_of_week=weekday, start_time=start, end_time=end, is_open=1,
        ))

    def staff(
        self,
        salon: Salons,
        name: str,
        start: Optional[str] = "09:00",
        end: Optional[str] = "18:00",
        break_start: Optional[str] = None,
        break_end: Optional[str] = None,
        weekday: int = DAY.weekday(),
    ) -> Staff:
        staff = self._save(Staff(salon_id=salon.id, display_name=name, is_active=1))
        if start and end:
            self.schedule(staff, start, end, break_start, break_end, weekday=weekday)
        return staff

    def schedule(
        self,
        staff: Staff,
        start: str,
        end: str,
        break_start: Optional[str] = None,
        break_end: Optional[str] = None,
        weekday: Optional[int] = None,
        on_date: Optional[date] = None,
    ) -> StaffSchedules:
        return self._save(StaffSchedules(
            staff_id=staff.id,
            day_of_week=None if on_date else weekday,
            schedule_date=on_date,
            start_time=start,
            end_time=end,
            break_start=break_start,
            break_end=break_end,
        ))

    def service(self, salon: Salons, name: str, duration: int = 30, price: float = 30.0) -> Services:
        return self._save(Services(
            salon_id=salon.id, name=name, duration_min=duration, price=price, is_active=1,
        ))

    def override(self, staff: Staff, service: Services, duration: int) -> StaffServices:
        return self._save(StaffServices(
            staff_id=staff.id, service_id=service.id, duration_min=duration, is_active=1,
        ))

    def priority(self, staff: Staff, order: int, sort_by_revenue: str = "DESC") -> StaffPriorities:
        return self._save(StaffPriorities(
            staff_id=staff.id, salon_id=staff.salon_id,
            priority_order=order, sort_by_revenue=sort_by_revenue,
        ))

    def booking(
        self,
        staff: Optional[Staff],
        start: datetime,
        minutes: int = 30,
        status: str = AppointmentStatus.CONFIRMED,
        salon: Optional[Salons] = None,
        price: float = 30.0,
        customer: str = "Anna",
        **extra,
    ) -> Appointments:
        appointment = Appointments(
            salon_id=salon.id if salon else staff.salon_id,
            staff_id=staff.id if staff else None,
            customer_name=customer,
            date_start=start,
            date_end=start + timedelta(minutes=minutes),
            duration_minutes=minutes,
            status=status,
            created_at=start,
            updated_at=start,
            **extra,
        )
        appointment.items = [
            AppointmentServices(service_name="Haircut", duration_min=minutes, price=price),
        ]
        return self._save(appointment)

    def paid(self, staff: Staff, amount: float, when: datetime) -> Invoices:
        """COMPLETED booking with a PAID invoice at `when`."""
        appointment = self.booking(
            staff,
            when - timedelta(minutes=30),
            status=AppointmentStatus.COMPLETED,
            price=amount,
            started_at=when - timedelta(minutes=30),
            completed_at=when,
        )
        return self._save(Invoices(
            salon_id=staff.salon_id,
            appointment_id=appointment.id,
            final_amount=amount,
            status="PAID",
            payment_method="CASH",
            created_at=when,
        ))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def file_session_factory(tmp_path):
    """File-backed engine, for tests that use several connections at once."""
    engine = build_engine(f"sqlite:///{tmp_path / 'salon.db'}")
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def seed(db):
    return Seed(db)


@pytest.fixture
def recorder():
    return EventRecorder()
