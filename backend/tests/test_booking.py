from datetime import datetime, timedelta, timezone

import pytest

from conftest import DAY, Seed, at, run_concurrently
from salon_scheduler.models import AppointmentStatus, Appointments, Invoices
from salon_scheduler.services.scheduling import (
    BookingWorkflow,
    ConflictError,
    ConflictGuard,
    InvalidStatusError,
    NoStaffAvailableError,
    NotFoundError,
    PhoneMismatchError,
    QueueSequencer,
    ValidationError,
)

S = AppointmentStatus
NOW = at("08:00")


@pytest.fixture
def salon(seed):
    return seed.salon()


@pytest.fixture
def haircut(seed, salon):
    return seed.service(salon, "Haircut", duration=30, price=35.0)


@pytest.fixture
def mara(seed, salon):
    return seed.staff(salon, "Mara")


@pytest.fixture
def jana(seed, salon):
    return seed.staff(salon, "Jana")


@pytest.fixture
def workflow(db, recorder):
    return BookingWorkflow(db, events=recorder)


def book(workflow, salon, staff, service, start, customer="Anna"):
    return workflow.create_booking(
        salon.id, [service.id], start, customer, staff_id=staff.id if staff else None, now=NOW,
    )


# ── Create ───────────────────────────────────────────────────────────────


def test_create_booking_snapshots_items(workflow, salon, mara, haircut, recorder):
    booking = book(workflow, salon, mara, haircut, at("10:00"))

    assert booking.status == S.CONFIRMED
    assert booking.date_end == at("10:30")
    assert [(i.service_name, i.duration_min, i.price) for i in booking.items] == [("Haircut", 30, 35.0)]
    assert recorder.types == ["booking_created"]


def test_create_booking_uses_staff_duration(workflow, seed, salon, mara, haircut):
    seed.override(mara, haircut, 50)

    booking = book(workflow, salon, mara, haircut, at("10:00"))

    assert booking.duration_minutes == 50
    assert booking.date_end == at("10:50")


def test_overlapping_booking_is_rejected(workflow, salon, mara, haircut):
    first = book(workflow, salon, mara, haircut, at("10:00"))

    with pytest.raises(ConflictError) as exc_info:
        book(workflow, salon, mara, haircut, at("10:15"), customer="Berta")

    assert exc_info.value.conflict_id == first.id
    assert exc_info.value.to_dict()["conflict_with"]["id"] == first.id


def test_touching_bookings_are_allowed(workflow, salon, mara, haircut):
    book(workflow, salon, mara, haircut, at("10:00"))

    follow_up = book(workflow, salon, mara, haircut, at("10:30"), customer="Berta")

    assert follow_up.date_start == at("10:30")


def test_cancelled_booking_frees_the_slot(workflow, salon, mara, haircut):
    first = book(workflow, salon, mara, haircut, at("10:00"))
    workflow.cancel_booking(first.id, reason="no show", now=NOW)

    again = book(workflow, salon, mara, haircut, at("10:00"), customer="Berta")

    assert again.staff_id == mara.id


def test_create_without_staff_goes_to_waiting_list(workflow, salon, haircut):
    booking = book(workflow, salon, None, haircut, at("10:00"))

    assert booking.staff_id is None
    assert booking.status == S.PENDING


def test_create_validates_before_writing(db, workflow, salon, mara, haircut):
    with pytest.raises(ValidationError):
        workflow.create_booking(salon.id, [], at("10:00"), "Anna", staff_id=mara.id)
    with pytest.raises(ValidationError):
        workflow.create_booking(salon.id, [haircut.id], at("10:00"), "  ", staff_id=mara.id)
    with pytest.raises(NotFoundError):
        workflow.create_booking(salon.id, [haircut.id], at("10:00"), "Anna", staff_id=4242)

    assert db.query(Appointments).count() == 0


def test_aware_start_is_converted_to_salon_time(workflow, salon, mara, haircut):
    # 09:00 UTC is 10:00 in Vienna in March
    booking = workflow.create_booking(
        salon.id, [haircut.id], datetime(2030, 3, 4, 9, 0, tzinfo=timezone.utc), "Anna",
        staff_id=mara.id, now=NOW,
    )

    assert booking.date_start == at("10:00")
    assert booking.date_start.tzinfo is None
    assert booking.date_end == at("10:30")


def test_aware_start_still_conflicts_with_local_booking(workflow, salon, mara, haircut):
    first = book(workflow, salon, mara, haircut, at("10:00"))
    vienna_winter = timezone(timedelta(hours=1))

    with pytest.raises(ConflictError) as exc_info:
        book(workflow, salon, mara, haircut, datetime(2030, 3, 4, 10, 15, tzinfo=vienna_winter))

    assert exc_info.value.conflict_id == first.id


def test_concurrent_creates_for_one_slot_admit_one(file_session_factory):
    with file_session_factory() as session:
        seed = Seed(session)
        salon = seed.salon()
        salon_id = salon.id
        mara_id = seed.staff(salon, "Mara").id
        haircut_id = seed.service(salon, "Haircut", duration=30).id

    def create(index):
        with file_session_factory() as session:
            workflow = BookingWorkflow(session, events=lambda *_: None)
            try:
                booking = workflow.create_booking(
                    salon_id, [haircut_id], at("10:00"), f"Customer {index}",
                    staff_id=mara_id, now=NOW,
                )
            except ConflictError:
                return "conflict"
            return booking.id

    results = run_concurrently(2, create)

    assert results.count("conflict") == 1
    with file_session_factory() as session:
        active = (
            session.query(Appointments)
            .filter(Appointments.staff_id == mara_id, Appointments.status != S.CANCELLED)
            .all()
        )
        assert [a.id for a in active] == [r for r in results if r != "conflict"]


# ── Move / assign ────────────────────────────────────────────────────────


def test_move_conflict_leaves_original_unchanged(db, workflow, salon, mara, jana, haircut):
    original = book(workflow, salon, mara, haircut, at("10:00"))
    book(workflow, salon, jana, haircut, at("11:00"), customer="Berta")

    with pytest.raises(ConflictError):
        workflow.move_booking(original.id, jana.id, at("11:15"), now=NOW)

    db.expire_all()
    reloaded = db.get(Appointments, original.id)
    assert reloaded.staff_id == mara.id
    assert reloaded.date_start == at("10:00")
    assert reloaded.date_end == at("10:30")


def test_move_recomputes_duration_for_new_staff(workflow, seed, salon, mara, jana, haircut, recorder):
    seed.override(jana, haircut, 60)
    booking = book(workflow, salon, mara, haircut, at("10:00"))

    moved = workflow.move_booking(booking.id, jana.id, at("14:00"), now=NOW)

    assert moved.staff_id == jana.id
    assert moved.date_end == at("15:00")
    assert moved.duration_minutes == 60
    assert recorder.types[-1] == "booking_moved"


def test_move_may_overlap_its_own_old_slot(workflow, salon, mara, haircut):
    booking = book(workflow, salon, mara, haircut, at("10:00"))

    moved = workflow.move_booking(booking.id, mara.id, at("10:15"), now=NOW)

    assert moved.date_start == at("10:15")


def test_move_accepts_aware_start(workflow, salon, mara, jana, haircut):
    booking = book(workflow, salon, mara, haircut, at("10:00"))

    moved = workflow.move_booking(
        booking.id, jana.id, datetime(2030, 3, 4, 13, 0, tzinfo=timezone.utc), now=NOW,
    )

    assert (moved.date_start, moved.date_end) == (at("14:00"), at("14:30"))


def test_move_completed_booking_is_refused(workflow, seed, mara):
    done = seed.booking(mara, at("09:00"), status=S.COMPLETED)

    with pytest.raises(InvalidStatusError):
        workflow.move_booking(done.id, mara.id, at("15:00"), now=NOW)


def test_assign_waiting_list_booking(workflow, salon, mara, jana, haircut):
    book(workflow, salon, mara, haircut, at("10:00"))
    waiting = book(workflow, salon, None, haircut, at("10:00"), customer="Berta")

    with pytest.raises(ConflictError):
        workflow.assign_staff(waiting.id, mara.id, now=NOW)

    assigned = workflow.assign_staff(waiting.id, jana.id, now=NOW)
    assert assigned.staff_id == jana.id
    assert assigned.status == S.CONFIRMED


# ── Duplicate ────────────────────────────────────────────────────────────


def test_duplicate_goes_to_another_free_staff(workflow, seed, salon, mara, jana, haircut):
    source = book(workflow, salon, mara, haircut, at("10:00"))

    copy = workflow.duplicate_booking(source.id, "Berta", "+43 660 000", now=NOW)

    assert copy.id != source.id
    assert copy.staff_id == jana.id
    assert (copy.date_start, copy.date_end) == (source.date_start, source.date_end)
    assert [i.service_name for i in copy.items] == ["Haircut"]
    assert copy.status == S.CONFIRMED


def test_duplicate_without_free_staff(workflow, seed, salon, mara, jana, haircut):
    seed.staff(salon, "Off Today", start=None, end=None)
    source = book(workflow, salon, mara, haircut, at("10:00"))
    book(workflow, salon, jana, haircut, at("10:15"), customer="Berta")

    with pytest.raises(NoStaffAvailableError):
        workflow.duplicate_booking(source.id, "Clara", now=NOW)


def test_duplicate_rechecks_candidate_under_lock(monkeypatch, db, workflow, seed, salon, mara, jana, haircut):
    source = book(workflow, salon, mara, haircut, at("10:00"))
    # jana was free when the candidate list was read, then got booked
    seed.booking(jana, at("10:15"), customer="Berta")
    monkeypatch.setattr(workflow.guard, "eligible_staff", lambda *args, **kwargs: [jana])

    with pytest.raises(NoStaffAvailableError):
        workflow.duplicate_booking(source.id, "Clara", now=NOW)

    assert db.query(Appointments).filter(Appointments.staff_id == jana.id).count() == 1


def test_duplicate_falls_through_to_next_free_candidate(monkeypatch, workflow, seed, salon, mara, jana, haircut):
    lena = seed.staff(salon, "Lena")
    source = book(workflow, salon, mara, haircut, at("10:00"))
    seed.booking(jana, at("10:15"), customer="Berta")
    monkeypatch.setattr(workflow.guard, "eligible_staff", lambda *args, **kwargs: [jana, lena])

    copy = workflow.duplicate_booking(source.id, "Clara", now=NOW)

    assert copy.staff_id == lena.id


def test_eligible_staff_skips_busy_and_absent(db, seed, salon, mara, jana):
    seed.staff(salon, "Off Today", start=None, end=None)
    seed.booking(jana, at("10:00"))

    eligible = ConflictGuard(db).eligible_staff(salon.id, at("10:00"), at("10:30"))

    assert [s.id for s in eligible] == [mara.id]


# ── Status transitions ───────────────────────────────────────────────────


def test_check_in_assigns_queue_numbers(workflow, salon, mara, jana, haircut, recorder):
    first = book(workflow, salon, mara, haircut, at("10:00"))
    second = book(workflow, salon, jana, haircut, at("10:00"), customer="Berta")

    checked_in, number = workflow.check_in(first.id, now=at("09:50"))
    _, other = workflow.check_in(second.id, now=at("09:55"))

    assert (number, other) == (1, 2)
    assert checked_in.status == S.CHECKED_IN
    assert checked_in.check_in_date == DAY
    assert checked_in.checked_in_at == at("09:50")
    assert recorder.events[-1][1]["queue_number"] == 2


def test_check_in_can_reassign_staff(workflow, salon, mara, jana, haircut):
    booking = book(workflow, salon, mara, haircut, at("10:00"))

    checked_in, _ = workflow.check_in(booking.id, staff_id=jana.id, now=at("09:50"))

    assert checked_in.staff_id == jana.id


def test_check_in_twice_is_refused(workflow, salon, mara, haircut):
    booking = book(workflow, salon, mara, haircut, at("10:00"))
    workflow.check_in(booking.id, now=at("09:50"))

    with pytest.raises(InvalidStatusError) as exc_info:
        workflow.check_in(booking.id, now=at("09:51"))

    assert exc_info.value.current_status == S.CHECKED_IN


PHONE = "+43 660 1234567"


def test_self_check_in_with_matching_phone(workflow, salon, mara, haircut):
    booking = workflow.create_booking(
        salon.id, [haircut.id], at("10:00"), "Anna", staff_id=mara.id, customer_phone=PHONE, now=NOW,
    )

    checked_in, number = workflow.self_check_in(booking.id, f" {PHONE} ", now=at("09:50"))

    assert number == 1
    assert checked_in.status == S.CHECKED_IN


def test_self_check_in_wrong_phone_takes_no_number(db, workflow, seed, salon, mara):
    booking = seed.booking(mara, at("10:00"), customer_phone=PHONE)
    without_phone = seed.booking(mara, at("11:00"), customer="Berta")

    with pytest.raises(PhoneMismatchError):
        workflow.self_check_in(booking.id, "+43 660 7654321", now=at("09:50"))
    with pytest.raises(PhoneMismatchError):
        workflow.self_check_in(without_phone.id, PHONE, now=at("09:50"))

    assert QueueSequencer(db).current(salon.id, DAY) == 0
    db.expire_all()
    assert db.get(Appointments, booking.id).status == S.CONFIRMED


def test_self_check_in_checks_phone_before_status(workflow, seed, mara):
    done = seed.booking(mara, at("09:00"), status=S.COMPLETED, customer_phone=PHONE)

    with pytest.raises(PhoneMismatchError):
        workflow.self_check_in(done.id, "+43 660 0000000", now=at("09:50"))
    with pytest.raises(InvalidStatusError):
        workflow.self_check_in(done.id, PHONE, now=at("09:50"))
    with pytest.raises(ValidationError):
        workflow.self_check_in(done.id, "   ", now=at("09:50"))
    with pytest.raises(NotFoundError):
        workflow.self_check_in(4242, PHONE, now=at("09:50"))


def test_find_by_phone_lists_open_bookings_from_today(workflow, seed, salon, mara, jana):
    earlier_today = seed.booking(mara, at("10:00"), customer_phone=PHONE)
    tomorrow = seed.booking(jana, at("11:00", DAY + timedelta(days=1)), status=S.PENDING, customer_phone=PHONE)
    seed.booking(mara, at("10:00", DAY - timedelta(days=1)), customer_phone=PHONE)
    seed.booking(jana, at("09:00"), status=S.COMPLETED, customer_phone=PHONE)
    seed.booking(jana, at("13:00"), status=S.CANCELLED, customer_phone=PHONE)
    seed.booking(jana, at("15:00"), customer_phone="+43 660 7654321")

    found = workflow.find_by_phone(PHONE, now=at("12:00"))

    assert [a.id for a in found] == [earlier_today.id, tomorrow.id]
    with pytest.raises(ValidationError):
        workflow.find_by_phone("")


def test_full_lifecycle_records_invoice(db, workflow, salon, mara, haircut, recorder):
    booking = book(workflow, salon, mara, haircut, at("10:00"))
    workflow.check_in(booking.id, now=at("09:50"))
    workflow.start_service(booking.id, now=at("10:02"))

    done = workflow.complete_service(booking.id, now=at("10:31"))

    assert done.status == S.COMPLETED
    assert done.started_at == at("10:02")
    assert done.completed_at == at("10:31")
    invoice = db.query(Invoices).filter(Invoices.appointment_id == booking.id).one()
    assert invoice.final_amount == 35.0
    assert invoice.status == "PAID"
    assert invoice.created_at == at("10:31")
    assert recorder.types == [
        "booking_created",
        "booking_checked_in",
        "booking_started",
        "booking_completed",
    ]


def test_complete_requires_in_progress(workflow, salon, mara, haircut):
    booking = book(workflow, salon, mara, haircut, at("10:00"))

    with pytest.raises(InvalidStatusError):
        workflow.complete_service(booking.id, now=at("10:30"))


def test_start_requires_staff(workflow, salon, haircut):
    waiting = book(workflow, salon, None, haircut, at("10:00"))
    workflow.check_in(waiting.id, now=at("09:50"))

    with pytest.raises(ValidationError):
        workflow.start_service(waiting.id, now=at("10:00"))


def test_cancel_final_booking_is_refused(workflow, salon, mara, haircut):
    booking = book(workflow, salon, mara, haircut, at("10:00"))
    cancelled = workflow.cancel_booking(booking.id, reason="ill", now=NOW)

    assert cancelled.cancel_reason == "ill"
    with pytest.raises(InvalidStatusError):
        workflow.cancel_booking(booking.id, now=NOW)


def test_unknown_booking(workflow):
    with pytest.raises(NotFoundError):
        workflow.start_service(4242, now=NOW)
