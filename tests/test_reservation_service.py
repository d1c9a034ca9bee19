import threading
from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from bbq_booking.core.config import settings
from bbq_booking.core.errors import (
    InvalidTransition, NotCancellable, NotFound, PolicyViolation, SlotConflict, StorageError, ValidationError,
)
from bbq_booking.models.reservation import (
    Reservation, ReservationSlot, PENDING, CONFIRMED, CANCELLED, WAITING, COMPLETED, REFUNDED,
)
from bbq_booking.services import availability_service, facility_service, reservation_service, time_slot_catalog
from bbq_booking.services.reservation_lifecycle import Actor
from bbq_booking.services.reservation_service import CustomerInfo, ReserveRequest
from bbq_booking.services.time_slot_catalog import TimeSlot

SATURDAY = date(2026, 6, 6)
TUESDAY = date(2026, 6, 2)
ADMIN = Actor("admin-1", "admin")
GUEST = CustomerInfo(name="홍길동", phone="010-1234-5678")
GUEST_ACTOR = Actor("guest:010-1234-5678", "customer")


def _request(site, day=SATURDAY, slots=(1, 2), customer=GUEST):
    return ReserveRequest(facility_id=site.facility_id, site_id=site.id, reservation_date=day,
                          time_slots=list(slots), customer=customer)


def _claims(db) -> int:
    return db.execute(select(func.count()).select_from(ReservationSlot)).scalar_one()


def test_reserve_creates_pending_reservation(db, site_a, now):
    result = reservation_service.reserve(db, _request(site_a), now=now)
    assert result.ok
    r = result.reservation
    assert r.status == PENDING
    assert r.payment_status == WAITING
    assert r.total_amount == 240000
    assert r.time_slots == [1, 2]
    assert r.time_slot_labels == ["1부 (10:00-14:00)", "2부 (14:00-18:00)"]
    assert r.guest_phone == "010-1234-5678"
    assert _claims(db) == 2


def test_overlapping_reserve_is_a_conflict(db, site_a, now):
    assert reservation_service.reserve(db, _request(site_a, slots=[1, 2]), now=now).ok

    result = reservation_service.reserve(db, _request(site_a, slots=[2, 3]), now=now)
    assert not result.ok
    assert isinstance(result.error, SlotConflict)
    assert result.error.message == "이미 예약된 시간대입니다"
    assert result.error.slots == [2]


def test_disjoint_slots_and_other_sites_are_free(db, site_a, site_b, now):
    assert reservation_service.reserve(db, _request(site_a, slots=[1, 2]), now=now).ok
    assert reservation_service.reserve(db, _request(site_a, slots=[3, 4]), now=now).ok
    assert reservation_service.reserve(db, _request(site_b, slots=[1, 2]), now=now).ok
    assert _claims(db) == 6


def test_booking_window_violation_is_returned(db, site_a, now):
    too_far = reservation_service.reserve(db, _request(site_a, day=now.date() + timedelta(days=40)), now=now)
    assert isinstance(too_far.error, PolicyViolation)
    assert too_far.error.reason == "최대 30일 전까지만 예약 가능합니다."

    # 10:00 slot, an hour from now
    too_soon = reservation_service.reserve(db, _request(site_a, day=now.date(), slots=[1]), now=now)
    assert isinstance(too_soon.error, PolicyViolation)
    assert too_soon.error.reason == "최소 2시간 전까지 예약해야 합니다."
    assert _claims(db) == 0


@pytest.mark.parametrize("slots, customer, code", [
    ([], GUEST, "INVALID_TIME_SLOTS"),
    ([9], GUEST, "INVALID_TIME_SLOTS"),
    ([1], CustomerInfo(name="이름만"), "MISSING_USER_INFO"),
])
def test_invalid_requests_raise(db, site_a, now, slots, customer, code):
    with pytest.raises(ValidationError) as exc:
        reservation_service.reserve(db, _request(site_a, slots=slots, customer=customer), now=now)
    assert exc.value.code == code


def test_past_date_raises(db, site_a, now):
    with pytest.raises(ValidationError) as exc:
        reservation_service.reserve(db, _request(site_a, day=now.date() - timedelta(days=1)), now=now)
    assert exc.value.code == "PAST_DATE"


def test_site_of_other_facility_is_not_found(db, site_a, now):
    other = facility_service.create_facility(db, name="단체 바베큐장", weekday_price=1, weekend_price=1)
    req = _request(site_a)
    req.facility_id = other.id
    with pytest.raises(NotFound):
        reservation_service.reserve(db, req, now=now)


def test_claim_collision_is_reported_as_conflict(db, site_a, now):
    # a claim committed by another writer after our read
    db.add(ReservationSlot(reservation_id="other", site_id=site_a.id, reservation_date=SATURDAY, time_slot=2))
    db.commit()

    result = reservation_service.reserve(db, _request(site_a, slots=[1, 2]), now=now)
    assert isinstance(result.error, SlotConflict)
    assert db.execute(select(func.count()).select_from(Reservation)).scalar_one() == 0


def test_storage_errors_retry_the_whole_unit(db, site_a, now, monkeypatch):
    monkeypatch.setattr(settings, "STORAGE_RETRY_BACKOFF_SECONDS", 0)
    real = reservation_service._reserve_once
    calls = []

    def flaky(db, req, now):
        calls.append(1)
        if len(calls) < 3:
            raise StorageError("connection reset")
        return real(db, req, now)

    monkeypatch.setattr(reservation_service, "_reserve_once", flaky)
    assert reservation_service.reserve(db, _request(site_a), now=now).ok
    assert len(calls) == 3


def test_storage_error_surfaces_after_last_attempt(db, site_a, now, monkeypatch):
    monkeypatch.setattr(settings, "STORAGE_RETRY_BACKOFF_SECONDS", 0)

    def broken(db, req, now):
        raise StorageError("database unavailable")

    monkeypatch.setattr(reservation_service, "_reserve_once", broken)
    with pytest.raises(StorageError):
        reservation_service.reserve(db, _request(site_a), now=now)


def test_concurrent_reserves_admit_exactly_one(session_factory, site_a, now):
    results = []
    barrier = threading.Barrier(6)

    def worker():
        s = session_factory()
        try:
            barrier.wait()
            results.append(reservation_service.reserve(s, _request(site_a, slots=[1, 2]), now=now))
        finally:
            s.close()

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 6
    assert sum(1 for r in results if r.ok) == 1
    assert all(isinstance(r.error, SlotConflict) for r in results if not r.ok)
    with session_factory() as s:
        assert _claims(s) == 2


def test_amount_is_frozen_after_price_change(db, site_a, bbq_facility, now):
    r = reservation_service.reserve(db, _request(site_a), now=now).reservation
    facility_service.update_facility_prices(db, bbq_facility.id, 150000, 200000)

    db.expire_all()
    assert reservation_service.get_reservation(db, r.id).total_amount == 240000
    assert reservation_service.quote_reservation(db, bbq_facility.id, SATURDAY, [1, 2]).amount == 400000


def test_labels_survive_catalog_edits(db, site_a, now):
    r = reservation_service.reserve(db, _request(site_a, slots=[1]), now=now).reservation
    time_slot_catalog.set_time_slots(db, [TimeSlot(1, "오전", "09:00-13:00")])
    assert reservation_service.slot_labels(db, r) == ["1부 (10:00-14:00)"]


def test_availability_matrix_reflects_reservations(db, site_a, site_b, now):
    before = reservation_service.get_availability(db, site_a.facility_id, SATURDAY)
    assert before[site_a.id]["available"] == {1, 2, 3, 4}

    reservation_service.reserve(db, _request(site_a, slots=[2, 3]), now=now)
    after = reservation_service.get_availability(db, site_a.facility_id, SATURDAY)
    assert after[site_a.id]["occupied"] == {2, 3}
    assert after[site_a.id]["available"] == {1, 4}
    assert after[site_b.id]["available"] == {1, 2, 3, 4}


def test_approve_then_operator_cancel_then_refund(db, site_a, now):
    r = reservation_service.reserve(db, _request(site_a), now=now).reservation
    rid = r.id

    t = reservation_service.transition_reservation(db, rid, "approve", ADMIN, now=now)
    assert (t.status, t.payment_status) == (CONFIRMED, COMPLETED)

    with pytest.raises(ValidationError):
        reservation_service.transition_reservation(db, rid, "cancel", ADMIN, now=now)

    t = reservation_service.transition_reservation(db, rid, "cancel", ADMIN, memo="시설 점검", now=now)
    assert (t.status, t.payment_status) == (CANCELLED, COMPLETED)
    assert t.refund_amount == 240000
    assert _claims(db) == 0

    t = reservation_service.transition_reservation(db, rid, "mark_refunded", ADMIN, now=now)
    assert t.payment_status == REFUNDED

    with pytest.raises(InvalidTransition):
        reservation_service.transition_reservation(db, rid, "approve", ADMIN, now=now)


def test_reject_refunds_in_full_and_frees_slots(db, site_a, now):
    rid = reservation_service.reserve(db, _request(site_a), now=now).reservation.id
    t = reservation_service.transition_reservation(db, rid, "reject", ADMIN, now=now)
    assert (t.status, t.payment_status) == (CANCELLED, REFUNDED)
    assert t.cancellation_fee == 0
    assert reservation_service.reserve(db, _request(site_a), now=now).ok


def test_guest_cancel_charges_tiered_fee(db, site_a, now):
    # Tuesday 18:00 slot, 33 hours out -> 10%
    rid = reservation_service.reserve(db, _request(site_a, day=TUESDAY, slots=[3]), now=now).reservation.id

    quote = reservation_service.cancellation_quote(db, rid, now=now)
    assert quote.allowed
    assert (quote.fee_amount, quote.refund_amount, quote.fee_rate) == (10000, 90000, 0.1)

    t = reservation_service.transition_reservation(db, rid, "cancel", GUEST_ACTOR, now=now)
    assert (t.status, t.payment_status) == (CANCELLED, WAITING)
    assert (t.cancellation_fee, t.refund_amount) == (10000, 90000)

    db.expire_all()
    r = reservation_service.get_reservation(db, rid)
    assert r.cancelled_by == GUEST_ACTOR.id
    assert r.cancellation_reason == "[사용자 취소]"


def test_guest_cancel_after_deadline_is_refused(db, site_a, now):
    rid = reservation_service.reserve(db, _request(site_a, day=TUESDAY, slots=[3]), now=now).reservation.id
    late = now + timedelta(hours=20)

    quote = reservation_service.cancellation_quote(db, rid, now=late)
    assert not quote.allowed
    assert quote.reason == "예약 24시간 전까지만 취소 가능합니다."

    with pytest.raises(PolicyViolation):
        reservation_service.transition_reservation(db, rid, "cancel", GUEST_ACTOR, now=late)
    db.expire_all()
    assert reservation_service.get_reservation(db, rid).status == PENDING


def test_other_customers_cannot_touch_reservation(db, site_a, now):
    rid = reservation_service.reserve(db, _request(site_a), now=now).reservation.id
    with pytest.raises(NotFound):
        reservation_service.transition_reservation(db, rid, "cancel", Actor("guest:010-0000-0000", "customer"), now=now)


def test_cancellation_quote_for_cancelled_reservation(db, site_a, now):
    rid = reservation_service.reserve(db, _request(site_a), now=now).reservation.id
    reservation_service.transition_reservation(db, rid, "reject", ADMIN, now=now)
    with pytest.raises(NotCancellable):
        reservation_service.cancellation_quote(db, rid, now=now)


def test_lookup_and_listing(db, site_a, now):
    rid = reservation_service.reserve(db, _request(site_a), now=now).reservation.id
    assert reservation_service.lookup_guest_reservation(db, rid, "010-1234-5678").id == rid
    with pytest.raises(NotFound):
        reservation_service.lookup_guest_reservation(db, rid, "010-9999-9999")

    total, items = reservation_service.list_reservations(db, status=PENDING)
    assert total == 1 and items[0].id == rid
    total, _ = reservation_service.list_reservations(db, status=CONFIRMED)
    assert total == 0
    total, _ = reservation_service.list_reservations(db, date_from=SATURDAY, date_to=SATURDAY)
    assert total == 1
    total, _ = reservation_service.list_reservations(db, payment_status=(WAITING, COMPLETED))
    assert total == 1
    total, _ = reservation_service.list_reservations(db, payment_status=COMPLETED)
    assert total == 0


def test_check_availability(db, site_a, site_b, now):
    reservation_service.reserve(db, _request(site_a, slots=[2]), now=now)
    assert not availability_service.check_availability(db, site_a.facility_id, site_a.id, SATURDAY, [1, 2])
    assert availability_service.check_availability(db, site_a.facility_id, site_a.id, SATURDAY, [3])
    assert availability_service.check_availability(db, site_b.facility_id, site_b.id, SATURDAY, [2])
    with pytest.raises(NotFound):
        availability_service.check_availability(db, "other-facility", site_a.id, SATURDAY, [1])


def test_inactive_facility_cannot_be_quoted_or_booked(db, site_a, bbq_facility, now):
    facility_service.set_facility_active(db, bbq_facility.id, False)
    with pytest.raises(NotFound):
        reservation_service.quote_reservation(db, bbq_facility.id, SATURDAY, [1])
    with pytest.raises(NotFound):
        reservation_service.reserve(db, _request(site_a), now=now)
