"""Reservation entry points used by the public and admin routers.

``reserve`` is the only write path that creates reservations. It composes the
pricing quote, the booking-window check and the conflict check into a single
transaction: the site row is locked, held slots are read straight from the
database, and the reservation is inserted together with one
``reservation_slots`` claim per slot. The unique constraint on the claims is
what keeps concurrent writers on other processes from double-booking.
"""
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bbq_booking.core.config import settings
from bbq_booking.core.errors import (
    NotCancellable, NotFound, PolicyViolation, SlotConflict, StorageError, ValidationError, storage_errors,
)
from bbq_booking.models.facility import Facility
from bbq_booking.models.reservation import (
    Reservation, ReservationSlot, PENDING, WAITING, CANCELLED, ACTIVE_STATUSES,
)
from bbq_booking.models.site import Site
from bbq_booking.services import (
    availability_service, facility_service, policy_service, pricing_service,
    settings_service, time_slot_catalog,
)
from bbq_booking.services.audit_service import log_audit
from bbq_booking.services.reservation_lifecycle import Actor, CANCEL, apply_transition, next_state, normalize_action

logger = logging.getLogger(__name__)


@dataclass
class CustomerInfo:
    user_id: str | None = None
    name: str | None = None
    phone: str | None = None
    email: str | None = None

    @property
    def actor_id(self) -> str:
        return self.user_id or f"guest:{self.phone}"


@dataclass
class ReserveRequest:
    facility_id: str
    site_id: str
    reservation_date: date
    time_slots: list
    customer: CustomerInfo = field(default_factory=CustomerInfo)
    special_requests: str | None = None


@dataclass
class ReserveResult:
    reservation: Reservation | None = None
    error: SlotConflict | PolicyViolation | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class QuoteResult:
    amount: int
    unit_price: int
    slot_count: int
    is_weekend: bool


@dataclass
class TransitionResult:
    reservation_id: str
    status: str
    payment_status: str
    cancellation_fee: int | None = None
    refund_amount: int | None = None


@dataclass
class CancellationQuote:
    allowed: bool
    fee_amount: int
    refund_amount: int
    fee_rate: float
    penalty_applied: bool = False
    reason: str | None = None


def _now() -> datetime:
    return datetime.now(time_slot_catalog.venue_tz())


def _active_facility(db: Session, facility_id: str):
    info = facility_service.get_facility_info(db, facility_id)
    if not info or not info.is_active:
        raise NotFound("시설을 찾을 수 없거나 운영중이지 않습니다.", code="FACILITY_NOT_FOUND")
    return info


# -------------------------
# READS
# -------------------------
def quote_reservation(db: Session, facility_id: str, day: date, slot_ids) -> QuoteResult:
    facility = _active_facility(db, facility_id)
    return QuoteResult(
        amount=pricing_service.quote(facility, day, slot_ids),
        unit_price=pricing_service.unit_price(facility, day),
        slot_count=len(set(slot_ids)),
        is_weekend=pricing_service.is_weekend(day),
    )


def get_availability(db: Session, facility_id: str, day: date) -> dict:
    _active_facility(db, facility_id)
    return availability_service.get_availability_matrix(db, facility_id, day)


def get_reservation(db: Session, reservation_id: str) -> Reservation:
    with storage_errors("reservation read"):
        r = db.get(Reservation, reservation_id)
    if not r:
        raise NotFound("예약을 찾을 수 없습니다.", code="RESERVATION_NOT_FOUND")
    return r


def lookup_guest_reservation(db: Session, reservation_id: str, guest_phone: str) -> Reservation:
    with storage_errors("reservation lookup"):
        r = db.execute(
            select(Reservation).where(
                Reservation.id == reservation_id,
                Reservation.guest_phone == guest_phone,
                Reservation.user_id.is_(None),
            )
        ).scalar_one_or_none()
    if not r:
        raise NotFound("예약 내역을 찾을 수 없습니다. 예약번호와 연락처를 확인해주세요.", code="RESERVATION_NOT_FOUND")
    return r


def list_reservations(db: Session, status: str | None = None, payment_status=None,
                      facility_id: str | None = None, date_from: date | None = None, date_to: date | None = None,
                      limit: int = 50, offset: int = 0) -> tuple[int, list[Reservation]]:
    """``payment_status`` is one status or a collection of accepted statuses."""
    q = select(Reservation)
    if status:
        q = q.where(Reservation.status == status)
    if isinstance(payment_status, str):
        payment_status = [payment_status] if payment_status else None
    if payment_status:
        q = q.where(Reservation.payment_status.in_(list(payment_status)))
    if facility_id:
        q = q.where(Reservation.facility_id == facility_id)
    if date_from:
        q = q.where(Reservation.reservation_date >= date_from)
    if date_to:
        q = q.where(Reservation.reservation_date <= date_to)
    with storage_errors("reservation list"):
        total = db.execute(select(func.count()).select_from(q.subquery())).scalar_one()
        items = db.execute(
            q.order_by(Reservation.reservation_date.desc(), Reservation.created_at.desc())
            .limit(min(limit, 200)).offset(max(offset, 0))
        ).scalars().all()
    return int(total), list(items)


def slot_labels(db: Session, reservation: Reservation) -> list[str]:
    """Labels captured at booking time; older rows fall back to the live catalog."""
    if reservation.time_slot_labels:
        return list(reservation.time_slot_labels)
    return [time_slot_catalog.label_for(db, s) for s in reservation.time_slots or []]


def reservation_start(db: Session, reservation: Reservation) -> datetime:
    return time_slot_catalog.earliest_start(db, reservation.reservation_date, reservation.time_slots or [])


# -------------------------
# RESERVE
# -------------------------
def _validate_request(db: Session, req: ReserveRequest, now: datetime) -> list[int]:
    if not req.time_slots:
        raise ValidationError("시간대는 최소 1개 이상 선택해야 합니다.", code="INVALID_TIME_SLOTS")
    try:
        slot_ids = sorted({int(s) for s in req.time_slots})
    except (TypeError, ValueError):
        raise ValidationError("시간대는 숫자 ID 배열이어야 합니다.", code="INVALID_TIME_SLOTS")

    known = {s.id for s in time_slot_catalog.get_all_slots(db)}
    unknown = [s for s in slot_ids if s not in known]
    if unknown:
        raise ValidationError(f"존재하지 않는 시간대입니다: {unknown}", code="INVALID_TIME_SLOTS")

    c = req.customer
    if not c.user_id and (not c.name or not c.phone):
        raise ValidationError("회원 ID 또는 비회원 정보(이름, 연락처)가 필요합니다.", code="MISSING_USER_INFO")

    if req.reservation_date < now.astimezone(time_slot_catalog.venue_tz()).date():
        raise ValidationError("지난 날짜는 예약할 수 없습니다.", code="PAST_DATE")
    return slot_ids


def reserve(db: Session, req: ReserveRequest, now: datetime | None = None) -> ReserveResult:
    """Check and create a PENDING reservation as one unit.

    Slot conflicts and booking-window violations come back in ``ReserveResult.error``.
    Transient storage failures are retried by re-running the whole unit, so a
    retry can never double-book.
    """
    attempts = max(1, settings.STORAGE_RETRY_ATTEMPTS)
    for attempt in range(1, attempts + 1):
        try:
            return _reserve_once(db, req, now or _now())
        except StorageError:
            db.rollback()
            if attempt >= attempts:
                raise
            logger.warning("reserve attempt %d/%d hit a storage error; retrying", attempt, attempts)
            time.sleep(settings.STORAGE_RETRY_BACKOFF_SECONDS * attempt)


def _reserve_once(db: Session, req: ReserveRequest, now: datetime) -> ReserveResult:
    slot_ids = _validate_request(db, req, now)

    policy = settings_service.get_booking_policy(db)
    starts_at = time_slot_catalog.earliest_start(db, req.reservation_date, slot_ids)
    decision = policy_service.can_book(starts_at, policy, now)
    if not decision.allowed:
        return ReserveResult(error=PolicyViolation(decision.reason, code="BOOKING_WINDOW"))

    labels = [time_slot_catalog.label_for(db, s) for s in slot_ids]

    with storage_errors("reserve"):
        try:
            facility = db.get(Facility, req.facility_id)
            if not facility or not facility.is_active:
                db.rollback()
                raise NotFound("시설을 찾을 수 없거나 운영중이지 않습니다.", code="FACILITY_NOT_FOUND")

            # Transactional lock on the site serializes reservers of the same site
            site = db.execute(
                select(Site).where(Site.id == req.site_id, Site.facility_id == req.facility_id).with_for_update()
            ).scalar_one_or_none()
            if not site or not site.is_active:
                db.rollback()
                raise NotFound("사이트를 찾을 수 없거나 운영중이지 않습니다.", code="SITE_NOT_FOUND")

            taken = set(slot_ids) & availability_service.occupied_slots(db, site.id, req.reservation_date, lock=True)
            if taken:
                db.rollback()
                logger.info("slot conflict site=%s date=%s slots=%s", site.id, req.reservation_date, sorted(taken))
                return ReserveResult(error=SlotConflict(taken))

            c = req.customer
            r = Reservation(
                id=str(uuid.uuid4()),
                facility_id=facility.id,
                site_id=site.id,
                reservation_date=req.reservation_date,
                time_slots=slot_ids,
                time_slot_labels=labels,
                total_amount=pricing_service.quote(facility, req.reservation_date, slot_ids),
                status=PENDING,
                payment_status=WAITING,
                user_id=c.user_id or None,
                guest_name=None if c.user_id else c.name,
                guest_phone=None if c.user_id else c.phone,
                guest_email=None if c.user_id else (c.email or None),
                special_requests=req.special_requests or None,
                created_at=now,
                updated_at=now,
            )
            db.add(r)
            for s in slot_ids:
                db.add(ReservationSlot(reservation_id=r.id, site_id=site.id,
                                       reservation_date=req.reservation_date, time_slot=s))
            log_audit(db, c.actor_id, "reservation.create", "reservation", r.id,
                      {"site": site.id, "date": req.reservation_date, "slots": slot_ids, "amount": r.total_amount},
                      actor_role="customer" if c.user_id else "guest")
            db.commit()
        except IntegrityError as e:
            db.rollback()
            if "reservation_slot" not in str(e.orig):
                raise
            # a concurrent writer claimed one of the slots between our read and commit
            logger.info("slot claim collision site=%s date=%s slots=%s", req.site_id, req.reservation_date, slot_ids)
            return ReserveResult(error=SlotConflict(slot_ids))

    availability_service.invalidate_matrix(req.facility_id, req.reservation_date)
    logger.info("reservation created site=%s date=%s slots=%s", req.site_id, req.reservation_date, slot_ids)
    return ReserveResult(reservation=r)


# -------------------------
# TRANSITIONS
# -------------------------
def _owns(reservation: Reservation, actor: Actor) -> bool:
    if reservation.user_id:
        return reservation.user_id == actor.id
    return actor.id == f"guest:{reservation.guest_phone}"


def transition_reservation(db: Session, reservation_id: str, action: str, actor: Actor,
                           memo: str | None = None, now: datetime | None = None) -> TransitionResult:
    """Apply an operator or customer action; the actor is recorded on the audit trail."""
    now = now or _now()
    action = normalize_action(action)

    with storage_errors("reservation transition"):
        r = db.execute(
            select(Reservation).where(Reservation.id == reservation_id).with_for_update()
        ).scalar_one_or_none()
        if not r:
            db.rollback()
            raise NotFound("예약을 찾을 수 없습니다.", code="RESERVATION_NOT_FOUND")

        try:
            if not actor.is_operator and not _owns(r, actor):
                raise NotFound("예약을 찾을 수 없습니다.", code="RESERVATION_NOT_FOUND")
            next_state(r.status, r.payment_status, action, actor)

            fee = None
            if action == CANCEL:
                starts_at = reservation_start(db, r)
                if actor.is_operator:
                    fee = policy_service.CancellationFee(0, r.total_amount, 0.0)
                else:
                    policy = settings_service.get_booking_policy(db)
                    decision = policy_service.can_cancel(starts_at, policy, now)
                    if not decision.allowed:
                        raise PolicyViolation(decision.reason, code="CANCELLATION_DEADLINE")
                    fee = policy_service.calculate_cancellation_fee(r.total_amount, starts_at, now, policy.fee_tiers)

            was_active = r.status in ACTIVE_STATUSES
            t = apply_transition(r, action, actor, memo, now)
        except Exception:
            # release the row lock before surfacing the error
            db.rollback()
            raise

        if t.status == CANCELLED and was_active:
            if fee is None:
                # operator reject refunds in full
                fee = policy_service.CancellationFee(0, r.total_amount, 0.0)
            r.cancellation_fee = fee.fee_amount
            r.refund_amount = fee.refund_amount
            db.execute(delete(ReservationSlot).where(ReservationSlot.reservation_id == r.id))

        result = TransitionResult(
            reservation_id=r.id,
            status=t.status,
            payment_status=t.payment_status,
            cancellation_fee=r.cancellation_fee,
            refund_amount=r.refund_amount,
        )
        facility_id, day = r.facility_id, r.reservation_date
        log_audit(db, actor.id, f"reservation.{action}", "reservation", r.id,
                  {"status": t.status, "paymentStatus": t.payment_status, "memo": memo,
                   "fee": r.cancellation_fee, "refund": r.refund_amount},
                  actor_role=actor.role)
        db.commit()

    availability_service.invalidate_matrix(facility_id, day)
    logger.info("reservation %s %s by %s:%s -> %s/%s",
                reservation_id, action, actor.role, actor.id, t.status, t.payment_status)
    return result


def cancellation_quote(db: Session, reservation_id: str, now: datetime | None = None) -> CancellationQuote:
    now = now or _now()
    r = get_reservation(db, reservation_id)
    if r.status == CANCELLED:
        raise NotCancellable("이미 취소된 예약입니다.", code="ALREADY_CANCELLED")

    starts_at = reservation_start(db, r)
    policy = settings_service.get_booking_policy(db)
    decision = policy_service.can_cancel(starts_at, policy, now)
    fee = policy_service.calculate_cancellation_fee(r.total_amount, starts_at, now, policy.fee_tiers)
    return CancellationQuote(
        allowed=decision.allowed,
        fee_amount=fee.fee_amount,
        refund_amount=fee.refund_amount,
        fee_rate=fee.fee_rate,
        penalty_applied=decision.penalty_applied,
        reason=decision.reason,
    )
