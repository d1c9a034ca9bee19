from datetime import date
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from bbq_booking.db.session import get_db
from bbq_booking.api.deps import get_optional_user
from bbq_booking.core.errors import NotFound
from bbq_booking.models.reservation import Reservation
from bbq_booking.models.user import User
from bbq_booking.schemas.reservation import (
    QuoteIn, QuoteOut, AvailabilityOut, SiteAvailabilityOut, ReservationCreate, ReservationCreated,
    ReservationOut, AdminReservationOut, GuestCancelIn, TransitionOut, CancellationQuoteOut,
)
from bbq_booking.schemas.settings import TimeSlotOut
from bbq_booking.services import facility_service, reservation_service, time_slot_catalog
from bbq_booking.services.reservation_lifecycle import Actor, CANCEL

router = APIRouter(tags=["public"])


def reservation_out(db: Session, r: Reservation, admin: bool = False) -> ReservationOut:
    extra = {"adminMemo": r.admin_memo} if admin else {}
    return (AdminReservationOut if admin else ReservationOut)(
        **extra,
        id=r.id,
        facilityId=r.facility_id,
        siteId=r.site_id,
        reservationDate=r.reservation_date,
        timeSlots=list(r.time_slots or []),
        timeSlotLabels=reservation_service.slot_labels(db, r),
        totalAmount=r.total_amount,
        status=r.status,
        paymentStatus=r.payment_status,
        userId=r.user_id,
        guestName=r.guest_name,
        guestPhone=r.guest_phone,
        guestEmail=r.guest_email,
        specialRequests=r.special_requests,
        cancellationReason=r.cancellation_reason,
        cancellationFee=r.cancellation_fee,
        refundAmount=r.refund_amount,
        createdAt=r.created_at.isoformat() if r.created_at else None,
        updatedAt=r.updated_at.isoformat() if r.updated_at else None,
        cancelledAt=r.cancelled_at.isoformat() if r.cancelled_at else None,
    )


def _customer_reservation(db: Session, reservation_id: str, guest_phone: str | None, user: User | None) -> Reservation:
    """Reservation visible to the caller: the signed-in owner, or a guest who knows the phone number."""
    if user:
        r = reservation_service.get_reservation(db, reservation_id)
        if r.user_id != user.id:
            raise NotFound("예약을 찾을 수 없습니다.", code="RESERVATION_NOT_FOUND")
        return r
    return reservation_service.lookup_guest_reservation(db, reservation_id, (guest_phone or "").strip())


@router.get("/public/time-slots", response_model=list[TimeSlotOut])
def list_time_slots(db: Session = Depends(get_db)):
    return [
        TimeSlotOut(id=s.id, name=s.name, time=s.time, startTime=s.start, endTime=s.end, label=s.label)
        for s in time_slot_catalog.get_all_slots(db)
    ]


@router.post("/public/quote", response_model=QuoteOut)
def quote(body: QuoteIn, db: Session = Depends(get_db)):
    q = reservation_service.quote_reservation(db, body.facilityId, body.reservationDate, body.timeSlots)
    return QuoteOut(amount=q.amount, unitPrice=q.unit_price, slotCount=q.slot_count, isWeekend=q.is_weekend)


@router.get("/public/availability", response_model=AvailabilityOut)
def availability(facility_id: str, date: date, db: Session = Depends(get_db)):
    """Calendar view of free slots per site. May lag a concurrent booking by a few seconds."""
    matrix = reservation_service.get_availability(db, facility_id, date)
    sites = {s.id: s for s in facility_service.list_active_sites(db, facility_id)}
    return AvailabilityOut(
        facilityId=facility_id,
        date=date,
        sites={
            site_id: SiteAvailabilityOut(
                siteName=sites[site_id].name if site_id in sites else "",
                siteNumber=sites[site_id].site_number if site_id in sites else "",
                occupiedSlots=sorted(row["occupied"]),
                availableSlots=sorted(row["available"]),
            )
            for site_id, row in matrix.items()
        },
    )


@router.post("/public/reservations", response_model=ReservationCreated, status_code=201)
def create_reservation(body: ReservationCreate, db: Session = Depends(get_db),
                       user: User | None = Depends(get_optional_user)):
    customer = reservation_service.CustomerInfo(
        user_id=user.id if user else None,
        name=(user.full_name if user else body.guestName) or None,
        phone=(user.phone if user else body.guestPhone) or None,
        email=(user.email if user else body.guestEmail) or None,
    )
    result = reservation_service.reserve(db, reservation_service.ReserveRequest(
        facility_id=body.facilityId,
        site_id=body.siteId,
        reservation_date=body.reservationDate,
        time_slots=body.timeSlots,
        customer=customer,
        special_requests=body.specialRequests,
    ))
    if not result.ok:
        # SlotConflict -> 409, PolicyViolation -> 422; message passes through unchanged
        raise result.error
    r = result.reservation
    return ReservationCreated(
        reservationId=r.id,
        amount=r.total_amount,
        status=r.status,
        paymentStatus=r.payment_status,
        timeSlots=list(r.time_slots),
        timeSlotLabels=list(r.time_slot_labels or []),
    )


@router.get("/public/reservations/lookup", response_model=ReservationOut)
def lookup_reservation(reservationId: str, guestPhone: str, db: Session = Depends(get_db)):
    r = reservation_service.lookup_guest_reservation(db, reservationId.strip(), guestPhone.strip())
    return reservation_out(db, r)


@router.get("/public/reservations/{reservation_id}/cancellation-quote", response_model=CancellationQuoteOut)
def get_cancellation_quote(reservation_id: str, guestPhone: str | None = None, db: Session = Depends(get_db),
                           user: User | None = Depends(get_optional_user)):
    _customer_reservation(db, reservation_id, guestPhone, user)
    q = reservation_service.cancellation_quote(db, reservation_id)
    return CancellationQuoteOut(
        allowed=q.allowed,
        feeAmount=q.fee_amount,
        refundAmount=q.refund_amount,
        feeRate=q.fee_rate,
        penaltyApplied=q.penalty_applied,
        reason=q.reason,
    )


@router.post("/public/reservations/{reservation_id}/cancel", response_model=TransitionOut)
def cancel_reservation(reservation_id: str, body: GuestCancelIn, db: Session = Depends(get_db),
                       user: User | None = Depends(get_optional_user)):
    r = _customer_reservation(db, reservation_id, body.guestPhone, user)
    actor = Actor(id=user.id, role="customer") if user else Actor(id=f"guest:{r.guest_phone}", role="customer")
    t = reservation_service.transition_reservation(db, reservation_id, CANCEL, actor, memo=body.reason)
    return TransitionOut(
        reservationId=t.reservation_id,
        status=t.status,
        paymentStatus=t.payment_status,
        cancellationFee=t.cancellation_fee,
        refundAmount=t.refund_amount,
    )
