from datetime import date, datetime
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from bbq_booking.db.session import get_db
from bbq_booking.api.deps import get_operator
from bbq_booking.api.v1.routes.public import reservation_out
from bbq_booking.models.reservation import CANCELLED, COMPLETED, PENDING, WAITING
from bbq_booking.schemas.reservation import AdminReservationOut, TransitionIn, TransitionOut
from bbq_booking.schemas.settings import PolicyIn, PolicyOut, TimeSlotIn, TimeSlotOut
from bbq_booking.services import availability_service, reservation_service, settings_service, time_slot_catalog
from bbq_booking.services.policy_service import BookingPolicy, describe_booking_policy
from bbq_booking.services.reservation_lifecycle import Actor
from bbq_booking.services.time_slot_catalog import TimeSlot

router = APIRouter(tags=["admin"])

# shortcuts for the operator dashboard lists
VIEWS = {
    "pending": {"status": PENDING},
    # cancelled but not yet refunded, whether or not payment was ever confirmed
    "refund-pending": {"status": CANCELLED, "payment_status": (WAITING, COMPLETED)},
    "cancelled": {"status": CANCELLED},
}


def _policy_out(p: BookingPolicy) -> PolicyOut:
    return PolicyOut(
        maxAdvanceBookingDays=p.max_advance_days,
        minAdvanceBookingHours=p.min_advance_hours,
        cancellationDeadlineHours=p.cancellation_deadline_hours,
        cancellationPenaltyHours=p.cancellation_penalty_hours,
        cancellationFeeTiers=[[float(b), float(r)] for b, r in p.fee_tiers],
        description=describe_booking_policy(p),
    )


def _slots_out(slots) -> list[TimeSlotOut]:
    return [TimeSlotOut(id=s.id, name=s.name, time=s.time, startTime=s.start, endTime=s.end, label=s.label)
            for s in slots]


@router.get("/admin/reservations")
def list_reservations(view: str | None = None, status: str | None = None, paymentStatus: str | None = None,
                      facilityId: str | None = None, dateFrom: date | None = None, dateTo: date | None = None,
                      today: bool = False, limit: int = 50, offset: int = 0,
                      db: Session = Depends(get_db),
                      actor: Actor = Depends(get_operator)):
    filters = {"status": status, "payment_status": paymentStatus}
    if view:
        if view not in VIEWS:
            raise HTTPException(status_code=400, detail=f"unknown view: {view}")
        filters.update(VIEWS[view])
    if today:
        dateFrom = dateTo = datetime.now(time_slot_catalog.venue_tz()).date()
    total, items = reservation_service.list_reservations(
        db, facility_id=facilityId, date_from=dateFrom, date_to=dateTo, limit=limit, offset=offset, **filters,
    )
    return {"total": total, "items": [reservation_out(db, r, admin=True) for r in items]}


@router.get("/admin/reservations/{reservation_id}", response_model=AdminReservationOut)
def get_reservation(reservation_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_operator)):
    return reservation_out(db, reservation_service.get_reservation(db, reservation_id), admin=True)


@router.post("/admin/reservations/{reservation_id}/transition", response_model=TransitionOut)
def transition(reservation_id: str, body: TransitionIn, db: Session = Depends(get_db),
               actor: Actor = Depends(get_operator)):
    t = reservation_service.transition_reservation(db, reservation_id, body.action, actor, memo=body.memo)
    return TransitionOut(
        reservationId=t.reservation_id,
        status=t.status,
        paymentStatus=t.payment_status,
        cancellationFee=t.cancellation_fee,
        refundAmount=t.refund_amount,
    )


@router.get("/admin/settings/policy", response_model=PolicyOut)
def get_policy(db: Session = Depends(get_db), actor: Actor = Depends(get_operator)):
    return _policy_out(settings_service.get_booking_policy(db))


@router.put("/admin/settings/policy", response_model=PolicyOut)
def update_policy(body: PolicyIn, db: Session = Depends(get_db), actor: Actor = Depends(get_operator)):
    updates = {
        "max_advance_days": body.maxAdvanceBookingDays,
        "min_advance_hours": body.minAdvanceBookingHours,
        "cancellation_deadline_hours": body.cancellationDeadlineHours,
        "cancellation_penalty_hours": body.cancellationPenaltyHours,
        "fee_tiers": body.cancellationFeeTiers,
    }
    return _policy_out(settings_service.set_booking_policy(db, updates, actor=actor))


@router.get("/admin/settings/time-slots", response_model=list[TimeSlotOut])
def get_time_slots(db: Session = Depends(get_db), actor: Actor = Depends(get_operator)):
    return _slots_out(time_slot_catalog.get_all_slots(db))


@router.put("/admin/settings/time-slots", response_model=list[TimeSlotOut])
def update_time_slots(body: list[TimeSlotIn], db: Session = Depends(get_db), actor: Actor = Depends(get_operator)):
    slots = time_slot_catalog.set_time_slots(db, [TimeSlot(s.id, s.name.strip(), s.time.strip()) for s in body],
                                             actor=actor)
    # availability rows are keyed on the catalog ids
    availability_service.clear_matrix_cache()
    return _slots_out(slots)
