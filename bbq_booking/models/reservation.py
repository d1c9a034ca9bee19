from sqlalchemy import String, Integer, Date, DateTime, Text, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import date, datetime, timezone
from bbq_booking.db.session import Base

PENDING = "PENDING"
CONFIRMED = "CONFIRMED"
CANCELLED = "CANCELLED"
ACTIVE_STATUSES = (PENDING, CONFIRMED)

WAITING = "WAITING"
COMPLETED = "COMPLETED"
REFUNDED = "REFUNDED"


class Reservation(Base):
    __tablename__ = "reservations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    facility_id: Mapped[str] = mapped_column(String(36), index=True)
    site_id: Mapped[str] = mapped_column(String(36), index=True)
    reservation_date: Mapped[date] = mapped_column(Date, index=True)

    time_slots: Mapped[list] = mapped_column(JSON)  # sorted slot ids, e.g. [1, 2]
    # labels resolved at booking time; later catalog edits don't rename history
    time_slot_labels: Mapped[list] = mapped_column(JSON, default=list)

    total_amount: Mapped[int] = mapped_column(Integer)  # frozen at creation

    status: Mapped[str] = mapped_column(String(20), default=PENDING, index=True)  # PENDING, CONFIRMED, CANCELLED
    payment_status: Mapped[str] = mapped_column(String(20), default=WAITING, index=True)  # WAITING, COMPLETED, REFUNDED

    # registered customer, or guest fields
    user_id: Mapped[str] = mapped_column(String(36), nullable=True, index=True)
    guest_name: Mapped[str] = mapped_column(String(100), nullable=True)
    guest_phone: Mapped[str] = mapped_column(String(40), nullable=True, index=True)
    guest_email: Mapped[str] = mapped_column(String(320), nullable=True)

    special_requests: Mapped[str] = mapped_column(Text, nullable=True)
    admin_memo: Mapped[str] = mapped_column(Text, nullable=True)

    cancellation_reason: Mapped[str] = mapped_column(String(500), nullable=True)
    cancelled_by: Mapped[str] = mapped_column(String(80), nullable=True)
    cancellation_fee: Mapped[int] = mapped_column(Integer, nullable=True)
    refund_amount: Mapped[int] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    cancelled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)


class ReservationSlot(Base):
    """One claimed (site, date, slot) of a non-cancelled reservation."""
    __tablename__ = "reservation_slots"
    __table_args__ = (
        # Hard business rule: a slot on a site/date is held by at most one live reservation
        UniqueConstraint("site_id", "reservation_date", "time_slot", name="uq_reservation_slot_once"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reservation_id: Mapped[str] = mapped_column(String(36), index=True)
    site_id: Mapped[str] = mapped_column(String(36))
    reservation_date: Mapped[date] = mapped_column(Date)
    time_slot: Mapped[int] = mapped_column(Integer)
