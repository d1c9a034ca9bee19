from sqlalchemy import String, Integer, Boolean, DateTime, Text, JSON, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from bbq_booking.db.session import Base

class Facility(Base):
    __tablename__ = "facilities"
    __table_args__ = (
        CheckConstraint("weekday_price >= 0", name="ck_facility_weekday_price"),
        CheckConstraint("weekend_price >= 0", name="ck_facility_weekend_price"),
        CheckConstraint("capacity >= 1", name="ck_facility_capacity"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    type: Mapped[str] = mapped_column(String(40), default="")  # category label, e.g. "프리미엄"
    description: Mapped[str] = mapped_column(Text, default="")
    capacity: Mapped[int] = mapped_column(Integer, default=1)  # max guests

    # flat rate per time-slot, KRW
    weekday_price: Mapped[int] = mapped_column(Integer, default=0)
    weekend_price: Mapped[int] = mapped_column(Integer, default=0)

    amenities: Mapped[list] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
