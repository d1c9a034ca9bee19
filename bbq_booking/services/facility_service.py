"""Facility/Site read-model used by quoting and availability.

Facility snapshots are cached for ``SETTINGS_CACHE_TTL_SECONDS``; a briefly
stale price only affects quotes, never a stored reservation amount.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from bbq_booking.core.config import settings
from bbq_booking.core.errors import NotFound, ValidationError, storage_errors
from bbq_booking.models.facility import Facility
from bbq_booking.models.site import Site
from bbq_booking.services.cache import TTLCache

_facility_cache = TTLCache(settings.SETTINGS_CACHE_TTL_SECONDS)


@dataclass(frozen=True)
class FacilityInfo:
    id: str
    name: str
    type: str
    capacity: int
    weekday_price: int
    weekend_price: int
    is_active: bool
    amenities: tuple = field(default_factory=tuple)

    @classmethod
    def from_model(cls, f: Facility) -> "FacilityInfo":
        return cls(
            id=f.id, name=f.name, type=f.type or "", capacity=f.capacity,
            weekday_price=f.weekday_price, weekend_price=f.weekend_price,
            is_active=bool(f.is_active), amenities=tuple(f.amenities or ()),
        )


def get_facility_info(db: Session, facility_id: str) -> FacilityInfo | None:
    hit = _facility_cache.get(facility_id)
    if hit is not None:
        return hit
    with storage_errors("facility read"):
        f = db.get(Facility, facility_id)
    if not f:
        return None
    info = FacilityInfo.from_model(f)
    _facility_cache.set(facility_id, info)
    return info


def list_active_sites(db: Session, facility_id: str) -> list[Site]:
    with storage_errors("site list"):
        return list(db.execute(
            select(Site)
            .where(Site.facility_id == facility_id, Site.is_active == True)  # noqa: E712
            .order_by(Site.site_number)
        ).scalars())


def _check_facility_numbers(capacity: int, weekday_price: int, weekend_price: int) -> None:
    if weekday_price < 0 or weekend_price < 0:
        raise ValidationError("요금은 0 이상이어야 합니다.", code="INVALID_PRICE")
    if capacity < 1:
        raise ValidationError("수용 인원은 1명 이상이어야 합니다.", code="INVALID_CAPACITY")


def create_facility(db: Session, name: str, weekday_price: int, weekend_price: int, capacity: int = 1,
                    type: str = "", amenities=None, description: str = "") -> Facility:
    _check_facility_numbers(capacity, weekday_price, weekend_price)
    f = Facility(
        id=str(uuid.uuid4()),
        name=name,
        type=type,
        description=description,
        capacity=capacity,
        weekday_price=weekday_price,
        weekend_price=weekend_price,
        amenities=sorted(set(amenities or [])),
        is_active=True,
    )
    db.add(f)
    db.commit()
    return f


def create_site(db: Session, facility_id: str, site_number: str, name: str = "", capacity: int = 1) -> Site:
    if not db.get(Facility, facility_id):
        raise NotFound("시설을 찾을 수 없습니다.", code="FACILITY_NOT_FOUND")
    exists = db.execute(
        select(Site).where(Site.facility_id == facility_id, Site.site_number == site_number)
    ).scalar_one_or_none()
    if exists:
        raise ValidationError(f"이미 존재하는 사이트 번호입니다: {site_number}", code="DUPLICATE_SITE_NUMBER")
    s = Site(id=str(uuid.uuid4()), facility_id=facility_id, site_number=site_number,
             name=name or site_number, capacity=capacity, is_active=True)
    db.add(s)
    db.commit()
    return s


def update_facility_prices(db: Session, facility_id: str, weekday_price: int, weekend_price: int) -> Facility:
    """Change list prices; reservations keep the amount they were created with."""
    f = db.get(Facility, facility_id)
    if not f:
        raise NotFound("시설을 찾을 수 없습니다.", code="FACILITY_NOT_FOUND")
    _check_facility_numbers(f.capacity, weekday_price, weekend_price)
    f.weekday_price = weekday_price
    f.weekend_price = weekend_price
    f.updated_at = datetime.now(timezone.utc)
    db.commit()
    _facility_cache.invalidate(facility_id)
    return f


def set_facility_active(db: Session, facility_id: str, is_active: bool) -> Facility:
    f = db.get(Facility, facility_id)
    if not f:
        raise NotFound("시설을 찾을 수 없습니다.", code="FACILITY_NOT_FOUND")
    f.is_active = bool(is_active)
    f.updated_at = datetime.now(timezone.utc)
    db.commit()
    _facility_cache.invalidate(facility_id)
    return f


def clear_facility_cache() -> None:
    _facility_cache.invalidate()
