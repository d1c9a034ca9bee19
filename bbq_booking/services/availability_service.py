"""Slot conflict detection for a site on a date.

Slot ids are opaque tokens: two reservations conflict when their slot sets
intersect. That is only sound because the catalog rejects overlapping windows
(see ``time_slot_catalog.validate_catalog``).
"""
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from bbq_booking.core.config import settings
from bbq_booking.core.errors import NotFound, storage_errors
from bbq_booking.models.reservation import Reservation, ACTIVE_STATUSES
from bbq_booking.models.site import Site
from bbq_booking.services import facility_service, time_slot_catalog
from bbq_booking.services.cache import TTLCache

# calendar rendering only; never consulted by reserve
_matrix_cache = TTLCache(settings.AVAILABILITY_CACHE_TTL_SECONDS,
                         maxsize=settings.AVAILABILITY_CACHE_MAXSIZE)


def occupied_slots(db: Session, site_id: str, day: date, lock: bool = False) -> set[int]:
    """Slots held by PENDING/CONFIRMED reservations, always read from the database.

    ``lock`` takes row locks on the matching reservations for the rest of the transaction.
    """
    q = select(Reservation.time_slots).where(
        Reservation.site_id == site_id,
        Reservation.reservation_date == day,
        Reservation.status.in_(ACTIVE_STATUSES),
    )
    if lock:
        q = q.with_for_update()
    with storage_errors("availability read"):
        rows = db.execute(q).scalars()
        occupied = set()
        for slots in rows:
            occupied.update(int(s) for s in slots or [])
    return occupied


def check_availability(db: Session, facility_id: str, site_id: str, day: date, slot_ids) -> bool:
    """True when none of ``slot_ids`` is held on the site; a taken slot is a normal False."""
    with storage_errors("site read"):
        site = db.get(Site, site_id)
    if not site or site.facility_id != facility_id:
        raise NotFound("사이트를 찾을 수 없습니다.", code="SITE_NOT_FOUND")
    return not (set(slot_ids) & occupied_slots(db, site_id, day))


def get_availability_matrix(db: Session, facility_id: str, day: date, use_cache: bool = True) -> dict:
    """{site_id: {"occupied": set, "available": set}} for the facility's active sites.

    Best-effort: results may be up to AVAILABILITY_CACHE_TTL_SECONDS old.
    """
    key = (facility_id, day)
    if use_cache:
        hit = _matrix_cache.get(key)
        if hit is not None:
            return hit

    catalog_ids = {s.id for s in time_slot_catalog.get_all_slots(db)}
    sites = facility_service.list_active_sites(db, facility_id)
    with storage_errors("availability matrix read"):
        rows = db.execute(
            select(Reservation.site_id, Reservation.time_slots).where(
                Reservation.facility_id == facility_id,
                Reservation.reservation_date == day,
                Reservation.status.in_(ACTIVE_STATUSES),
            )
        ).all()

    by_site: dict[str, set] = {}
    for site_id, slots in rows:
        by_site.setdefault(site_id, set()).update(int(s) for s in slots or [])

    matrix = {}
    for site in sites:
        occupied = by_site.get(site.id, set())
        matrix[site.id] = {"occupied": set(occupied), "available": catalog_ids - occupied}

    _matrix_cache.set(key, matrix)
    return matrix


def invalidate_matrix(facility_id: str, day: date) -> None:
    _matrix_cache.invalidate((facility_id, day))


def clear_matrix_cache() -> None:
    _matrix_cache.invalidate()
