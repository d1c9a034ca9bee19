import json
import logging
import uuid

from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from bbq_booking.db.session import SessionLocal
from bbq_booking.core.config import settings
from bbq_booking.core.security import hash_password
from bbq_booking.models.user import User
from bbq_booking.models.facility import Facility
from bbq_booking.models.site import Site
from bbq_booking.models.setting import Setting
from bbq_booking.services.policy_service import DEFAULT_FEE_TIERS
from bbq_booking.services.settings_service import POLICY_INT_KEYS, FEE_TIERS_KEY
from bbq_booking.services.time_slot_catalog import TIME_SLOTS_KEY, default_slots

logger = logging.getLogger(__name__)

# name, type, capacity, weekday price, weekend price, number of sites
FACILITIES = [
    ("프라이빗 바베큐장", "private", 8, 100000, 120000, 4),
    ("단체 바베큐장", "group", 20, 180000, 220000, 2),
]


def ensure_user(db: Session, email: str, password: str, role: str, name: str):
    u = db.query(User).filter(User.email == email).first()
    if u:
        return
    db.add(
        User(
            id=str(uuid.uuid4()),
            email=email,
            full_name=name,
            role=role,
            password_hash=hash_password(password),
            is_active=True,
        )
    )
    db.commit()


def ensure_setting(db: Session, key: str, int_value: int | None = None, str_value: str | None = None):
    if db.get(Setting, key):
        return
    db.add(Setting(key=key, int_value=int_value, str_value=str_value))
    db.commit()


def ensure_facility(db: Session, name: str, type: str, capacity: int, weekday_price: int, weekend_price: int,
                    site_count: int):
    f = db.query(Facility).filter(Facility.name == name).first()
    if not f:
        f = Facility(
            id=str(uuid.uuid4()),
            name=name,
            type=type,
            description="",
            capacity=capacity,
            weekday_price=weekday_price,
            weekend_price=weekend_price,
            amenities=["grill", "table", "parking"],
            is_active=True,
        )
        db.add(f)
        db.flush()
    for n in range(1, site_count + 1):
        number = f"{type[0].upper()}{n}"
        exists = db.query(Site).filter(Site.facility_id == f.id, Site.site_number == number).first()
        if not exists:
            db.add(Site(id=str(uuid.uuid4()), facility_id=f.id, site_number=number,
                        name=f"{name} {n}번", capacity=capacity, is_active=True))
    db.commit()


def run(db=None):
    if db is None:
        db = SessionLocal()
    try:
        # If migrations haven't been applied yet, seeding must not crash the API.
        try:
            db.execute(text("SELECT 1 FROM users LIMIT 1"))
        except (ProgrammingError, OperationalError):
            db.rollback()
            logger.warning("users table not found yet. Skipping seeding (run alembic upgrade head).")
            return

        ensure_user(db, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD, "admin", "Admin")

        # policy defaults mirror the env values so the admin screen shows real rows
        for key in POLICY_INT_KEYS:
            ensure_setting(db, key, int_value=getattr(settings, key))
        ensure_setting(db, FEE_TIERS_KEY, str_value=json.dumps([list(t) for t in DEFAULT_FEE_TIERS]))
        ensure_setting(db, TIME_SLOTS_KEY, str_value=json.dumps(
            [{"id": s.id, "name": s.name, "time": s.time} for s in default_slots()], ensure_ascii=False))

        for row in FACILITIES:
            ensure_facility(db, *row)
        logger.info("seed complete")
    finally:
        db.close()


if __name__ == "__main__":
    from bbq_booking.core.logging_config import setup_logging
    setup_logging(settings.LOG_LEVEL)
    run()
