import uuid
from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

from bbq_booking.core.security import hash_password
from bbq_booking.db.session import Base, make_engine
from bbq_booking.models.user import User
from bbq_booking.models import audit_log, facility, reservation, setting, site  # noqa: F401
from bbq_booking.services import availability_service, facility_service, settings_service, time_slot_catalog

# Monday morning at the venue
NOW = datetime(2026, 6, 1, 9, 0, tzinfo=time_slot_catalog.venue_tz())


@pytest.fixture(autouse=True)
def _clear_caches():
    settings_service.clear_settings_cache()
    facility_service.clear_facility_cache()
    availability_service.clear_matrix_cache()
    yield
    settings_service.clear_settings_cache()
    facility_service.clear_facility_cache()
    availability_service.clear_matrix_cache()


@pytest.fixture
def engine(tmp_path):
    # file-backed so several threads/sessions see the same database
    eng = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def bbq_facility(db):
    return facility_service.create_facility(
        db, name="프라이빗 바베큐장", weekday_price=100000, weekend_price=120000, capacity=8, type="private",
    )


@pytest.fixture
def site_a(db, bbq_facility):
    return facility_service.create_site(db, bbq_facility.id, "A1", name="A-1")


@pytest.fixture
def site_b(db, bbq_facility):
    return facility_service.create_site(db, bbq_facility.id, "A2", name="A-2")


@pytest.fixture
def make_user(db):
    def _make(role: str, email: str | None = None, password: str = "secret123", phone: str = "") -> User:
        u = User(
            id=str(uuid.uuid4()),
            email=email or f"{role}-{uuid.uuid4().hex[:6]}@bbq.local",
            full_name=role.title(),
            phone=phone,
            role=role,
            password_hash=hash_password(password),
            is_active=True,
        )
        db.add(u)
        db.commit()
        return u
    return _make
