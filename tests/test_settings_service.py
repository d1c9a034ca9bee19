from datetime import datetime

import pytest
from sqlalchemy import select

from bbq_booking.core.errors import ValidationError
from bbq_booking.models.audit_log import AuditLog
from bbq_booking.models.setting import Setting
from bbq_booking.services import settings_service
from bbq_booking.services.reservation_lifecycle import Actor

ADMIN = Actor(id="admin-1", role="admin")


def test_policy_update_writes_rows_and_audit_together(db, session_factory):
    policy = settings_service.set_booking_policy(
        db, {"min_advance_hours": 6, "fee_tiers": [[12, 0.5]]}, actor=ADMIN,
    )
    assert policy.min_advance_hours == 6

    with session_factory() as s:
        assert s.get(Setting, "MIN_ADVANCE_BOOKING_HOURS").int_value == 6
        assert s.get(Setting, settings_service.FEE_TIERS_KEY).str_value == "[[12.0, 0.5]]"
        audits = s.execute(select(AuditLog)).scalars().all()
    assert [(a.action, a.entity_id, a.actor_role) for a in audits] == [
        ("settings.policy_updated", "booking_policy", "admin"),
    ]


def test_failed_audit_leaves_policy_untouched(db, session_factory, monkeypatch):
    def broken_audit(*args, **kwargs):
        raise RuntimeError("audit table unavailable")

    monkeypatch.setattr(settings_service, "log_audit", broken_audit)
    with pytest.raises(RuntimeError):
        settings_service.set_booking_policy(db, {"min_advance_hours": 6, "max_advance_days": 10}, actor=ADMIN)

    with session_factory() as s:
        assert s.execute(select(Setting)).scalars().all() == []
    settings_service.clear_settings_cache()
    assert settings_service.get_booking_policy(db).min_advance_hours == 2


def test_invalid_policy_writes_nothing(db, session_factory):
    with pytest.raises(ValidationError):
        settings_service.set_booking_policy(db, {"fee_tiers": [[2, 1.0, 5]]}, actor=ADMIN)

    with session_factory() as s:
        assert s.execute(select(Setting)).scalars().all() == []
        assert s.execute(select(AuditLog)).scalars().all() == []


def test_rewriting_a_setting_bumps_updated_at(db):
    settings_service.set_json_setting(db, "TIME_SLOTS", [{"id": 1, "name": "1부", "time": "10:00-14:00"}])
    row = db.get(Setting, "TIME_SLOTS")
    row.updated_at = datetime(2020, 1, 1)
    db.commit()

    settings_service.set_json_setting(db, "TIME_SLOTS", [{"id": 1, "name": "점심", "time": "11:00-15:00"}])
    db.refresh(row)
    assert row.updated_at.replace(tzinfo=None) > datetime(2020, 1, 2)
    assert "점심" in row.str_value


def test_new_values_are_visible_after_commit(db):
    assert settings_service.get_booking_policy(db).max_advance_days == 30
    settings_service.set_booking_policy(db, {"max_advance_days": 14})
    assert settings_service.get_booking_policy(db).max_advance_days == 14
