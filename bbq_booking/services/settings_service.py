import json
import logging
from datetime import datetime, timezone
from sqlalchemy.orm import Session
from bbq_booking.core.config import settings
from bbq_booking.core.errors import ValidationError, storage_errors
from bbq_booking.models.setting import Setting
from bbq_booking.services.audit_service import log_audit
from bbq_booking.services.cache import TTLCache
from bbq_booking.services.policy_service import BookingPolicy, DEFAULT_FEE_TIERS, validate_policy

logger = logging.getLogger(__name__)

POLICY_INT_KEYS = {
    "MAX_ADVANCE_BOOKING_DAYS": "max_advance_days",
    "MIN_ADVANCE_BOOKING_HOURS": "min_advance_hours",
    "CANCELLATION_DEADLINE_HOURS": "cancellation_deadline_hours",
    "CANCELLATION_PENALTY_HOURS": "cancellation_penalty_hours",
}
FEE_TIERS_KEY = "CANCELLATION_FEE_TIERS"

_cache = TTLCache(settings.SETTINGS_CACHE_TTL_SECONDS)
_MISSING = (None, None)


def _read(db: Session, key: str) -> tuple:
    hit = _cache.get(key)
    if hit is not None:
        return hit
    with storage_errors(f"settings read {key}"):
        s = db.get(Setting, key)
    value = (s.int_value, s.str_value) if s else _MISSING
    _cache.set(key, value)
    return value


def _stage(db: Session, key: str, int_value: int | None = None, str_value: str | None = None) -> None:
    with storage_errors(f"settings write {key}"):
        s = db.get(Setting, key)
        if not s:
            db.add(Setting(key=key, int_value=int_value, str_value=str_value))
        else:
            s.int_value = int_value
            s.str_value = str_value
            s.updated_at = datetime.now(timezone.utc)


def save_settings(db: Session, rows: dict, actor=None, action: str = "settings.updated",
                  entity_id: str = "", details: dict | None = None) -> None:
    """Write ``{key: (int_value, str_value)}`` rows and the audit entry in one commit."""
    try:
        for key, (int_value, str_value) in rows.items():
            _stage(db, key, int_value, str_value)
        if actor is not None:
            log_audit(db, actor.id, action, "setting", entity_id or ",".join(rows), details,
                      actor_role=actor.role)
        with storage_errors("settings commit"):
            db.commit()
    except Exception:
        db.rollback()
        raise
    for key in rows:
        _cache.invalidate(key)


def get_int_setting(db: Session, key: str, default: int) -> int:
    int_value, _ = _read(db, key)
    if int_value is not None:
        return int(int_value)
    return default


def get_json_setting(db: Session, key: str, default):
    _, str_value = _read(db, key)
    if str_value:
        try:
            return json.loads(str_value)
        except (json.JSONDecodeError, TypeError):
            logger.warning("settings row %s holds invalid JSON; using defaults", key)
    return default


def json_row(value) -> tuple:
    return (None, json.dumps(value, ensure_ascii=False))


def set_json_setting(db: Session, key: str, value, actor=None, action: str = "settings.updated",
                     details: dict | None = None) -> None:
    save_settings(db, {key: json_row(value)}, actor=actor, action=action, entity_id=key, details=details)


def _stored_fee_tiers(raw) -> tuple:
    if not raw:
        return DEFAULT_FEE_TIERS
    try:
        return tuple((float(b), float(r)) for b, r in raw)
    except (TypeError, ValueError):
        logger.warning("settings row %s holds malformed fee tiers; using defaults", FEE_TIERS_KEY)
        return DEFAULT_FEE_TIERS


def get_booking_policy(db: Session) -> BookingPolicy:
    values = {
        field: get_int_setting(db, key, getattr(settings, key))
        for key, field in POLICY_INT_KEYS.items()
    }
    fee_tiers = _stored_fee_tiers(get_json_setting(db, FEE_TIERS_KEY, None))
    return BookingPolicy(fee_tiers=fee_tiers, **values)


def set_booking_policy(db: Session, updates: dict, actor=None) -> BookingPolicy:
    """Apply a partial policy update; the merged policy must validate.

    Every changed row and the audit entry land in a single commit.
    """
    current = get_booking_policy(db)
    merged = {
        "max_advance_days": current.max_advance_days,
        "min_advance_hours": current.min_advance_hours,
        "cancellation_deadline_hours": current.cancellation_deadline_hours,
        "cancellation_penalty_hours": current.cancellation_penalty_hours,
        "fee_tiers": current.fee_tiers,
    }
    for k, v in updates.items():
        if v is None:
            continue
        if k not in merged:
            raise ValidationError(f"unknown policy field: {k}")
        merged[k] = tuple(tuple(t) for t in v) if k == "fee_tiers" else int(v)

    policy = BookingPolicy(**merged)
    errors = validate_policy(policy)
    if errors:
        raise ValidationError("; ".join(errors), code="INVALID_POLICY")

    rows = {
        key: (getattr(policy, field), None)
        for key, field in POLICY_INT_KEYS.items()
        if getattr(policy, field) != getattr(current, field)
    }
    if policy.fee_tiers != current.fee_tiers:
        rows[FEE_TIERS_KEY] = json_row([[float(b), float(r)] for b, r in policy.fee_tiers])
    save_settings(db, rows, actor=actor, action="settings.policy_updated", entity_id="booking_policy",
                  details={k: v for k, v in updates.items() if v is not None})
    logger.info("booking policy updated: %s", merged)
    return policy


def clear_settings_cache() -> None:
    _cache.invalidate()
