"""Deployment-wide catalog of the daily time slots (1부, 2부, ...).

Slots come from the TIME_SLOT_n / TIME_SLOT_n_NAME environment values and can
be replaced at runtime through the ``TIME_SLOTS`` settings row. Reservations
store slot ids only; labels are resolved here.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from bbq_booking.core.config import settings
from bbq_booking.core.errors import ValidationError
from bbq_booking.services import settings_service

TIME_SLOTS_KEY = "TIME_SLOTS"
TIME_WINDOW_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]-([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


@dataclass(frozen=True)
class TimeSlot:
    id: int
    name: str
    time: str  # "HH:MM-HH:MM"

    @property
    def start(self) -> str:
        return self.time.split("-")[0].strip()

    @property
    def end(self) -> str:
        return self.time.split("-")[1].strip()

    @property
    def label(self) -> str:
        return f"{self.name} ({self.time})"

    def as_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "time": self.time, "startTime": self.start, "endTime": self.end}


def default_slots() -> list[TimeSlot]:
    return [
        TimeSlot(i, getattr(settings, f"TIME_SLOT_{i}_NAME"), getattr(settings, f"TIME_SLOT_{i}"))
        for i in range(1, 5)
    ]


def get_all_slots(db: Session) -> list[TimeSlot]:
    raw = settings_service.get_json_setting(db, TIME_SLOTS_KEY, None)
    if not raw:
        return default_slots()
    return sorted((TimeSlot(int(s["id"]), str(s["name"]), str(s["time"])) for s in raw), key=lambda s: s.id)


def get_slot(db: Session, slot_id: int) -> TimeSlot | None:
    for s in get_all_slots(db):
        if s.id == slot_id:
            return s
    return None


def label_for(db: Session, slot_id: int) -> str:
    # display must never fail on a stale id
    slot = get_slot(db, slot_id)
    if not slot:
        return f"{slot_id}부 (시간 미정)"
    return slot.label


def validate_time_format(value: str) -> bool:
    return bool(value) and bool(TIME_WINDOW_RE.match(value))


def _minutes(hhmm: str) -> int:
    h, m = hhmm.split(":")
    return int(h) * 60 + int(m)


def validate_catalog(slots: list[TimeSlot]) -> list[str]:
    """Return every problem with ``slots``: bad formats, duplicate ids, overlapping windows.

    A window whose end is not after its start runs past midnight (22:00-02:00).
    """
    errors = []
    seen = set()
    for s in slots:
        if s.id in seen:
            errors.append(f"slot{s.id}: 중복된 시간대 ID입니다.")
        seen.add(s.id)
        if not validate_time_format(s.time):
            errors.append(f"slot{s.id}: {s.time} - 올바르지 않은 시간 형식입니다. (예: 10:00-14:00)")
    if errors:
        return errors

    windows = []
    for s in slots:
        start, end = _minutes(s.start), _minutes(s.end)
        if end <= start:
            end += 24 * 60
        windows.append((start, end, s))
    windows.sort(key=lambda w: w[0])

    for (_, prev_end, prev), (start, _, cur) in zip(windows, windows[1:]):
        if start < prev_end:
            errors.append(f"slot{cur.id}: {cur.time} - {prev.name} ({prev.time})와 시간이 겹칩니다.")
    # the last window may wrap into the first one's morning
    if len(windows) > 1:
        first_start, _, first = windows[0]
        _, last_end, last = windows[-1]
        if last_end > first_start + 24 * 60:
            errors.append(f"slot{last.id}: {last.time} - {first.name} ({first.time})와 시간이 겹칩니다.")
    return errors


def set_time_slots(db: Session, slots: list[TimeSlot], actor=None) -> list[TimeSlot]:
    if not slots:
        raise ValidationError("시간대는 최소 1개 이상이어야 합니다.", code="INVALID_TIME_SLOTS")
    errors = validate_catalog(slots)
    if errors:
        raise ValidationError("; ".join(errors), code="INVALID_TIME_SLOTS")
    rows = [{"id": s.id, "name": s.name, "time": s.time} for s in slots]
    settings_service.set_json_setting(db, TIME_SLOTS_KEY, rows, actor=actor,
                                      action="settings.time_slots_updated",
                                      details={"slots": [s.as_dict() for s in slots]})
    return get_all_slots(db)


def venue_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def slot_start_datetime(day: date, slot: TimeSlot, tz=None) -> datetime:
    h, m = slot.start.split(":")
    return datetime.combine(day, time(int(h), int(m)), tzinfo=tz or venue_tz())


def earliest_start(db: Session, day: date, slot_ids) -> datetime:
    """Start of the earliest requested slot on ``day``; unknown ids fall back to midnight."""
    starts = []
    for sid in slot_ids:
        slot = get_slot(db, sid)
        if slot and validate_time_format(slot.time):
            starts.append(slot_start_datetime(day, slot))
    if not starts:
        return datetime.combine(day, time(0, 0), tzinfo=venue_tz())
    return min(starts)
