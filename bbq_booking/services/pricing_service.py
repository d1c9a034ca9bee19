from datetime import date

SATURDAY, SUNDAY = 5, 6


def is_weekend(day: date) -> bool:
    return day.weekday() in (SATURDAY, SUNDAY)


def unit_price(facility, day: date) -> int:
    return int(facility.weekend_price if is_weekend(day) else facility.weekday_price)


def quote(facility, day: date, slot_ids) -> int:
    """Flat per-slot price; an empty selection costs 0 (callers reject it separately)."""
    return unit_price(facility, day) * len(set(slot_ids))
