"""Booking policy engine: advance-booking window, cancellation deadline, fee tiers.

Everything here is pure; callers pass the current time explicitly and load the
configured numbers with ``settings_service.get_booking_policy``.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

# (hours-until-reservation upper bound, fee rate); anything at or past the last bound is free
DEFAULT_FEE_TIERS = ((2, 1.0), (24, 0.3), (48, 0.1))


@dataclass(frozen=True)
class BookingPolicy:
    max_advance_days: int = 30
    min_advance_hours: int = 2
    cancellation_deadline_hours: int = 24
    # "a fee applies from here" threshold; kept separate from the hard deadline
    cancellation_penalty_hours: int = 24
    fee_tiers: tuple = DEFAULT_FEE_TIERS


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    reason: str | None = None


@dataclass(frozen=True)
class CancelDecision:
    allowed: bool
    reason: str | None = None
    penalty_applied: bool = False


@dataclass(frozen=True)
class CancellationFee:
    fee_amount: int
    refund_amount: int
    fee_rate: float


def can_book(proposed: datetime, policy: BookingPolicy, now: datetime) -> PolicyDecision:
    min_booking_time = now + timedelta(hours=policy.min_advance_hours)
    if proposed <= min_booking_time:
        return PolicyDecision(False, f"최소 {policy.min_advance_hours}시간 전까지 예약해야 합니다.")

    max_booking_time = now + timedelta(days=policy.max_advance_days)
    if proposed > max_booking_time:
        return PolicyDecision(False, f"최대 {policy.max_advance_days}일 전까지만 예약 가능합니다.")

    return PolicyDecision(True)


def can_cancel(reservation_dt: datetime, policy: BookingPolicy, now: datetime) -> CancelDecision:
    deadline = reservation_dt - timedelta(hours=policy.cancellation_deadline_hours)
    if now > deadline:
        return CancelDecision(False, f"예약 {policy.cancellation_deadline_hours}시간 전까지만 취소 가능합니다.")

    penalty_from = reservation_dt - timedelta(hours=policy.cancellation_penalty_hours)
    penalty_applied = now > penalty_from
    return CancelDecision(
        True,
        "당일 취소로 수수료가 부과됩니다." if penalty_applied else None,
        penalty_applied,
    )


def fee_rate_for(hours_until: float, tiers=DEFAULT_FEE_TIERS) -> float:
    for bound, rate in tiers:
        if hours_until < bound:
            return float(rate)
    return 0.0


def round_won(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_cancellation_fee(original_amount: int, reservation_dt: datetime, now: datetime,
                               tiers=DEFAULT_FEE_TIERS) -> CancellationFee:
    hours_until = (reservation_dt - now).total_seconds() / 3600
    rate = fee_rate_for(hours_until, tiers)
    fee = round_won(Decimal(original_amount) * Decimal(str(rate)))
    return CancellationFee(fee_amount=fee, refund_amount=original_amount - fee, fee_rate=rate)


def validate_policy(policy: BookingPolicy) -> list[str]:
    errors = []
    if policy.max_advance_days < 1:
        errors.append("최대 사전 예약일은 1일 이상이어야 합니다")
    if policy.min_advance_hours < 1:
        errors.append("최소 사전 예약시간은 1시간 이상이어야 합니다")
    if policy.max_advance_days * 24 < policy.min_advance_hours:
        errors.append("최대 사전 예약일과 최소 사전 예약시간 설정에 모순이 있습니다")
    if policy.cancellation_deadline_hours < 0 or policy.cancellation_penalty_hours < 0:
        errors.append("취소 기한은 0시간 이상이어야 합니다")

    if not policy.fee_tiers:
        errors.append("수수료 구간은 1개 이상이어야 합니다")
    last_bound = None
    for tier in policy.fee_tiers:
        if len(tier) != 2:
            errors.append(f"수수료 구간은 [시간, 수수료율] 쌍이어야 합니다: {list(tier)}")
            continue
        bound, rate = tier
        if not 0 <= rate <= 1:
            errors.append(f"수수료율은 0과 1 사이여야 합니다: {rate}")
        if last_bound is not None and bound <= last_bound:
            errors.append("수수료 구간은 시간 오름차순이어야 합니다")
        last_bound = bound
    return errors


def describe_booking_policy(policy: BookingPolicy) -> str:
    return (f"최대 {policy.max_advance_days}일 전까지, "
            f"최소 {policy.min_advance_hours}시간 전까지 예약 가능합니다.")
