from datetime import timedelta

import pytest

from bbq_booking.services.policy_service import (
    BookingPolicy, can_book, can_cancel, calculate_cancellation_fee, fee_rate_for, validate_policy,
    describe_booking_policy,
)
from conftest import NOW

POLICY = BookingPolicy(max_advance_days=30, min_advance_hours=2)


def test_min_advance_boundary_is_exclusive():
    decision = can_book(NOW + timedelta(hours=2), POLICY, NOW)
    assert not decision.allowed
    assert decision.reason == "최소 2시간 전까지 예약해야 합니다."
    assert can_book(NOW + timedelta(hours=2, minutes=1), POLICY, NOW).allowed


def test_max_advance_boundary_is_inclusive():
    assert can_book(NOW + timedelta(days=30), POLICY, NOW).allowed
    decision = can_book(NOW + timedelta(days=30, minutes=1), POLICY, NOW)
    assert not decision.allowed
    assert decision.reason == "최대 30일 전까지만 예약 가능합니다."


def test_past_start_is_rejected():
    assert not can_book(NOW - timedelta(hours=1), POLICY, NOW).allowed


@pytest.mark.parametrize("hours, fee, refund", [
    (1, 100000, 0),
    (10, 30000, 70000),
    (30, 10000, 90000),
    (72, 0, 100000),
])
def test_fee_tiers(hours, fee, refund):
    result = calculate_cancellation_fee(100000, NOW + timedelta(hours=hours), NOW)
    assert result.fee_amount == fee
    assert result.refund_amount == refund
    assert result.fee_amount + result.refund_amount == 100000


def test_tier_bounds_belong_to_the_cheaper_tier():
    assert fee_rate_for(2) == 0.3
    assert fee_rate_for(24) == 0.1
    assert fee_rate_for(48) == 0.0
    assert fee_rate_for(1.99) == 1.0


def test_fee_rounds_half_up_to_whole_won():
    assert calculate_cancellation_fee(33333, NOW + timedelta(hours=10), NOW).fee_amount == 10000
    assert calculate_cancellation_fee(5, NOW + timedelta(hours=30), NOW).fee_amount == 1


def test_cancel_deadline():
    policy = BookingPolicy(cancellation_deadline_hours=24)
    ok = can_cancel(NOW + timedelta(hours=25), policy, NOW)
    assert ok.allowed and not ok.penalty_applied

    late = can_cancel(NOW + timedelta(hours=23), policy, NOW)
    assert not late.allowed
    assert late.reason == "예약 24시간 전까지만 취소 가능합니다."


def test_penalty_threshold_is_separate_from_deadline():
    policy = BookingPolicy(cancellation_deadline_hours=2, cancellation_penalty_hours=24)
    decision = can_cancel(NOW + timedelta(hours=10), policy, NOW)
    assert decision.allowed
    assert decision.penalty_applied
    assert decision.reason


def test_validate_policy():
    assert validate_policy(BookingPolicy()) == []
    assert validate_policy(BookingPolicy(max_advance_days=0))
    assert validate_policy(BookingPolicy(fee_tiers=((24, 0.3), (2, 1.0))))
    assert validate_policy(BookingPolicy(fee_tiers=((2, 1.5),)))


def test_validate_policy_rejects_malformed_fee_tiers():
    assert validate_policy(BookingPolicy(fee_tiers=()))
    errors = validate_policy(BookingPolicy(fee_tiers=((2, 1.0, 5), (24, 0.3))))
    assert len(errors) == 1
    assert "[2, 1.0, 5]" in errors[0]
    assert validate_policy(BookingPolicy(fee_tiers=((24,),)))


def test_describe_booking_policy():
    assert describe_booking_policy(POLICY) == "최대 30일 전까지, 최소 2시간 전까지 예약 가능합니다."
