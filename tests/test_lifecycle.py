from itertools import product
from types import SimpleNamespace

import pytest

from bbq_booking.core.errors import InvalidTransition, ValidationError
from bbq_booking.models.reservation import PENDING, CONFIRMED, CANCELLED, WAITING, COMPLETED, REFUNDED
from bbq_booking.services.reservation_lifecycle import (
    ACTIONS, Actor, Transition, apply_transition, next_state, normalize_action,
)
from conftest import NOW

ADMIN = Actor("admin-1", "admin")
CUSTOMER = Actor("user-1", "customer")


def _reservation(status=PENDING, payment_status=WAITING):
    return SimpleNamespace(status=status, payment_status=payment_status, admin_memo=None,
                           cancellation_reason=None, cancelled_at=None, cancelled_by=None, updated_at=None)


def test_operator_moves():
    assert next_state(PENDING, WAITING, "approve", ADMIN) == Transition(CONFIRMED, COMPLETED)
    assert next_state(PENDING, WAITING, "reject", ADMIN) == Transition(CANCELLED, REFUNDED)
    assert next_state(CONFIRMED, COMPLETED, "cancel", ADMIN) == Transition(CANCELLED, COMPLETED)
    assert next_state(CANCELLED, COMPLETED, "mark_refunded", ADMIN) == Transition(CANCELLED, REFUNDED)


def test_customer_may_only_cancel():
    assert next_state(PENDING, WAITING, "cancel", CUSTOMER) == Transition(CANCELLED, WAITING)
    with pytest.raises(InvalidTransition):
        next_state(PENDING, WAITING, "approve", CUSTOMER)


def test_cancelled_reservation_cannot_be_approved():
    with pytest.raises(InvalidTransition):
        next_state(CANCELLED, WAITING, "approve", ADMIN)


def test_refund_is_not_repeated():
    with pytest.raises(InvalidTransition):
        next_state(CANCELLED, REFUNDED, "mark_refunded", ADMIN)


def test_action_aliases_and_unknown_actions():
    assert normalize_action("markRefunded") == "mark_refunded"
    with pytest.raises(ValidationError):
        normalize_action("delete")


@pytest.mark.parametrize("status, payment, action", list(product(
    (PENDING, CONFIRMED, CANCELLED), (WAITING, COMPLETED, REFUNDED), ACTIONS,
)))
def test_no_transition_leaves_cancelled_or_enters_pending(status, payment, action):
    try:
        t = next_state(status, payment, action, ADMIN)
    except InvalidTransition:
        return
    assert t.status != PENDING
    if status == CANCELLED:
        assert t.status == CANCELLED


def test_operator_cancel_requires_reason():
    r = _reservation()
    with pytest.raises(ValidationError):
        apply_transition(r, "cancel", ADMIN, "  ", NOW)
    assert r.status == PENDING


def test_apply_transition_stamps_audit_fields():
    r = _reservation(CONFIRMED, COMPLETED)
    apply_transition(r, "cancel", ADMIN, "우천으로 인한 휴장", NOW)
    assert r.status == CANCELLED
    assert r.payment_status == COMPLETED
    assert r.cancellation_reason == "우천으로 인한 휴장"
    assert r.cancelled_by == "admin-1"
    assert r.cancelled_at == NOW
    assert r.admin_memo == "[cancel by admin:admin-1] 우천으로 인한 휴장"

    apply_transition(r, "mark_refunded", ADMIN, None, NOW)
    assert r.payment_status == REFUNDED
    assert r.admin_memo.endswith("[mark_refunded by admin:admin-1] [환불 완료]")
