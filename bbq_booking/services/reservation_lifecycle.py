"""Reservation status / payment status state machine.

    approve        PENDING              -> CONFIRMED   WAITING -> COMPLETED
    reject         PENDING              -> CANCELLED   -> REFUNDED
    cancel         PENDING | CONFIRMED  -> CANCELLED   payment unchanged
    mark_refunded  CANCELLED            -> CANCELLED   WAITING | COMPLETED -> REFUNDED

Nothing leaves CANCELLED except the refund move, and nothing enters PENDING
after creation.
"""
from dataclasses import dataclass
from datetime import datetime

from bbq_booking.core.errors import InvalidTransition, ValidationError
from bbq_booking.models.reservation import (
    PENDING, CONFIRMED, CANCELLED, ACTIVE_STATUSES, WAITING, COMPLETED, REFUNDED,
)

APPROVE = "approve"
REJECT = "reject"
CANCEL = "cancel"
MARK_REFUNDED = "mark_refunded"
ACTIONS = (APPROVE, REJECT, CANCEL, MARK_REFUNDED)
_ALIASES = {"markRefunded": MARK_REFUNDED, "mark-refunded": MARK_REFUNDED}

OPERATOR_ROLES = ("manager", "admin", "superadmin")
OPERATOR_ONLY = (APPROVE, REJECT, MARK_REFUNDED)


@dataclass(frozen=True)
class Actor:
    id: str
    role: str

    @property
    def is_operator(self) -> bool:
        return self.role in OPERATOR_ROLES


@dataclass(frozen=True)
class Transition:
    status: str
    payment_status: str


def normalize_action(action: str) -> str:
    action = _ALIASES.get(action, action)
    if action not in ACTIONS:
        raise ValidationError(f"알 수 없는 작업입니다: {action}", code="INVALID_ACTION")
    return action


def next_state(status: str, payment_status: str, action: str, actor: Actor) -> Transition:
    action = normalize_action(action)
    if action in OPERATOR_ONLY and not actor.is_operator:
        raise InvalidTransition(f"관리자만 수행할 수 있는 작업입니다: {action}", code="ACTION_NOT_ALLOWED")

    if action == APPROVE and status == PENDING:
        return Transition(CONFIRMED, COMPLETED)
    if action == REJECT and status == PENDING:
        return Transition(CANCELLED, REFUNDED)
    if action == CANCEL and status in ACTIVE_STATUSES:
        return Transition(CANCELLED, payment_status)
    if action == MARK_REFUNDED and status == CANCELLED and payment_status in (WAITING, COMPLETED):
        return Transition(CANCELLED, REFUNDED)

    raise InvalidTransition(f"{status}/{payment_status} 상태에서는 '{action}' 작업을 할 수 없습니다.")


def _append_memo(existing: str | None, line: str) -> str:
    return f"{existing}\n{line}" if existing else line


def apply_transition(reservation, action: str, actor: Actor, memo: str | None, now: datetime) -> Transition:
    """Move ``reservation`` to its next state and stamp the audit fields."""
    action = normalize_action(action)
    memo = (memo or "").strip() or None
    if action == CANCEL and actor.is_operator and not memo:
        raise ValidationError("관리자 취소에는 사유가 필요합니다.", code="CANCELLATION_REASON_REQUIRED")

    t = next_state(reservation.status, reservation.payment_status, action, actor)

    if action == APPROVE:
        note = memo or "[승인]"
    elif action == REJECT:
        note = memo or "[관리자 거절]"
    elif action == CANCEL:
        note = memo or "[사용자 취소]"
    else:
        note = memo or "[환불 완료]"

    if t.status == CANCELLED and reservation.status != CANCELLED:
        reservation.cancellation_reason = note
        reservation.cancelled_at = now
        reservation.cancelled_by = actor.id

    reservation.admin_memo = _append_memo(reservation.admin_memo, f"[{action} by {actor.role}:{actor.id}] {note}")
    reservation.status = t.status
    reservation.payment_status = t.payment_status
    reservation.updated_at = now
    return t
