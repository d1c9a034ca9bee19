"""Error kinds raised (or returned) by the reservation core.

``SlotConflict`` and ``PolicyViolation`` are expected business outcomes: the
reserve operation hands them back inside its result instead of raising, and
their ``message`` is shown to the customer verbatim. ``StorageError`` is the
only retryable kind.
"""
import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ReservationError(Exception):
    code = "RESERVATION_ERROR"
    status_code = 400

    def __init__(self, message: str = "", code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(ReservationError):
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFound(ValidationError):
    code = "NOT_FOUND"
    status_code = 404


class PolicyViolation(ReservationError):
    code = "POLICY_VIOLATION"
    status_code = 422

    @property
    def reason(self) -> str:
        return self.message


class SlotConflict(ReservationError):
    code = "RESERVATION_CONFLICT"
    status_code = 409
    default_message = "이미 예약된 시간대입니다"

    def __init__(self, slots=None, message: str | None = None):
        super().__init__(message or self.default_message)
        self.slots = sorted(slots or [])


class InvalidTransition(ReservationError):
    code = "INVALID_TRANSITION"
    status_code = 409


class NotCancellable(ReservationError):
    code = "NOT_CANCELLABLE"
    status_code = 409


class StorageError(ReservationError):
    code = "STORAGE_ERROR"
    status_code = 503
    public_message = "잠시 후 다시 시도해주세요."


@contextmanager
def storage_errors(operation: str):
    """Re-raise infrastructure failures as ``StorageError`` (logged in full)."""
    try:
        yield
    except ReservationError:
        raise
    except SQLAlchemyError as e:
        logger.exception("storage failure during %s", operation)
        raise StorageError(f"{operation} failed: {e.__class__.__name__}") from e
