"""
Domain errors raised by the scheduling engine.

Every error is an expected, caller-recoverable outcome. The message is shown to
the user verbatim, so it must say *why* the operation was refused.
"""

from typing import Any, Optional


class ReservationError(Exception):
    """Base class; subclasses fix the error kind and HTTP status"""

    kind = "ReservationError"
    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        body = {"detail": self.message, "error": self.kind}
        body.update({k: v for k, v in self.context.items() if v is not None})
        return body


class ConflictError(ReservationError):
    kind = "ConflictError"
    status_code = 409

    def __init__(self, message: str, conflicting_reservation_id: Optional[int] = None):
        super().__init__(message, conflictingReservationId=conflicting_reservation_id)
        self.conflicting_reservation_id = conflicting_reservation_id


class InvalidStateTransition(ReservationError):
    kind = "InvalidStateTransition"
    status_code = 409


class PermissionDenied(ReservationError):
    kind = "PermissionDenied"
    status_code = 403


class ValidationError(ReservationError):
    kind = "ValidationError"
    status_code = 422


class PolicyViolation(ReservationError):
    kind = "PolicyViolation"
    status_code = 400


class NotFoundError(ReservationError):
    kind = "NotFound"
    status_code = 404
