"""
Errors raised by the client package.

HTTP failures map onto ``ApiError`` subclasses by status code and always keep
the server's ``detail`` message verbatim so it can be shown to the user.
"""
from __future__ import annotations

from typing import Any, Optional

RECONCILIATION_MESSAGE = "Payment succeeded but status update failed - contact support"


class ClientError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientValidationError(ClientError):
    """Input rejected locally; no request was sent."""


class ActionInProgressError(ClientError):
    """Another action on the same work request has not finished yet."""


class ApiError(ClientError):
    def __init__(self, status_code: int, message: str, payload: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


class ReauthenticationRequired(ApiError):
    pass


class AuthorizationError(ApiError):
    pass


class NotFoundApiError(ApiError):
    pass


class StateConflictError(ApiError):
    """The server state moved on (status or submission version); refresh and retry."""


class ServerValidationError(ApiError):
    pass


class PaymentFailedError(ClientError):
    """The payer's confirmation failed; the work request is unchanged and a retry is allowed."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class ReconciliationError(ClientError):
    """
    Money moved but the approval was not recorded. Never retried automatically;
    the pending record stays on disk for ``resume_pending``.
    """

    def __init__(self, payment_intent_id: str, cause: Optional[Exception] = None):
        super().__init__(RECONCILIATION_MESSAGE)
        self.payment_intent_id = payment_intent_id
        self.cause = cause


_STATUS_ERRORS: dict[int, type[ApiError]] = {
    401: ReauthenticationRequired,
    403: AuthorizationError,
    404: NotFoundApiError,
    409: StateConflictError,
    400: ServerValidationError,
    422: ServerValidationError,
}


def error_for_status(status_code: int, message: str, payload: Optional[dict[str, Any]] = None) -> ApiError:
    return _STATUS_ERRORS.get(status_code, ApiError)(status_code, message, payload)
