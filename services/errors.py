"""
Domain errors raised by the services layer.
Each carries the HTTP status the API answers with; main.py converts them to
``{"detail": message}`` responses, the same shape HTTPException produces.
"""
from __future__ import annotations

from typing import Any, Optional


class WorkflowError(Exception):
    status_code = 400

    def __init__(self, message: str, *, extra: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class NotFoundError(WorkflowError):
    status_code = 404


class PermissionDeniedError(WorkflowError):
    status_code = 403


class StateConflictError(WorkflowError):
    """Stale status or submission version; the caller should refresh."""

    status_code = 409


class ValidationFailedError(WorkflowError):
    status_code = 422


class BudgetExceededError(ValidationFailedError):
    pass


class PaymentNotConfirmedError(WorkflowError):
    status_code = 402


class PaymentProviderError(WorkflowError):
    """The payment provider rejected a call or was unreachable."""

    status_code = 502

    def __init__(self, message: str, *, code: Optional[str] = None, extra: Optional[dict[str, Any]] = None):
        super().__init__(message, extra=extra)
        self.code = code
