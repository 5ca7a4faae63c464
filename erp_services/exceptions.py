from decimal import Decimal
from typing import Any, Dict, Optional


class ERPServiceError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationFailedError(ERPServiceError):
    status_code = 400
    code = "VALIDATION_ERROR"


class UnbalancedJournalError(ValidationFailedError):
    code = "UNBALANCED_JOURNAL"

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        self.total_debit = total_debit
        self.total_credit = total_credit
        self.difference = abs(total_debit - total_credit)
        super().__init__(
            f"Journal is not balanced: debit {total_debit:.2f}, credit {total_credit:.2f}, "
            f"difference {self.difference:.2f}",
            details={
                "total_debit": float(total_debit),
                "total_credit": float(total_credit),
                "difference": float(self.difference),
            },
        )


class InvalidStateTransitionError(ValidationFailedError):
    code = "INVALID_STATE_TRANSITION"


class AuthenticationError(ERPServiceError):
    status_code = 401
    code = "UNAUTHORIZED"


class PermissionDeniedError(ERPServiceError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(ERPServiceError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(ERPServiceError):
    status_code = 409
    code = "CONFLICT"


class UpstreamServiceError(ERPServiceError):
    status_code = 502
    code = "UPSTREAM_ERROR"
