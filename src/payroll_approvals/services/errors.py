"""Error taxonomy for the approval workflow.

Every error raised before a transition commits carries an HTTP-style
status code and a stable machine-readable code. SideEffectError is the one
exception: it is only ever logged by the notification and audit subscribers.
"""

from __future__ import annotations


class ApprovalError(Exception):
    """Base class for workflow errors surfaced to callers."""

    status_code: int = 400
    code: str = "APPROVAL_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(ApprovalError):
    """Payroll or actor does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class InvalidStateError(ApprovalError):
    """Payroll is not pending, or is waiting at a different level."""

    status_code = 400
    code = "INVALID_STATE"


class ValidationError(ApprovalError):
    """Request is malformed (e.g. a rejection without a reason)."""

    status_code = 400
    code = "VALIDATION_ERROR"


class UnauthorizedError(ApprovalError):
    """Actor lacks the role, department or position required for a level."""

    status_code = 403
    code = "UNAUTHORIZED"

    def __init__(self, message: str, required_role: str):
        self.required_role = required_role
        super().__init__(message)


class ConcurrencyConflictError(ApprovalError):
    """The payroll changed between read and write."""

    status_code = 409
    code = "CONCURRENCY_CONFLICT"

    def __init__(self, payroll_id: object, expected_version: int, actual_version: int | None = None):
        self.payroll_id = payroll_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Payroll {payroll_id} was modified concurrently "
            f"(expected version {expected_version}"
            + (f", found {actual_version}" if actual_version is not None else "")
            + "). Refetch and retry."
        )


class DirectoryConfigurationError(ApprovalError):
    """A department the chain depends on (HR, Finance) is missing."""

    status_code = 500
    code = "DIRECTORY_CONFIGURATION"


class SideEffectError(Exception):
    """A notification or audit write failed after the transition committed."""

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause!r}")
