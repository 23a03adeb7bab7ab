"""Payroll approval services."""

from payroll_approvals.services.errors import (
    ApprovalError,
    ConcurrencyConflictError,
    DirectoryConfigurationError,
    InvalidStateError,
    NotFoundError,
    SideEffectError,
    UnauthorizedError,
    ValidationError,
)
from payroll_approvals.services.state_machine import ApprovalStateMachine, LevelRule
from payroll_approvals.services.directory import ActorDirectory
from payroll_approvals.services.payroll_service import PayrollService
from payroll_approvals.services.approval_service import ApprovalService, TransitionResult
from payroll_approvals.services.audit_service import AuditTrailWriter
from payroll_approvals.services.notification_service import (
    DatabaseNotificationSink,
    NotificationFanout,
    NotificationSink,
)
from payroll_approvals.services.subscribers import build_emitter, register_default_subscribers

__all__ = [
    "ApprovalError",
    "ConcurrencyConflictError",
    "DirectoryConfigurationError",
    "InvalidStateError",
    "NotFoundError",
    "SideEffectError",
    "UnauthorizedError",
    "ValidationError",
    "ApprovalStateMachine",
    "LevelRule",
    "ActorDirectory",
    "PayrollService",
    "ApprovalService",
    "TransitionResult",
    "AuditTrailWriter",
    "DatabaseNotificationSink",
    "NotificationFanout",
    "NotificationSink",
    "build_emitter",
    "register_default_subscribers",
]
