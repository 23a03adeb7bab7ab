"""ORM models for the payroll approval service."""

from payroll_approvals.models.base import Base, TimestampMixin
from payroll_approvals.models.enums import (
    MANAGERIAL_ROLES,
    ActorRole,
    ApprovalAction,
    ApprovalLevel,
    AuditAction,
    AuditEntity,
    FunctionalRole,
    NotificationType,
    PayrollStatus,
)
from payroll_approvals.models.organization import Department, User
from payroll_approvals.models.payroll import ApprovalHistoryEntry, Payroll
from payroll_approvals.models.audit import AuditEntry
from payroll_approvals.models.notification import Notification

__all__ = [
    "Base",
    "TimestampMixin",
    # Enums
    "MANAGERIAL_ROLES",
    "ActorRole",
    "ApprovalAction",
    "ApprovalLevel",
    "AuditAction",
    "AuditEntity",
    "FunctionalRole",
    "NotificationType",
    "PayrollStatus",
    # Models
    "Department",
    "User",
    "Payroll",
    "ApprovalHistoryEntry",
    "AuditEntry",
    "Notification",
]
