"""Enumerations shared by the workflow models and services."""

from __future__ import annotations

from enum import Enum


class PayrollStatus(str, Enum):
    """Payroll status values.

    PENDING_PAYMENT and PAID are set by the payment side of the system;
    the approval workflow only treats them as terminal.
    """

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAID = "PAID"


class ApprovalLevel(str, Enum):
    """Sequential approval gates, in chain order."""

    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    HR_MANAGER = "HR_MANAGER"
    FINANCE_DIRECTOR = "FINANCE_DIRECTOR"
    SUPER_ADMIN = "SUPER_ADMIN"


class ApprovalAction(str, Enum):
    """Decision recorded in the approval history."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"


class ActorRole(str, Enum):
    """Account role: department-scoped staff vs. global."""

    EMPLOYEE = "EMPLOYEE"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class FunctionalRole(str, Enum):
    """Functional position of an admin inside the approval chain."""

    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    HR_MANAGER = "HR_MANAGER"
    FINANCE_DIRECTOR = "FINANCE_DIRECTOR"


class AuditAction(str, Enum):
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class AuditEntity(str, Enum):
    PAYROLL = "PAYROLL"


class NotificationType(str, Enum):
    PAYROLL_SUBMITTED = "PAYROLL_SUBMITTED"
    PAYROLL_APPROVED = "PAYROLL_APPROVED"
    PAYROLL_COMPLETED = "PAYROLL_COMPLETED"
    PAYROLL_REJECTED = "PAYROLL_REJECTED"


# Any of these satisfies the department-head gate: every HR-manager and
# finance-director title is also a head/director/manager title.
MANAGERIAL_ROLES = frozenset(FunctionalRole)
