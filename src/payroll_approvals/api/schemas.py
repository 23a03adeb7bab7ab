"""Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from payroll_approvals.models import (
    ApprovalAction,
    ApprovalLevel,
    AuditAction,
    NotificationType,
    PayrollStatus,
)
from payroll_approvals.services.state_machine import APPROVAL_CHAIN


# One path segment per approval level, e.g. /approvals/hr-manager/{id}/approve
LevelSlug = Enum("LevelSlug", {rule.level.name: rule.slug for rule in APPROVAL_CHAIN}, type=str)


# ============================================================================
# Payroll schemas
# ============================================================================


class PayrollCreate(BaseModel):
    """Schema for submitting a payroll into the approval chain."""

    employee_id: UUID
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2100)
    gross_pay: Decimal = Field(ge=0)
    net_pay: Decimal = Field(ge=0)
    remarks: str | None = Field(default=None, max_length=1000)


class ApprovalHistoryResponse(BaseModel):
    """One recorded decision."""

    model_config = ConfigDict(from_attributes=True)

    sequence: int
    level: ApprovalLevel
    action: ApprovalAction
    actor_id: UUID
    timestamp: datetime
    remarks: str | None = None


class PayrollResponse(BaseModel):
    """Schema for payroll response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_id: UUID
    employee_id: UUID
    department_id: UUID
    month: int
    year: int
    gross_pay: Decimal
    net_pay: Decimal
    status: PayrollStatus
    current_level: ApprovalLevel | None = None
    version: int
    submitted_by_id: UUID
    submitted_at: datetime
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    rejected_by_id: UUID | None = None
    rejected_at: datetime | None = None
    history: list[ApprovalHistoryResponse] = []


class PayrollListResponse(BaseModel):
    """Schema for listing payrolls."""

    items: list[PayrollResponse]
    total: int


# ============================================================================
# Approval schemas
# ============================================================================


class ApprovalRequest(BaseModel):
    """Schema for approving at a level.

    `version` is the payroll version the client last saw; when given, the
    decision is refused if the payroll has moved on since.
    """

    remarks: str | None = Field(default=None, max_length=1000)
    version: int | None = Field(default=None, ge=0)


class RejectionRequest(BaseModel):
    """Schema for rejecting at a level."""

    reason: str = Field(min_length=1, max_length=1000)
    version: int | None = Field(default=None, ge=0)


class ApproverSummary(BaseModel):
    """Who acts next."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    full_name: str
    position: str | None = None


class TransitionResponse(BaseModel):
    """Schema for an approve/reject response."""

    success: bool = True
    message: str
    payroll: PayrollResponse
    next_approver: ApproverSummary | None = None


# ============================================================================
# Audit and notification schemas
# ============================================================================


class AuditEntryResponse(BaseModel):
    """Schema for an audit entry."""

    model_config = ConfigDict(from_attributes=True)

    audit_entry_id: UUID
    action: AuditAction
    entity_id: UUID
    performed_by_id: UUID
    details: dict[str, Any]
    created_at: datetime


class NotificationResponse(BaseModel):
    """Schema for an inbox notification."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    notification_id: UUID
    type: NotificationType
    subject_employee_id: UUID | None = None
    subject_payroll_id: UUID | None = None
    message: str
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="metadata_json")
    read: bool
    created_at: datetime


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str
