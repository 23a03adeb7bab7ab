"""Approval decision endpoints, one pair per level of the chain."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from payroll_approvals.api.dependencies import CurrentUserId, DbSession, Emitter
from payroll_approvals.api.schemas import (
    ApprovalRequest,
    ApproverSummary,
    ErrorResponse,
    LevelSlug,
    PayrollListResponse,
    PayrollResponse,
    RejectionRequest,
    TransitionResponse,
)
from payroll_approvals.models import ApprovalLevel
from payroll_approvals.services.approval_service import ApprovalService, TransitionResult
from payroll_approvals.services.payroll_service import PayrollService
from payroll_approvals.services.state_machine import RULES_BY_SLUG

router = APIRouter(prefix="/approvals", tags=["approvals"])

DECISION_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def _to_response(result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        message=result.message,
        payroll=PayrollResponse.model_validate(result.payroll),
        next_approver=ApproverSummary.model_validate(result.next_approver)
        if result.next_approver
        else None,
    )


@router.get(
    "/pending",
    response_model=PayrollListResponse,
)
async def list_pending(
    db: DbSession,
    user_id: CurrentUserId,
    level: Annotated[ApprovalLevel, Query()],
    department_id: UUID | None = None,
) -> PayrollListResponse:
    """List payrolls waiting at a level."""
    payrolls = await PayrollService(db).list_pending(level, department_id)
    return PayrollListResponse(
        items=[PayrollResponse.model_validate(p) for p in payrolls],
        total=len(payrolls),
    )


@router.post(
    "/{level}/{payroll_id}/approve",
    response_model=TransitionResponse,
    responses=DECISION_RESPONSES,
)
async def approve(
    db: DbSession,
    emitter: Emitter,
    user_id: CurrentUserId,
    level: Annotated[LevelSlug, Path()],
    payroll_id: Annotated[UUID, Path()],
    payload: ApprovalRequest | None = None,
) -> TransitionResponse:
    """Approve a payroll at the given level."""
    payload = payload or ApprovalRequest()
    service = ApprovalService(db, emitter)
    result = await service.approve_at_level(
        RULES_BY_SLUG[level.value].level,
        payroll_id,
        user_id,
        remarks=payload.remarks,
        expected_version=payload.version,
    )
    return _to_response(result)


@router.post(
    "/{level}/{payroll_id}/reject",
    response_model=TransitionResponse,
    responses=DECISION_RESPONSES,
)
async def reject(
    db: DbSession,
    emitter: Emitter,
    user_id: CurrentUserId,
    level: Annotated[LevelSlug, Path()],
    payroll_id: Annotated[UUID, Path()],
    payload: RejectionRequest,
) -> TransitionResponse:
    """Reject a payroll at the given level."""
    service = ApprovalService(db, emitter)
    result = await service.reject_at_level(
        RULES_BY_SLUG[level.value].level,
        payroll_id,
        user_id,
        reason=payload.reason,
        expected_version=payload.version,
    )
    return _to_response(result)
