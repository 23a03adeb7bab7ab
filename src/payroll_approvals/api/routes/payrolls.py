"""Payroll submission and read endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from payroll_approvals.api.dependencies import CurrentUserId, DbSession, Emitter, SessionFactory
from payroll_approvals.api.schemas import (
    ApprovalHistoryResponse,
    AuditEntryResponse,
    ErrorResponse,
    PayrollCreate,
    PayrollResponse,
)
from payroll_approvals.services.audit_service import AuditTrailWriter
from payroll_approvals.services.payroll_service import PayrollService

router = APIRouter(prefix="/payrolls", tags=["payrolls"])


@router.post(
    "",
    response_model=PayrollResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def submit_payroll(
    db: DbSession,
    emitter: Emitter,
    user_id: CurrentUserId,
    payload: PayrollCreate,
) -> PayrollResponse:
    """Submit a payroll into the approval chain."""
    payroll = await PayrollService(db, emitter).submit(
        employee_id=payload.employee_id,
        month=payload.month,
        year=payload.year,
        gross_pay=payload.gross_pay,
        net_pay=payload.net_pay,
        submitted_by_id=user_id,
        remarks=payload.remarks,
    )
    return PayrollResponse.model_validate(payroll)


@router.get(
    "/{payroll_id}",
    response_model=PayrollResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll(
    db: DbSession,
    user_id: CurrentUserId,
    payroll_id: Annotated[UUID, Path()],
) -> PayrollResponse:
    """Get a payroll with its approval history."""
    payroll = await PayrollService(db).require(payroll_id)
    return PayrollResponse.model_validate(payroll)


@router.get(
    "/{payroll_id}/history",
    response_model=list[ApprovalHistoryResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_history(
    db: DbSession,
    user_id: CurrentUserId,
    payroll_id: Annotated[UUID, Path()],
) -> list[ApprovalHistoryResponse]:
    """Get the recorded decisions for a payroll, in order."""
    entries = await PayrollService(db).history(payroll_id)
    return [ApprovalHistoryResponse.model_validate(e) for e in entries]


@router.get(
    "/{payroll_id}/audit",
    response_model=list[AuditEntryResponse],
    responses={404: {"model": ErrorResponse}},
)
async def get_audit_trail(
    db: DbSession,
    session_factory: SessionFactory,
    user_id: CurrentUserId,
    payroll_id: Annotated[UUID, Path()],
) -> list[AuditEntryResponse]:
    """Get the audit entries recorded for a payroll."""
    await PayrollService(db).require(payroll_id)
    entries = await AuditTrailWriter(session_factory).list_for_payroll(payroll_id)
    return [AuditEntryResponse.model_validate(e) for e in entries]
