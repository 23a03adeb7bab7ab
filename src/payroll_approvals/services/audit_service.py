"""Append-only audit trail for payroll workflow actions."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_approvals.events.types import PayrollSubmitted, PayrollTransitioned
from payroll_approvals.models import (
    ApprovalAction,
    ApprovalLevel,
    AuditAction,
    AuditEntity,
    AuditEntry,
    Payroll,
    User,
)
from payroll_approvals.services.errors import SideEffectError
from payroll_approvals.services.state_machine import ApprovalStateMachine

logger = logging.getLogger(__name__)


def _level_label(level: ApprovalLevel | None) -> str | None:
    return level.value.replace("_", " ") if level else None


def build_transition_details(
    payroll: Payroll,
    level: ApprovalLevel,
    decision: ApprovalAction,
    actor: User,
    remarks: str | None,
) -> dict[str, Any]:
    """Denormalized snapshot of a decision, readable without joins."""
    outcome = ApprovalStateMachine.outcome(level, decision)
    verb = "Approved" if decision == ApprovalAction.APPROVE else "Rejected"
    department = payroll.department
    return {
        "employee_id": str(payroll.employee_id),
        "employee_name": payroll.employee.full_name,
        "department_id": str(payroll.department_id),
        "department_name": department.name if department else None,
        "month": payroll.month,
        "year": payroll.year,
        "gross_pay": str(payroll.gross_pay),
        "net_pay": str(payroll.net_pay),
        "level": level.value,
        "next_level": outcome.current_level.value
        if decision == ApprovalAction.APPROVE and outcome.current_level
        else None,
        "status": outcome.status.value,
        "performed_by_name": actor.full_name,
        "performed_by_position": actor.position,
        "remarks": remarks or f"{verb} by {_level_label(level)}",
    }


class AuditTrailWriter:
    """Writes one audit entry per workflow action, in its own session.

    Entries are never updated or deleted. Writes happen after the workflow
    change has committed, so a failure here cannot undo it.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record_transition(
        self,
        payroll: Payroll,
        level: ApprovalLevel,
        decision: ApprovalAction,
        actor: User,
        remarks: str | None = None,
    ) -> AuditEntry:
        """Append the audit entry for an approve/reject decision."""
        entry = AuditEntry(
            action=AuditAction.APPROVE if decision == ApprovalAction.APPROVE else AuditAction.REJECT,
            entity=AuditEntity.PAYROLL,
            entity_id=payroll.payroll_id,
            performed_by_id=actor.user_id,
            details=build_transition_details(payroll, level, decision, actor, remarks),
        )
        return await self._append(entry)

    async def record_submission(
        self,
        payroll: Payroll,
        submitter: User,
        remarks: str | None = None,
    ) -> AuditEntry:
        """Append the audit entry for a payroll entering the chain."""
        first_level = ApprovalStateMachine.first_level()
        entry = AuditEntry(
            action=AuditAction.SUBMIT,
            entity=AuditEntity.PAYROLL,
            entity_id=payroll.payroll_id,
            performed_by_id=submitter.user_id,
            details={
                "employee_id": str(payroll.employee_id),
                "employee_name": payroll.employee.full_name,
                "department_id": str(payroll.department_id),
                "department_name": payroll.department.name if payroll.department else None,
                "month": payroll.month,
                "year": payroll.year,
                "gross_pay": str(payroll.gross_pay),
                "net_pay": str(payroll.net_pay),
                "level": None,
                "next_level": first_level.value,
                "status": payroll.status.value,
                "performed_by_name": submitter.full_name,
                "remarks": remarks or f"Submitted for {_level_label(first_level).lower()} approval",
            },
        )
        return await self._append(entry)

    async def list_for_payroll(self, payroll_id: UUID) -> list[AuditEntry]:
        """Audit entries of one payroll, oldest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(AuditEntry)
                .where(
                    AuditEntry.entity == AuditEntity.PAYROLL,
                    AuditEntry.entity_id == payroll_id,
                )
                .order_by(AuditEntry.created_at, AuditEntry.audit_entry_id)
            )
            return list(result.scalars().all())

    async def handle_transition(self, event: PayrollTransitioned) -> None:
        """Subscriber for PayrollTransitioned."""
        payroll, actor = await self._load(event.payroll_id, event.actor_id)
        await self.record_transition(payroll, event.level, event.decision, actor, event.remarks)

    async def handle_submission(self, event: PayrollSubmitted) -> None:
        """Subscriber for PayrollSubmitted."""
        payroll, submitter = await self._load(event.payroll_id, event.submitted_by_id)
        await self.record_submission(payroll, submitter, event.remarks)

    async def _load(self, payroll_id: UUID, user_id: UUID) -> tuple[Payroll, User]:
        async with self.session_factory() as session:
            payroll = await session.get(Payroll, payroll_id)
            user = await session.get(User, user_id)
        if payroll is None or user is None:
            raise SideEffectError(
                "audit lookup",
                LookupError(f"payroll={payroll_id} user={user_id}"),
            )
        return payroll, user

    async def _append(self, entry: AuditEntry) -> AuditEntry:
        try:
            async with self.session_factory() as session:
                session.add(entry)
                await session.commit()
        except Exception as e:
            logger.exception(
                "Audit write failed for %s %s",
                entry.action.value,
                entry.entity_id,
            )
            raise SideEffectError("audit write", e) from e
        logger.debug("Audit entry %s recorded for %s", entry.action.value, entry.entity_id)
        return entry
