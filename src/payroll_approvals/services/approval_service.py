"""Multi-level payroll approval: the one place workflow state changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_approvals.events import AsyncEventEmitter, EventMetadata, PayrollTransitioned
from payroll_approvals.models import (
    ApprovalAction,
    ApprovalHistoryEntry,
    ApprovalLevel,
    Payroll,
    PayrollStatus,
    User,
)
from payroll_approvals.services.directory import ActorDirectory
from payroll_approvals.services.errors import (
    ConcurrencyConflictError,
    DirectoryConfigurationError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from payroll_approvals.services.payroll_service import PayrollService
from payroll_approvals.services.state_machine import (
    ApprovalStateMachine,
    DepartmentScope,
    TransitionOutcome,
)

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("payroll_approvals.security")


@dataclass
class TransitionResult:
    """Committed payroll plus who, if anyone, acts next."""

    payroll: Payroll
    next_approver: User | None = None
    side_effect_errors: list[Exception] = field(default_factory=list)

    @property
    def message(self) -> str:
        payroll = self.payroll
        if payroll.status == PayrollStatus.REJECTED:
            return "Payroll rejected"
        if payroll.status == PayrollStatus.APPROVED:
            return "Payroll fully approved"
        level = payroll.current_level.value if payroll.current_level else None
        return f"Payroll approved and forwarded to {level}"


class ApprovalService:
    """Service for approve/reject decisions along the approval chain.

    Every decision goes through `transition`, which:
    1. validates existence, version, status, level and authorization
    2. applies the status change and the history row in one transaction,
       guarded by the payroll's version
    3. emits PayrollTransitioned after commit; notification and audit
       subscribers run from there and can never undo the decision
    """

    def __init__(self, session: AsyncSession, emitter: AsyncEventEmitter | None = None):
        self.session = session
        self.emitter = emitter or AsyncEventEmitter()
        self.directory = ActorDirectory(session)
        self.payrolls = PayrollService(session, self.emitter)

    async def approve_at_level(
        self,
        level: ApprovalLevel,
        payroll_id: UUID,
        actor_id: UUID,
        remarks: str | None = None,
        expected_version: int | None = None,
    ) -> TransitionResult:
        return await self.transition(
            payroll_id,
            actor_id,
            level=level,
            decision=ApprovalAction.APPROVE,
            remarks=remarks,
            expected_version=expected_version,
        )

    async def reject_at_level(
        self,
        level: ApprovalLevel,
        payroll_id: UUID,
        actor_id: UUID,
        reason: str | None,
        expected_version: int | None = None,
    ) -> TransitionResult:
        if reason is None or not reason.strip():
            raise ValidationError("A rejection reason is required")
        return await self.transition(
            payroll_id,
            actor_id,
            level=level,
            decision=ApprovalAction.REJECT,
            remarks=reason.strip(),
            expected_version=expected_version,
        )

    async def transition(
        self,
        payroll_id: UUID,
        actor_id: UUID,
        *,
        level: ApprovalLevel,
        decision: ApprovalAction,
        remarks: str | None = None,
        expected_version: int | None = None,
    ) -> TransitionResult:
        """Apply one decision at one level.

        Raises:
            NotFoundError: payroll or actor does not exist
            ConcurrencyConflictError: version mismatch, or a concurrent
                decision won the race
            InvalidStateError: not PENDING, or waiting at another level
            UnauthorizedError: actor may not decide at this level
            DirectoryConfigurationError: HR/Finance department missing
        """
        payroll = await self.payrolls.get(payroll_id, refresh=True)
        if payroll is None:
            raise NotFoundError("Payroll not found")
        actor = await self.directory.users.find_by_id(actor_id)
        if actor is None:
            raise NotFoundError("Approver not found")

        if expected_version is not None and expected_version != payroll.version:
            raise ConcurrencyConflictError(payroll_id, expected_version, payroll.version)

        ApprovalStateMachine.validate_pending_at(payroll, level)
        await self._authorize(payroll, level, actor, decision)

        read_version = payroll.version
        outcome = ApprovalStateMachine.outcome(level, decision)
        await self._commit(payroll_id, read_version, level, decision, actor_id, remarks, outcome)

        payroll = await self.payrolls.require(payroll_id, refresh=True)
        logger.info(
            "Payroll %s %s at %s by %s; status=%s level=%s version=%d",
            payroll_id,
            decision.value,
            level.value,
            actor_id,
            payroll.status.value,
            payroll.current_level.value if payroll.current_level else None,
            payroll.version,
        )

        next_approver = None
        if decision == ApprovalAction.APPROVE and not outcome.is_final_approval:
            next_approver = await self.directory.resolve_approver(outcome.current_level, payroll)

        errors = await self.emitter.emit(
            PayrollTransitioned(
                metadata=EventMetadata.create(actor_id=actor_id),
                payroll_id=payroll_id,
                employee_id=payroll.employee_id,
                department_id=payroll.department_id,
                level=level,
                decision=decision,
                actor_id=actor_id,
                status=payroll.status,
                next_level=outcome.current_level if decision == ApprovalAction.APPROVE else None,
                next_approver_id=next_approver.user_id if next_approver else None,
                version=payroll.version,
                remarks=remarks,
            )
        )
        if errors:
            logger.warning(
                "%d side effect(s) failed after %s of payroll %s",
                len(errors),
                decision.value,
                payroll_id,
            )

        return TransitionResult(
            payroll=payroll,
            next_approver=next_approver,
            side_effect_errors=errors,
        )

    async def _authorize(
        self,
        payroll: Payroll,
        level: ApprovalLevel,
        actor: User,
        decision: ApprovalAction,
    ) -> None:
        rule = ApprovalStateMachine.rule_for(level)
        required_department_id = None
        if rule.department_scope == DepartmentScope.NAMED:
            department = await self.directory.functional_department(level)
            if department is None:
                raise DirectoryConfigurationError(f"{rule.department_label} department not found")
            required_department_id = department.department_id

        try:
            ApprovalStateMachine.authorize(
                level,
                actor,
                decision,
                employee_department_id=payroll.employee.department_id or payroll.department_id,
                required_department_id=required_department_id,
            )
        except UnauthorizedError as e:
            security_logger.warning(
                "Denied %s of payroll %s at %s for user %s (role=%s, functional_role=%s): %s",
                decision.value,
                payroll.payroll_id,
                level.value,
                actor.user_id,
                actor.role.value,
                actor.functional_role.value if actor.functional_role else None,
                e.message,
            )
            raise

    async def _commit(
        self,
        payroll_id: UUID,
        read_version: int,
        level: ApprovalLevel,
        decision: ApprovalAction,
        actor_id: UUID,
        remarks: str | None,
        outcome: TransitionOutcome,
    ) -> None:
        """Write status change and history row atomically.

        The update only matches while the payroll is still PENDING at
        `level` with the version that was read; anything else means a
        concurrent decision committed first.
        """
        now = datetime.now(timezone.utc)
        values: dict[str, Any] = {
            "status": outcome.status,
            "current_level": outcome.current_level,
            "version": Payroll.version + 1,
        }
        if decision == ApprovalAction.REJECT:
            values["rejected_by_id"] = actor_id
            values["rejected_at"] = now
        elif outcome.is_final_approval:
            values["approved_by_id"] = actor_id
            values["approved_at"] = now

        try:
            result = await self.session.execute(
                update(Payroll)
                .where(
                    Payroll.payroll_id == payroll_id,
                    Payroll.status == PayrollStatus.PENDING,
                    Payroll.current_level == level,
                    Payroll.version == read_version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.session.rollback()
                actual = await self.session.scalar(
                    select(Payroll.version).where(Payroll.payroll_id == payroll_id)
                )
                logger.warning(
                    "Concurrent decision on payroll %s at %s (read version %d, now %s)",
                    payroll_id,
                    level.value,
                    read_version,
                    actual,
                )
                raise ConcurrencyConflictError(payroll_id, read_version, actual)

            self.session.add(
                ApprovalHistoryEntry(
                    payroll_id=payroll_id,
                    sequence=read_version + 1,
                    level=level,
                    action=decision,
                    actor_id=actor_id,
                    timestamp=now,
                    remarks=remarks,
                )
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConcurrencyConflictError(payroll_id, read_version) from e
        except ConcurrencyConflictError:
            raise
        except Exception:
            await self.session.rollback()
            raise
