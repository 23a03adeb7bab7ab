"""Payroll submission and queries."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_approvals.events import AsyncEventEmitter, EventMetadata, PayrollSubmitted
from payroll_approvals.models import (
    ApprovalHistoryEntry,
    ApprovalLevel,
    Payroll,
    PayrollStatus,
)
from payroll_approvals.services.directory import UserDirectory
from payroll_approvals.services.errors import (
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from payroll_approvals.services.state_machine import ApprovalStateMachine

logger = logging.getLogger(__name__)


class PayrollService:
    """Service for creating and reading payroll records.

    Operations:
    - submit: create a PENDING payroll at the first approval level
    - get / require: load one payroll with employee, department and history
    - list_pending: the queue waiting at one level
    - history: the decisions recorded so far
    """

    def __init__(self, session: AsyncSession, emitter: AsyncEventEmitter | None = None):
        self.session = session
        self.emitter = emitter or AsyncEventEmitter()
        self.users = UserDirectory(session)

    async def get(self, payroll_id: UUID, refresh: bool = False) -> Payroll | None:
        """Load a payroll; `refresh` overwrites any stale copy in the session."""
        query = select(Payroll).where(Payroll.payroll_id == payroll_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.unique().scalar_one_or_none()

    async def require(self, payroll_id: UUID, refresh: bool = False) -> Payroll:
        payroll = await self.get(payroll_id, refresh=refresh)
        if payroll is None:
            raise NotFoundError("Payroll not found")
        return payroll

    async def list_pending(
        self,
        level: ApprovalLevel,
        department_id: UUID | None = None,
    ) -> list[Payroll]:
        """Payrolls waiting at `level`, oldest submission first."""
        query = select(Payroll).where(
            Payroll.status == PayrollStatus.PENDING,
            Payroll.current_level == level,
        )
        if department_id is not None:
            query = query.where(Payroll.department_id == department_id)
        result = await self.session.execute(query.order_by(Payroll.submitted_at))
        return list(result.unique().scalars().all())

    async def history(self, payroll_id: UUID) -> list[ApprovalHistoryEntry]:
        await self.require(payroll_id)
        result = await self.session.execute(
            select(ApprovalHistoryEntry)
            .where(ApprovalHistoryEntry.payroll_id == payroll_id)
            .order_by(ApprovalHistoryEntry.sequence)
        )
        return list(result.scalars().all())

    async def submit(
        self,
        employee_id: UUID,
        month: int,
        year: int,
        gross_pay: Decimal,
        net_pay: Decimal,
        submitted_by_id: UUID,
        remarks: str | None = None,
    ) -> Payroll:
        """Create a payroll and put it in front of the first approver.

        Raises:
            ValidationError: period or amounts are out of range
            NotFoundError: employee or submitter does not exist
            InvalidStateError: a payroll already exists for that period
        """
        if not 1 <= month <= 12:
            raise ValidationError("Month must be between 1 and 12")
        if gross_pay < 0 or net_pay < 0:
            raise ValidationError("Pay amounts cannot be negative")
        if net_pay > gross_pay:
            raise ValidationError("Net pay cannot exceed gross pay")

        employee = await self.users.find_by_id(employee_id)
        if employee is None:
            raise NotFoundError("Employee not found")
        if employee.department_id is None:
            raise ValidationError("Employee has no department")
        submitter = await self.users.find_by_id(submitted_by_id)
        if submitter is None:
            raise NotFoundError("Submitter not found")

        existing = await self.session.execute(
            select(Payroll.payroll_id).where(
                Payroll.employee_id == employee_id,
                Payroll.month == month,
                Payroll.year == year,
            )
        )
        if existing.first() is not None:
            raise InvalidStateError(
                f"A payroll already exists for this employee for {month}/{year}"
            )

        first_level = ApprovalStateMachine.first_level()
        payroll = Payroll(
            employee_id=employee_id,
            department_id=employee.department_id,
            month=month,
            year=year,
            gross_pay=gross_pay,
            net_pay=net_pay,
            status=PayrollStatus.PENDING,
            current_level=first_level,
            version=0,
            submitted_by_id=submitted_by_id,
            submitted_at=datetime.now(timezone.utc),
        )
        self.session.add(payroll)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise InvalidStateError(
                f"A payroll already exists for this employee for {month}/{year}"
            ) from e

        payroll = await self.require(payroll.payroll_id, refresh=True)
        logger.info(
            "Payroll %s submitted for employee %s (%d/%d) by %s",
            payroll.payroll_id,
            employee_id,
            month,
            year,
            submitted_by_id,
        )

        await self.emitter.emit(
            PayrollSubmitted(
                metadata=EventMetadata.create(actor_id=submitted_by_id),
                payroll_id=payroll.payroll_id,
                employee_id=payroll.employee_id,
                department_id=payroll.department_id,
                submitted_by_id=submitted_by_id,
                first_level=first_level,
                remarks=remarks,
            )
        )
        return payroll
