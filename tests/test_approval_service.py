"""Tests for approve/reject decisions along the chain."""

import logging
from uuid import uuid4

import pytest
import pytest_asyncio

from payroll_approvals.events import PayrollTransitioned
from payroll_approvals.models import (
    ApprovalAction,
    ApprovalLevel,
    AuditAction,
    PayrollStatus,
)
from payroll_approvals.services.approval_service import ApprovalService
from payroll_approvals.services.audit_service import AuditTrailWriter
from payroll_approvals.services.errors import (
    DirectoryConfigurationError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from payroll_approvals.services.payroll_service import PayrollService

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def service(session, emitter) -> ApprovalService:
    return ApprovalService(session, emitter)


async def approve_through(service, org, payroll_id, levels):
    actors = {
        ApprovalLevel.DEPARTMENT_HEAD: org.department_head,
        ApprovalLevel.HR_MANAGER: org.hr_manager,
        ApprovalLevel.FINANCE_DIRECTOR: org.finance_director,
        ApprovalLevel.SUPER_ADMIN: org.super_admin,
    }
    result = None
    for level in levels:
        result = await service.approve_at_level(level, payroll_id, actors[level].user_id)
    return result


class TestApprovalChain:
    """Test the happy path through all four levels."""

    async def test_department_head_approval_forwards_to_hr(self, service, org, payroll):
        result = await service.approve_at_level(
            ApprovalLevel.DEPARTMENT_HEAD,
            payroll.payroll_id,
            org.department_head.user_id,
        )

        assert result.payroll.status == PayrollStatus.PENDING
        assert result.payroll.current_level == ApprovalLevel.HR_MANAGER
        assert result.payroll.version == 1
        assert result.next_approver.user_id == org.hr_manager.user_id
        assert result.message == "Payroll approved and forwarded to HR_MANAGER"

        history = result.payroll.history
        assert len(history) == 1
        assert history[0].level == ApprovalLevel.DEPARTMENT_HEAD
        assert history[0].action == ApprovalAction.APPROVE
        assert history[0].actor_id == org.department_head.user_id
        assert history[0].remarks is None

    async def test_full_chain_resolves_approved(self, service, org, payroll):
        result = await approve_through(
            service,
            org,
            payroll.payroll_id,
            [
                ApprovalLevel.DEPARTMENT_HEAD,
                ApprovalLevel.HR_MANAGER,
                ApprovalLevel.FINANCE_DIRECTOR,
                ApprovalLevel.SUPER_ADMIN,
            ],
        )

        final = result.payroll
        assert final.status == PayrollStatus.APPROVED
        assert final.current_level is None
        assert final.approved_by_id == org.super_admin.user_id
        assert final.approved_at is not None
        assert final.version == 4
        assert result.next_approver is None
        assert result.message == "Payroll fully approved"
        assert [h.sequence for h in final.history] == [1, 2, 3, 4]
        assert [h.level for h in final.history] == [
            ApprovalLevel.DEPARTMENT_HEAD,
            ApprovalLevel.HR_MANAGER,
            ApprovalLevel.FINANCE_DIRECTOR,
            ApprovalLevel.SUPER_ADMIN,
        ]

    async def test_remarks_recorded(self, service, org, payroll):
        result = await service.approve_at_level(
            ApprovalLevel.DEPARTMENT_HEAD,
            payroll.payroll_id,
            org.department_head.user_id,
            remarks="Hours verified",
        )

        assert result.payroll.history[0].remarks == "Hours verified"

    async def test_audit_entry_written(self, service, session_factory, org, payroll):
        await service.approve_at_level(
            ApprovalLevel.DEPARTMENT_HEAD,
            payroll.payroll_id,
            org.department_head.user_id,
        )

        entries = await AuditTrailWriter(session_factory).list_for_payroll(payroll.payroll_id)
        assert len(entries) == 1
        assert entries[0].action == AuditAction.APPROVE
        assert entries[0].performed_by_id == org.department_head.user_id
        assert entries[0].details["level"] == "DEPARTMENT_HEAD"
        assert entries[0].details["next_level"] == "HR_MANAGER"
        assert entries[0].details["employee_name"] == "Ada Lovelace"
        assert entries[0].details["department_name"] == "Engineering"
        assert entries[0].details["net_pay"] == "4000.00"


class TestSequentialGate:
    """Decisions are accepted only at the payroll's current level."""

    async def test_cannot_skip_to_hr(self, service, session, org, payroll):
        with pytest.raises(InvalidStateError) as exc_info:
            await service.approve_at_level(
                ApprovalLevel.HR_MANAGER,
                payroll.payroll_id,
                org.hr_manager.user_id,
            )

        assert exc_info.value.message == (
            "Payroll is not at HR_MANAGER approval level. Current level: DEPARTMENT_HEAD"
        )
        assert exc_info.value.status_code == 400
        assert await PayrollService(session).history(payroll.payroll_id) == []

    async def test_cannot_repeat_a_level(self, service, org, payroll):
        await approve_through(service, org, payroll.payroll_id, [ApprovalLevel.DEPARTMENT_HEAD])

        with pytest.raises(InvalidStateError):
            await service.approve_at_level(
                ApprovalLevel.DEPARTMENT_HEAD,
                payroll.payroll_id,
                org.department_head.user_id,
            )

    async def test_finance_cannot_act_after_hr_rejection(self, service, org, payroll):
        await approve_through(service, org, payroll.payroll_id, [ApprovalLevel.DEPARTMENT_HEAD])
        await service.reject_at_level(
            ApprovalLevel.HR_MANAGER,
            payroll.payroll_id,
            org.hr_manager.user_id,
            reason="Overtime not justified",
        )

        with pytest.raises(InvalidStateError) as exc_info:
            await service.approve_at_level(
                ApprovalLevel.FINANCE_DIRECTOR,
                payroll.payroll_id,
                org.finance_director.user_id,
            )

        assert exc_info.value.message == "Payroll is not in PENDING status. Current status: REJECTED"


class TestRejection:
    """Rejection is terminal at every level."""

    async def test_reject_keeps_level_and_records_reason(self, service, org, payroll):
        await approve_through(
            service,
            org,
            payroll.payroll_id,
            [ApprovalLevel.DEPARTMENT_HEAD, ApprovalLevel.HR_MANAGER],
        )

        result = await service.reject_at_level(
            ApprovalLevel.FINANCE_DIRECTOR,
            payroll.payroll_id,
            org.finance_director.user_id,
            reason="Budget exceeded",
        )

        payroll = result.payroll
        assert payroll.status == PayrollStatus.REJECTED
        assert payroll.current_level == ApprovalLevel.FINANCE_DIRECTOR
        assert payroll.rejected_by_id == org.finance_director.user_id
        assert payroll.rejected_at is not None
        assert payroll.approved_by_id is None
        assert result.message == "Payroll rejected"
        assert result.next_approver is None
        assert payroll.history[-1].action == ApprovalAction.REJECT
        assert payroll.history[-1].remarks == "Budget exceeded"

    async def test_rejected_payroll_is_immutable(self, service, session, org, payroll):
        await service.reject_at_level(
            ApprovalLevel.DEPARTMENT_HEAD,
            payroll.payroll_id,
            org.department_head.user_id,
            reason="Wrong period",
        )

        for level, actor in [
            (ApprovalLevel.DEPARTMENT_HEAD, org.department_head),
            (ApprovalLevel.HR_MANAGER, org.hr_manager),
            (ApprovalLevel.SUPER_ADMIN, org.super_admin),
        ]:
            with pytest.raises(InvalidStateError):
                await service.approve_at_level(level, payroll.payroll_id, actor.user_id)

        history = await PayrollService(session).history(payroll.payroll_id)
        assert len(history) == 1

    @pytest.mark.parametrize("reason", [None, "", "   "])
    async def test_reason_required(self, service, org, payroll, reason):
        with pytest.raises(ValidationError):
            await service.reject_at_level(
                ApprovalLevel.DEPARTMENT_HEAD,
                payroll.payroll_id,
                org.department_head.user_id,
                reason=reason,
            )


class TestPreconditions:
    """Existence, authorization and directory failures."""

    async def test_payroll_not_found(self, service, org):
        with pytest.raises(NotFoundError) as exc_info:
            await service.approve_at_level(
                ApprovalLevel.DEPARTMENT_HEAD, uuid4(), org.department_head.user_id
            )

        assert exc_info.value.message == "Payroll not found"
        assert exc_info.value.status_code == 404

    async def test_approver_not_found(self, service, payroll):
        with pytest.raises(NotFoundError) as exc_info:
            await service.approve_at_level(
                ApprovalLevel.DEPARTMENT_HEAD, payroll.payroll_id, uuid4()
            )

        assert exc_info.value.message == "Approver not found"

    async def test_hr_manager_outside_hr_is_denied(self, service, session, org, payroll, caplog):
        await approve_through(service, org, payroll.payroll_id, [ApprovalLevel.DEPARTMENT_HEAD])
        org.hr_manager.department_id = org.engineering.department_id
        await session.commit()

        with caplog.at_level(logging.WARNING, logger="payroll_approvals.security"):
            with pytest.raises(UnauthorizedError) as exc_info:
                await service.approve_at_level(
                    ApprovalLevel.HR_MANAGER,
                    payroll.payroll_id,
                    org.hr_manager.user_id,
                )

        assert exc_info.value.message == "You must be in the HR department to approve at this level"
        assert exc_info.value.status_code == 403
        assert any(r.name == "payroll_approvals.security" for r in caplog.records)

        unchanged = await PayrollService(session).require(payroll.payroll_id, refresh=True)
        assert unchanged.current_level == ApprovalLevel.HR_MANAGER
        assert unchanged.version == 1
        assert len(unchanged.history) == 1

    async def test_other_department_head_is_denied(self, service, session, org, payroll):
        org.department_head.department_id = org.finance.department_id
        await session.commit()

        with pytest.raises(UnauthorizedError) as exc_info:
            await service.approve_at_level(
                ApprovalLevel.DEPARTMENT_HEAD,
                payroll.payroll_id,
                org.department_head.user_id,
            )

        assert exc_info.value.message == (
            "You can only approve payrolls for employees in your department"
        )

    async def test_employee_cannot_approve(self, service, org, payroll):
        with pytest.raises(UnauthorizedError):
            await service.approve_at_level(
                ApprovalLevel.DEPARTMENT_HEAD,
                payroll.payroll_id,
                org.employee.user_id,
            )

    async def test_missing_hr_department(self, service, session, org, payroll):
        await approve_through(service, org, payroll.payroll_id, [ApprovalLevel.DEPARTMENT_HEAD])
        org.hr.name = "People Operations"
        await session.commit()

        with pytest.raises(DirectoryConfigurationError) as exc_info:
            await service.approve_at_level(
                ApprovalLevel.HR_MANAGER,
                payroll.payroll_id,
                org.hr_manager.user_id,
            )

        assert exc_info.value.message == "HR department not found"
        assert exc_info.value.status_code == 500


class TestSideEffectIsolation:
    """Failing subscribers never undo a committed decision."""

    async def test_failing_subscriber_does_not_roll_back(self, service, session, org, payroll):
        async def broken(event):
            raise RuntimeError("mail server down")

        service.emitter.on(PayrollTransitioned, broken)

        result = await service.approve_at_level(
            ApprovalLevel.DEPARTMENT_HEAD,
            payroll.payroll_id,
            org.department_head.user_id,
        )

        assert len(result.side_effect_errors) == 1
        reloaded = await PayrollService(session).require(payroll.payroll_id, refresh=True)
        assert reloaded.current_level == ApprovalLevel.HR_MANAGER
        assert len(reloaded.history) == 1
