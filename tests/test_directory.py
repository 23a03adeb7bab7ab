"""Tests for department and approver lookups."""

import pytest

from payroll_approvals.models import ActorRole, ApprovalLevel, Department, FunctionalRole
from payroll_approvals.services.directory import ActorDirectory, DepartmentDirectory, UserDirectory

pytestmark = pytest.mark.asyncio


class TestDepartmentDirectory:
    """Test department lookups by name."""

    async def test_find_by_names_prefers_earlier_name(self, session):
        session.add_all([Department(name="Finance"), Department(name="Finance and Accounting")])
        await session.commit()

        found = await DepartmentDirectory(session).find_by_names(
            ("Finance and Accounting", "Finance", "Financial")
        )

        assert found.name == "Finance and Accounting"

    async def test_find_by_names_skips_inactive(self, session):
        session.add(Department(name="HR", status="inactive"))
        await session.commit()

        assert await DepartmentDirectory(session).find_by_names(("HR",)) is None

    async def test_find_by_names_empty(self, session):
        assert await DepartmentDirectory(session).find_by_names(()) is None


class TestActorDirectory:
    """Test resolution of the expected approver at each level."""

    async def test_resolves_every_level(self, session, org, payroll):
        directory = ActorDirectory(session)

        assert (
            await directory.resolve_approver(ApprovalLevel.DEPARTMENT_HEAD, payroll)
        ).user_id == org.department_head.user_id
        assert (
            await directory.resolve_approver(ApprovalLevel.HR_MANAGER, payroll)
        ).user_id == org.hr_manager.user_id
        assert (
            await directory.resolve_approver(ApprovalLevel.FINANCE_DIRECTOR, payroll)
        ).user_id == org.finance_director.user_id
        assert (
            await directory.resolve_approver(ApprovalLevel.SUPER_ADMIN, payroll)
        ).user_id == org.super_admin.user_id

    async def test_department_head_preferred_over_other_managers(self, session, org, payroll):
        users = UserDirectory(session)
        await users.provision(
            first_name="Early",
            last_name="Manager",
            email="early@example.com",
            role=ActorRole.ADMIN,
            department_id=org.engineering.department_id,
            position="Office Manager",
            functional_role=FunctionalRole.HR_MANAGER,
        )
        await session.commit()

        approver = await ActorDirectory(session).resolve_approver(
            ApprovalLevel.DEPARTMENT_HEAD, payroll
        )

        assert approver.user_id == org.department_head.user_id

    async def test_missing_functional_department(self, session, org, payroll):
        org.finance.status = "inactive"
        await session.commit()

        directory = ActorDirectory(session)
        assert await directory.functional_department(ApprovalLevel.FINANCE_DIRECTOR) is None
        assert await directory.resolve_approver(ApprovalLevel.FINANCE_DIRECTOR, payroll) is None

    async def test_inactive_approver_not_resolved(self, session, org, payroll):
        org.hr_manager.status = "inactive"
        await session.commit()

        approver = await ActorDirectory(session).resolve_approver(ApprovalLevel.HR_MANAGER, payroll)

        assert approver is None
