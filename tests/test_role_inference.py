"""Tests for functional role inference from position titles."""

import pytest
from sqlalchemy import select

from payroll_approvals.models import ActorRole, FunctionalRole, User
from payroll_approvals.services.directory import UserDirectory
from payroll_approvals.services.role_inference import (
    backfill_functional_roles,
    infer_functional_role,
    position_matches,
)


class TestInferFunctionalRole:
    """Test title matching."""

    @pytest.mark.parametrize(
        "position,expected",
        [
            ("HR Manager", FunctionalRole.HR_MANAGER),
            ("Head of Human Resources", FunctionalRole.HR_MANAGER),
            ("Senior HR Director", FunctionalRole.HR_MANAGER),
            ("Finance Director", FunctionalRole.FINANCE_DIRECTOR),
            ("head of finance", FunctionalRole.FINANCE_DIRECTOR),
            ("Head of Engineering", FunctionalRole.DEPARTMENT_HEAD),
            ("Engineering Manager", FunctionalRole.DEPARTMENT_HEAD),
            ("Software Engineer", None),
            ("", None),
            (None, None),
        ],
    )
    def test_infer(self, position, expected):
        assert infer_functional_role(position) == expected

    def test_matching_is_case_insensitive(self):
        assert position_matches("FINANCE HEAD", ("finance head",)) is True
        assert position_matches("Accountant", ("finance head",)) is False


@pytest.mark.asyncio
class TestBackfill:
    """Test backfilling roles onto existing admin accounts."""

    async def _admin_without_role(self, session, email, position):
        user = User(
            first_name="Test",
            last_name="Admin",
            email=email,
            role=ActorRole.ADMIN,
            position=position,
        )
        session.add(user)
        await session.flush()
        return user

    async def test_backfill_assigns_roles(self, session):
        hr = await self._admin_without_role(session, "hr@example.com", "HR Manager")
        clerk = await self._admin_without_role(session, "clerk@example.com", "Payroll Clerk")
        await session.commit()

        changes = await backfill_functional_roles(session)
        await session.commit()

        assert [(u.email, role) for u, role in changes] == [
            ("hr@example.com", FunctionalRole.HR_MANAGER)
        ]
        await session.refresh(hr)
        await session.refresh(clerk)
        assert hr.functional_role == FunctionalRole.HR_MANAGER
        assert clerk.functional_role is None

    async def test_dry_run_writes_nothing(self, session):
        await self._admin_without_role(session, "fd@example.com", "Finance Director")
        await session.commit()

        changes = await backfill_functional_roles(session, dry_run=True)
        await session.commit()

        assert len(changes) == 1
        result = await session.execute(
            select(User.functional_role).where(User.email == "fd@example.com")
        )
        assert result.scalar_one() is None

    async def test_provision_keeps_explicit_role(self, session):
        user = await UserDirectory(session).provision(
            first_name="Explicit",
            last_name="Role",
            email="explicit@example.com",
            role=ActorRole.ADMIN,
            position="Engineering Manager",
            functional_role=FunctionalRole.HR_MANAGER,
        )

        assert user.functional_role == FunctionalRole.HR_MANAGER
