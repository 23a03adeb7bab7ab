"""Read-only lookups for departments and the actors in the approval chain."""

from __future__ import annotations

import logging
from typing import Iterable
from uuid import UUID

from sqlalchemy import case, select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_approvals.models import (
    ActorRole,
    ApprovalLevel,
    Department,
    FunctionalRole,
    Payroll,
    User,
)
from payroll_approvals.services.role_inference import infer_functional_role
from payroll_approvals.services.state_machine import DepartmentScope, LEVEL_RULES

logger = logging.getLogger(__name__)


class DepartmentDirectory:
    """Department lookups."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_names(self, names: Iterable[str]) -> Department | None:
        """Find the first active department whose name is in `names`.

        Names are matched exactly; earlier names win when several exist.
        """
        names = tuple(names)
        if not names:
            return None
        preference = case(
            {name: index for index, name in enumerate(names)},
            value=Department.name,
        )
        result = await self.session.execute(
            select(Department)
            .where(Department.name.in_(names), Department.status == "active")
            .order_by(preference, Department.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()


class UserDirectory:
    """User (actor) lookups."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_id(self, user_id: UUID) -> User | None:
        return await self.session.get(User, user_id)

    async def find_by_department_and_functional_role(
        self,
        department_id: UUID,
        functional_roles: Iterable[FunctionalRole],
        preferred: FunctionalRole | None = None,
    ) -> User | None:
        """Find an active admin in a department holding one of the roles."""
        roles = list(functional_roles)
        query = select(User).where(
            User.department_id == department_id,
            User.role == ActorRole.ADMIN,
            User.functional_role.in_(roles),
            User.status == "active",
        )
        if preferred is not None:
            query = query.order_by(
                case((User.functional_role == preferred, 0), else_=1),
                User.created_at,
            )
        else:
            query = query.order_by(User.created_at)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def find_by_role(self, role: ActorRole) -> User | None:
        """Find the earliest active user holding an account role."""
        result = await self.session.execute(
            select(User)
            .where(User.role == role, User.status == "active")
            .order_by(User.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def provision(
        self,
        *,
        first_name: str,
        last_name: str,
        email: str,
        role: ActorRole = ActorRole.EMPLOYEE,
        department_id: UUID | None = None,
        position: str | None = None,
        functional_role: FunctionalRole | None = None,
        status: str = "active",
    ) -> User:
        """Create an account, inferring the functional role of admins.

        An explicit `functional_role` always wins over the position title.
        """
        if functional_role is None and role == ActorRole.ADMIN:
            functional_role = infer_functional_role(position)

        user = User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            role=role,
            department_id=department_id,
            position=position,
            functional_role=functional_role,
            status=status,
        )
        self.session.add(user)
        await self.session.flush()
        return user


class ActorDirectory:
    """Resolves who is expected to act at each approval level."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserDirectory(session)
        self.departments = DepartmentDirectory(session)

    async def functional_department(self, level: ApprovalLevel) -> Department | None:
        """The named department a level is scoped to (None for other scopes)."""
        rule = LEVEL_RULES[level]
        if rule.department_scope != DepartmentScope.NAMED:
            return None
        department = await self.departments.find_by_names(rule.department_names)
        if department is None:
            logger.warning("%s department not found", rule.department_label)
        return department

    async def resolve_approver(self, level: ApprovalLevel, payroll: Payroll) -> User | None:
        """Find the actor eligible to decide `payroll` at `level`.

        Returns None when nobody matches; callers treat that as
        "no approver to notify", never as an error.
        """
        rule = LEVEL_RULES[level]

        if rule.department_scope == DepartmentScope.ANY:
            approver = await self.users.find_by_role(ActorRole.SUPER_ADMIN)
        elif rule.department_scope == DepartmentScope.EMPLOYEE:
            department_id = payroll.employee.department_id or payroll.department_id
            approver = await self.users.find_by_department_and_functional_role(
                department_id,
                rule.functional_roles,
                preferred=FunctionalRole.DEPARTMENT_HEAD,
            )
        else:
            department = await self.functional_department(level)
            if department is None:
                return None
            approver = await self.users.find_by_department_and_functional_role(
                department.department_id,
                rule.functional_roles,
            )

        if approver is None:
            logger.info(
                "No %s found for payroll %s",
                rule.display_name,
                payroll.payroll_id,
            )
        return approver
