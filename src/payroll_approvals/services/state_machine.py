"""Payroll approval state machine driven by an ordered level table."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from payroll_approvals.models.enums import (
    MANAGERIAL_ROLES,
    ActorRole,
    ApprovalAction,
    ApprovalLevel,
    FunctionalRole,
    PayrollStatus,
)
from payroll_approvals.services.errors import InvalidStateError, UnauthorizedError

if TYPE_CHECKING:
    from payroll_approvals.models import Payroll, User


HR_DEPARTMENT_NAMES: tuple[str, ...] = ("Human Resources", "HR")
FINANCE_DEPARTMENT_NAMES: tuple[str, ...] = ("Finance and Accounting", "Finance", "Financial")


class DepartmentScope(str, Enum):
    """Where the acting admin must sit for a level."""

    EMPLOYEE = "employee"  # the payroll employee's own department
    NAMED = "named"  # a functional department looked up by name
    ANY = "any"


@dataclass(frozen=True)
class LevelRule:
    """Authorization and routing rule for one approval level."""

    level: ApprovalLevel
    next_level: ApprovalLevel | None
    slug: str
    display_name: str
    article: str
    required_role: ActorRole | None
    functional_roles: frozenset[FunctionalRole]
    department_scope: DepartmentScope
    department_names: tuple[str, ...] = ()
    department_label: str | None = None

    @property
    def is_final(self) -> bool:
        return self.next_level is None

    def role_requirement(self) -> str:
        return f"{self.article} {self.display_name}"


APPROVAL_CHAIN: tuple[LevelRule, ...] = (
    LevelRule(
        level=ApprovalLevel.DEPARTMENT_HEAD,
        next_level=ApprovalLevel.HR_MANAGER,
        slug="department-head",
        display_name="department head",
        article="a",
        required_role=ActorRole.ADMIN,
        functional_roles=MANAGERIAL_ROLES,
        department_scope=DepartmentScope.EMPLOYEE,
    ),
    LevelRule(
        level=ApprovalLevel.HR_MANAGER,
        next_level=ApprovalLevel.FINANCE_DIRECTOR,
        slug="hr-manager",
        display_name="HR Manager",
        article="an",
        required_role=None,
        functional_roles=frozenset({FunctionalRole.HR_MANAGER}),
        department_scope=DepartmentScope.NAMED,
        department_names=HR_DEPARTMENT_NAMES,
        department_label="HR",
    ),
    LevelRule(
        level=ApprovalLevel.FINANCE_DIRECTOR,
        next_level=ApprovalLevel.SUPER_ADMIN,
        slug="finance-director",
        display_name="Finance Director",
        article="a",
        required_role=None,
        functional_roles=frozenset({FunctionalRole.FINANCE_DIRECTOR}),
        department_scope=DepartmentScope.NAMED,
        department_names=FINANCE_DEPARTMENT_NAMES,
        department_label="Finance",
    ),
    LevelRule(
        level=ApprovalLevel.SUPER_ADMIN,
        next_level=None,
        slug="super-admin",
        display_name="Super Admin",
        article="a",
        required_role=ActorRole.SUPER_ADMIN,
        functional_roles=frozenset(),
        department_scope=DepartmentScope.ANY,
    ),
)

LEVEL_RULES: dict[ApprovalLevel, LevelRule] = {rule.level: rule for rule in APPROVAL_CHAIN}
RULES_BY_SLUG: dict[str, LevelRule] = {rule.slug: rule for rule in APPROVAL_CHAIN}


@dataclass(frozen=True)
class TransitionOutcome:
    """Resulting workflow state of an accepted decision."""

    status: PayrollStatus
    current_level: ApprovalLevel | None
    is_final_approval: bool


class ApprovalStateMachine:
    """State machine for the payroll approval chain.

    Chain:
    - DEPARTMENT_HEAD → HR_MANAGER → FINANCE_DIRECTOR → SUPER_ADMIN → resolved

    A decision is only accepted from PENDING at the payroll's current level.
    APPROVE advances one level (or resolves to APPROVED after SUPER_ADMIN).
    REJECT is terminal at any level and leaves current_level untouched.
    """

    @classmethod
    def rule_for(cls, level: ApprovalLevel) -> LevelRule:
        return LEVEL_RULES[level]

    @classmethod
    def first_level(cls) -> ApprovalLevel:
        return APPROVAL_CHAIN[0].level

    @classmethod
    def next_level(cls, level: ApprovalLevel) -> ApprovalLevel | None:
        """Get the level after this one (None after the final level)."""
        return LEVEL_RULES[level].next_level

    @classmethod
    def can_transition(
        cls,
        status: PayrollStatus,
        current_level: ApprovalLevel | None,
        level: ApprovalLevel,
    ) -> bool:
        """Check if a decision at `level` would be accepted."""
        return status == PayrollStatus.PENDING and current_level == level

    @classmethod
    def validate_pending_at(cls, payroll: Payroll, level: ApprovalLevel) -> None:
        """Raise InvalidStateError unless the payroll awaits `level`."""
        if payroll.status != PayrollStatus.PENDING:
            raise InvalidStateError(
                f"Payroll is not in PENDING status. Current status: {payroll.status.value}"
            )
        if payroll.current_level != level:
            current = payroll.current_level.value if payroll.current_level else None
            raise InvalidStateError(
                f"Payroll is not at {level.value} approval level. Current level: {current}"
            )

    @classmethod
    def outcome(cls, level: ApprovalLevel, decision: ApprovalAction) -> TransitionOutcome:
        """Compute the workflow state after an accepted decision."""
        if decision == ApprovalAction.REJECT:
            return TransitionOutcome(
                status=PayrollStatus.REJECTED,
                current_level=level,
                is_final_approval=False,
            )

        next_level = cls.next_level(level)
        if next_level is None:
            return TransitionOutcome(
                status=PayrollStatus.APPROVED,
                current_level=None,
                is_final_approval=True,
            )
        return TransitionOutcome(
            status=PayrollStatus.PENDING,
            current_level=next_level,
            is_final_approval=False,
        )

    @classmethod
    def authorize(
        cls,
        level: ApprovalLevel,
        actor: User,
        decision: ApprovalAction,
        employee_department_id: UUID | None,
        required_department_id: UUID | None = None,
    ) -> None:
        """Check the actor may decide at `level`, raising UnauthorizedError.

        For NAMED-scope levels the caller resolves the functional department
        and passes its id as `required_department_id`.
        """
        rule = LEVEL_RULES[level]
        verb = "approve" if decision == ApprovalAction.APPROVE else "reject"
        requirement = rule.role_requirement()

        def deny(message: str) -> UnauthorizedError:
            return UnauthorizedError(message, required_role=rule.display_name)

        if not actor.is_active:
            raise deny("Your account is not active")

        if rule.required_role is not None and actor.role != rule.required_role:
            raise deny(f"You must be {requirement} to {verb} at this level")

        if rule.department_scope == DepartmentScope.EMPLOYEE:
            if actor.department_id is None or actor.department_id != employee_department_id:
                raise deny(f"You can only {verb} payrolls for employees in your department")
        elif rule.department_scope == DepartmentScope.NAMED:
            if actor.department_id is None or actor.department_id != required_department_id:
                raise deny(
                    f"You must be in the {rule.department_label} department "
                    f"to {verb} at this level"
                )

        if rule.functional_roles and actor.functional_role not in rule.functional_roles:
            raise deny(f"You must be {requirement} to {verb} at this level")
