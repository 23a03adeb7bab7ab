"""Infer an admin's functional role from a free-text position title.

Used when provisioning accounts that arrive without an explicit functional
role, and by the `backfill-roles` CLI command. The approval workflow itself
never matches on position text.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_approvals.models import ActorRole, FunctionalRole, User

logger = logging.getLogger(__name__)

DEPARTMENT_HEAD_PHRASES: tuple[str, ...] = ("head", "director", "manager")

HR_MANAGER_PHRASES: tuple[str, ...] = (
    "hr manager",
    "head of hr",
    "hr head",
    "head of human resources",
    "human resources manager",
    "hr director",
)

FINANCE_DIRECTOR_PHRASES: tuple[str, ...] = (
    "head of finance",
    "finance director",
    "finance head",
)

# Most specific first: every HR/finance phrase also matches a head phrase.
_PHRASE_TABLE: tuple[tuple[FunctionalRole, tuple[str, ...]], ...] = (
    (FunctionalRole.FINANCE_DIRECTOR, FINANCE_DIRECTOR_PHRASES),
    (FunctionalRole.HR_MANAGER, HR_MANAGER_PHRASES),
    (FunctionalRole.DEPARTMENT_HEAD, DEPARTMENT_HEAD_PHRASES),
)


def position_matches(position: str | None, phrases: tuple[str, ...]) -> bool:
    """Case-insensitive substring match of a position against phrases."""
    if not position:
        return False
    normalized = position.lower()
    return any(phrase in normalized for phrase in phrases)


def infer_functional_role(position: str | None) -> FunctionalRole | None:
    """Return the most specific functional role a position title implies."""
    for role, phrases in _PHRASE_TABLE:
        if position_matches(position, phrases):
            return role
    return None


async def backfill_functional_roles(
    session: AsyncSession,
    dry_run: bool = False,
) -> list[tuple[User, FunctionalRole]]:
    """Assign functional roles to admins that have none.

    Returns the (user, inferred role) pairs. Nothing is written when
    `dry_run` is set; otherwise the caller commits.
    """
    result = await session.execute(
        select(User)
        .where(
            User.role == ActorRole.ADMIN,
            User.functional_role.is_(None),
        )
        .order_by(User.created_at)
    )

    assigned: list[tuple[User, FunctionalRole]] = []
    for user in result.scalars().all():
        role = infer_functional_role(user.position)
        if role is None:
            continue
        assigned.append((user, role))
        if not dry_run:
            user.functional_role = role
        logger.info(
            "Inferred functional role %s for %s (position=%r)",
            role.value,
            user.email,
            user.position,
        )

    return assigned
