"""Department and user (actor) models."""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_approvals.models.base import Base, TimestampMixin, enum_column
from payroll_approvals.models.enums import ActorRole, FunctionalRole


class Department(Base, TimestampMixin):
    """Organizational department."""

    __tablename__ = "department"

    department_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")

    __table_args__ = (
        CheckConstraint("status IN ('active', 'inactive')", name="department_status_check"),
        Index("ix_department_name", "name"),
    )

    members: Mapped[list[User]] = relationship(back_populates="department")

    def __repr__(self) -> str:
        return f"<Department {self.name}>"


class User(Base, TimestampMixin):
    """An account: employee, department-scoped admin, or super admin."""

    __tablename__ = "app_user"

    user_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    first_name: Mapped[str] = mapped_column(String(80), nullable=False)
    last_name: Mapped[str] = mapped_column(String(80), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[ActorRole] = mapped_column(
        enum_column(ActorRole, "actor_role"),
        nullable=False,
        default=ActorRole.EMPLOYEE,
    )
    department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("department.department_id"),
        nullable=True,
    )
    position: Mapped[str | None] = mapped_column(String(120), nullable=True)
    functional_role: Mapped[FunctionalRole | None] = mapped_column(
        enum_column(FunctionalRole, "functional_role"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")

    __table_args__ = (
        CheckConstraint("status IN ('active', 'inactive')", name="app_user_status_check"),
        Index("ix_app_user_department_role", "department_id", "functional_role"),
    )

    department: Mapped[Department | None] = relationship(
        back_populates="members",
        lazy="joined",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role.value}>"
