"""Payroll record and its approval history."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_approvals.models.base import Base, TimestampMixin, enum_column
from payroll_approvals.models.enums import ApprovalAction, ApprovalLevel, PayrollStatus
from payroll_approvals.models.organization import Department, User


class Payroll(Base, TimestampMixin):
    """A monthly payroll record moving through the approval chain.

    Amounts are stored as submitted; nothing here computes them.
    The approval flow lives in the current_level / submitted_* / approved_* /
    rejected_* columns plus the append-only history rows.
    """

    __tablename__ = "payroll"

    payroll_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=False,
    )
    department_id: Mapped[UUID] = mapped_column(
        ForeignKey("department.department_id"),
        nullable=False,
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    gross_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    status: Mapped[PayrollStatus] = mapped_column(
        enum_column(PayrollStatus, "payroll_status"),
        nullable=False,
        default=PayrollStatus.PENDING,
    )
    current_level: Mapped[ApprovalLevel | None] = mapped_column(
        enum_column(ApprovalLevel, "approval_level"),
        nullable=True,
        default=ApprovalLevel.DEPARTMENT_HEAD,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    submitted_by_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=False,
    )
    submitted_at: Mapped[datetime] = mapped_column(nullable=False)
    approved_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=True,
    )
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=True,
    )
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "month", "year", name="payroll_employee_period_unique"),
        CheckConstraint("month BETWEEN 1 AND 12", name="payroll_month_check"),
        CheckConstraint(
            "(status = 'PENDING' AND current_level IS NOT NULL) OR status != 'PENDING'",
            name="payroll_pending_has_level",
        ),
    )

    employee: Mapped[User] = relationship(foreign_keys=[employee_id], lazy="joined")
    department: Mapped[Department] = relationship(lazy="joined")
    history: Mapped[list[ApprovalHistoryEntry]] = relationship(
        back_populates="payroll",
        order_by="ApprovalHistoryEntry.sequence",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        level = self.current_level.value if self.current_level else None
        return f"<Payroll {self.payroll_id} status={self.status.value} level={level}>"


class ApprovalHistoryEntry(Base):
    """One approve/reject decision. Rows are only ever inserted."""

    __tablename__ = "payroll_approval_history"

    history_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll.payroll_id", ondelete="RESTRICT"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    level: Mapped[ApprovalLevel] = mapped_column(
        enum_column(ApprovalLevel, "approval_level"),
        nullable=False,
    )
    action: Mapped[ApprovalAction] = mapped_column(
        enum_column(ApprovalAction, "approval_action"),
        nullable=False,
    )
    actor_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=False,
    )
    timestamp: Mapped[datetime] = mapped_column(nullable=False)
    remarks: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    __table_args__ = (
        UniqueConstraint("payroll_id", "sequence", name="approval_history_sequence_unique"),
    )

    payroll: Mapped[Payroll] = relationship(back_populates="history")
