"""Audit trail model."""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from payroll_approvals.models.base import Base, TimestampMixin, enum_column
from payroll_approvals.models.enums import AuditAction, AuditEntity


class AuditEntry(Base, TimestampMixin):
    """Append-only audit trail entry.

    `details` is denormalized on purpose: entries must stay readable after the
    referenced employee or department records change.
    """

    __tablename__ = "audit_entry"

    audit_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    action: Mapped[AuditAction] = mapped_column(
        enum_column(AuditAction, "audit_action"),
        nullable=False,
    )
    entity: Mapped[AuditEntity] = mapped_column(
        enum_column(AuditEntity, "audit_entity"),
        nullable=False,
        default=AuditEntity.PAYROLL,
    )
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    performed_by_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=False,
    )
    details: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)

    __table_args__ = (
        Index("ix_audit_entry_entity", "entity", "entity_id"),
        Index("ix_audit_entry_performed_by", "performed_by_id"),
    )

    def __repr__(self) -> str:
        return f"<AuditEntry {self.entity.value}#{self.entity_id} action={self.action.value}>"
