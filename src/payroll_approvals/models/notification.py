"""In-app notification model."""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_approvals.models.base import Base, TimestampMixin, enum_column
from payroll_approvals.models.enums import NotificationType


class Notification(Base, TimestampMixin):
    """Notification addressed to one user about one payroll."""

    __tablename__ = "notification"

    notification_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    recipient_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=False,
    )
    type: Mapped[NotificationType] = mapped_column(
        enum_column(NotificationType, "notification_type"),
        nullable=False,
    )
    subject_employee_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.user_id"),
        nullable=True,
    )
    subject_payroll_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll.payroll_id"),
        nullable=True,
    )
    message: Mapped[str] = mapped_column(String(1000), nullable=False)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        nullable=False,
        default=dict,
    )
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("ix_notification_recipient", "recipient_id", "read"),)
