"""Notification inbox endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query
from sqlalchemy import select

from payroll_approvals.api.dependencies import CurrentUserId, DbSession
from payroll_approvals.api.schemas import NotificationResponse
from payroll_approvals.models import Notification

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    db: DbSession,
    user_id: CurrentUserId,
    unread_only: bool = False,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> list[NotificationResponse]:
    """List the caller's notifications, newest first."""
    query = select(Notification).where(Notification.recipient_id == user_id)
    if unread_only:
        query = query.where(Notification.read.is_(False))
    result = await db.execute(
        query.order_by(Notification.created_at.desc()).limit(limit)
    )
    return [NotificationResponse.model_validate(n) for n in result.scalars().all()]
