"""Default subscribers for workflow events."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_approvals.config import DeliveryPolicy
from payroll_approvals.events import AsyncEventEmitter, PayrollSubmitted, PayrollTransitioned
from payroll_approvals.services.audit_service import AuditTrailWriter
from payroll_approvals.services.notification_service import (
    DatabaseNotificationSink,
    NotificationFanout,
    NotificationSink,
)


def register_default_subscribers(
    emitter: AsyncEventEmitter,
    session_factory: async_sessionmaker[AsyncSession],
    fanout: NotificationFanout,
) -> AuditTrailWriter:
    """Wire notification fan-out and the audit trail onto `emitter`.

    The audit subscriber is awaited by the emitter; the fan-out only
    schedules its delivery and returns.
    """
    audit = AuditTrailWriter(session_factory)

    emitter.on(PayrollSubmitted, fanout.handle_submission)
    emitter.on(PayrollSubmitted, audit.handle_submission)
    emitter.on(PayrollTransitioned, fanout.handle_transition)
    emitter.on(PayrollTransitioned, audit.handle_transition)
    return audit


def build_emitter(
    session_factory: async_sessionmaker[AsyncSession],
    sink: NotificationSink | None = None,
    policy: DeliveryPolicy | None = None,
) -> tuple[AsyncEventEmitter, NotificationFanout]:
    """Emitter with the default subscribers, plus the fan-out to drain at shutdown."""
    fanout = NotificationFanout(
        session_factory,
        sink or DatabaseNotificationSink(session_factory),
        policy,
    )
    emitter = AsyncEventEmitter()
    register_default_subscribers(emitter, session_factory, fanout)
    return emitter, fanout
