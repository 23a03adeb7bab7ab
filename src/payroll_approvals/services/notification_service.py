"""Notification fan-out for payroll workflow events.

Delivery is best effort. The event subscribers hand each fan-out to a
background task, so a slow recipient never delays the decision that caused
it. Each recipient is delivered to independently with a bounded timeout and
exponential backoff; a recipient that still fails is logged and skipped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Coroutine, Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_approvals.config import DeliveryPolicy
from payroll_approvals.events.types import PayrollSubmitted, PayrollTransitioned
from payroll_approvals.models import (
    ActorRole,
    ApprovalAction,
    ApprovalLevel,
    Notification,
    NotificationType,
    Payroll,
    User,
)
from payroll_approvals.services.directory import ActorDirectory
from payroll_approvals.services.errors import SideEffectError
from payroll_approvals.services.state_machine import LEVEL_RULES, ApprovalStateMachine

logger = logging.getLogger(__name__)


# Who else hears about a rejection, keyed by the level it happened at.
REJECTION_STAKEHOLDERS: dict[ApprovalLevel, tuple[ApprovalLevel, ...]] = {
    ApprovalLevel.DEPARTMENT_HEAD: (ApprovalLevel.HR_MANAGER,),
    ApprovalLevel.HR_MANAGER: (ApprovalLevel.DEPARTMENT_HEAD,),
    ApprovalLevel.FINANCE_DIRECTOR: (ApprovalLevel.HR_MANAGER, ApprovalLevel.DEPARTMENT_HEAD),
    ApprovalLevel.SUPER_ADMIN: (ApprovalLevel.FINANCE_DIRECTOR, ApprovalLevel.HR_MANAGER),
}


def _title(level: ApprovalLevel) -> str:
    name = LEVEL_RULES[level].display_name
    return name[:1].upper() + name[1:]


@dataclass(frozen=True)
class NotificationRequest:
    """One message to one recipient."""

    recipient_id: UUID
    type: NotificationType
    message: str
    audience: str
    subject_employee_id: UUID | None = None
    subject_payroll_id: UUID | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class DeliveryReport:
    """Outcome of one fan-out."""

    delivered: list[UUID] = field(default_factory=list)
    failed: dict[UUID, SideEffectError] = field(default_factory=dict)

    @property
    def all_delivered(self) -> bool:
        return not self.failed


class NotificationSink(Protocol):
    """Transport for notifications (database inbox, email, push, ...)."""

    async def send(self, request: NotificationRequest) -> None:
        """Deliver one notification, raising on failure."""
        ...


class DatabaseNotificationSink:
    """Stores notifications in the in-app inbox table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def send(self, request: NotificationRequest) -> None:
        async with self.session_factory() as session:
            session.add(
                Notification(
                    recipient_id=request.recipient_id,
                    type=request.type,
                    subject_employee_id=request.subject_employee_id,
                    subject_payroll_id=request.subject_payroll_id,
                    message=request.message,
                    metadata_json={"audience": request.audience, **request.metadata},
                )
            )
            await session.commit()


class _Plan:
    """Ordered, de-duplicated recipient list."""

    def __init__(self, payroll: Payroll, base_metadata: dict[str, Any]):
        self.payroll = payroll
        self.base_metadata = base_metadata
        self.requests: list[NotificationRequest] = []
        self._seen: set[UUID] = set()

    def add(
        self,
        recipient: User | None,
        type: NotificationType,
        message: str,
        audience: str,
    ) -> None:
        if recipient is None or recipient.user_id in self._seen:
            return
        self._seen.add(recipient.user_id)
        self.requests.append(
            NotificationRequest(
                recipient_id=recipient.user_id,
                type=type,
                message=message,
                audience=audience,
                subject_employee_id=self.payroll.employee_id,
                subject_payroll_id=self.payroll.payroll_id,
                metadata=dict(self.base_metadata),
            )
        )


def plan_transition(
    payroll: Payroll,
    level: ApprovalLevel,
    decision: ApprovalAction,
    actor: User,
    *,
    next_approver: User | None = None,
    super_admin: User | None = None,
    stakeholders: dict[ApprovalLevel, User | None] | None = None,
    remarks: str | None = None,
) -> list[NotificationRequest]:
    """Build the recipient list for one decision.

    The acting user is always first and never gets a second copy, even when
    they are also the employee or a stakeholder.
    """
    outcome = ApprovalStateMachine.outcome(level, decision)
    employee = payroll.employee
    period = f"{payroll.month}/{payroll.year}"
    metadata = {
        "level": level.value,
        "decision": decision.value,
        "status": outcome.status.value,
        "next_level": outcome.current_level.value
        if decision == ApprovalAction.APPROVE and outcome.current_level
        else None,
        "actor_id": str(actor.user_id),
    }
    plan = _Plan(payroll, metadata)
    level_title = _title(level)

    if decision == ApprovalAction.REJECT:
        reason = remarks or "No reason given"
        plan.add(
            actor,
            NotificationType.PAYROLL_REJECTED,
            f"You rejected the payroll for {employee.full_name} ({period}) at {level_title} level",
            "actor",
        )
        plan.add(
            employee,
            NotificationType.PAYROLL_REJECTED,
            f"Your payroll for {period} was rejected by the {level_title}: {reason}",
            "employee",
        )
        for stakeholder_level in REJECTION_STAKEHOLDERS[level]:
            plan.add(
                (stakeholders or {}).get(stakeholder_level),
                NotificationType.PAYROLL_REJECTED,
                f"Payroll for {employee.full_name} ({period}) was rejected "
                f"at {level_title} level: {reason}",
                "stakeholder",
            )
        return plan.requests

    if outcome.is_final_approval:
        plan.add(
            actor,
            NotificationType.PAYROLL_COMPLETED,
            f"You gave final approval to the payroll for {employee.full_name} ({period})",
            "actor",
        )
        plan.add(
            employee,
            NotificationType.PAYROLL_COMPLETED,
            remarks or f"Your payroll for {period} has been fully approved",
            "employee",
        )
    else:
        next_title = _title(outcome.current_level)
        plan.add(
            actor,
            NotificationType.PAYROLL_APPROVED,
            f"You approved the payroll for {employee.full_name} ({period}); "
            f"it is now pending {next_title} approval",
            "actor",
        )
        plan.add(
            employee,
            NotificationType.PAYROLL_APPROVED,
            remarks or f"Your payroll for {period} has been approved by the {level_title}",
            "employee",
        )
        plan.add(
            next_approver,
            NotificationType.PAYROLL_SUBMITTED,
            f"Payroll for {employee.full_name} ({period}) is pending your approval "
            f"as {next_title}",
            "next_approver",
        )

    plan.add(
        super_admin,
        NotificationType.PAYROLL_APPROVED
        if not outcome.is_final_approval
        else NotificationType.PAYROLL_COMPLETED,
        f"Payroll for {employee.full_name} ({period}) was approved at {level_title} level",
        "super_admin",
    )
    return plan.requests


def plan_submission(payroll: Payroll, first_approver: User | None) -> list[NotificationRequest]:
    """Recipients for a payroll entering the chain."""
    first_level = ApprovalStateMachine.first_level()
    employee = payroll.employee
    plan = _Plan(payroll, {"level": first_level.value, "status": payroll.status.value})
    plan.add(
        first_approver,
        NotificationType.PAYROLL_SUBMITTED,
        f"Payroll for {employee.full_name} ({payroll.month}/{payroll.year}) "
        f"is pending your approval as {_title(first_level)}",
        "next_approver",
    )
    return plan.requests


class NotificationFanout:
    """Resolves recipients and delivers notifications through a sink.

    Usage:
        fanout = NotificationFanout(session_factory, DatabaseNotificationSink(session_factory))
        emitter.on(PayrollTransitioned, fanout.handle_transition)
        ...
        await fanout.drain()  # at shutdown
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sink: NotificationSink,
        policy: DeliveryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session_factory = session_factory
        self.sink = sink
        self.policy = policy or DeliveryPolicy()
        self._sleep = sleep
        self._tasks: set[asyncio.Task[DeliveryReport]] = set()

    async def notify_transition(
        self,
        payroll: Payroll,
        level: ApprovalLevel,
        decision: ApprovalAction,
        actor: User,
        next_approver: User | None = None,
        remarks: str | None = None,
    ) -> DeliveryReport:
        """Fan out the notifications for one committed decision."""
        async with self.session_factory() as session:
            directory = ActorDirectory(session)
            stakeholders: dict[ApprovalLevel, User | None] = {}
            super_admin = None
            if decision == ApprovalAction.REJECT:
                for stakeholder_level in REJECTION_STAKEHOLDERS[level]:
                    stakeholders[stakeholder_level] = await directory.resolve_approver(
                        stakeholder_level, payroll
                    )
            else:
                super_admin = await directory.users.find_by_role(ActorRole.SUPER_ADMIN)

        requests = plan_transition(
            payroll,
            level,
            decision,
            actor,
            next_approver=next_approver,
            super_admin=super_admin,
            stakeholders=stakeholders,
            remarks=remarks,
        )
        return await self.dispatch(requests)

    async def notify_submission(self, payroll: Payroll) -> DeliveryReport:
        """Tell the first-level approver a payroll is waiting."""
        async with self.session_factory() as session:
            approver = await ActorDirectory(session).resolve_approver(
                ApprovalStateMachine.first_level(), payroll
            )
        return await self.dispatch(plan_submission(payroll, approver))

    async def handle_transition(self, event: PayrollTransitioned) -> None:
        """Subscriber for PayrollTransitioned; delivery runs in the background."""
        self.schedule(self._transition_from_event(event))

    async def handle_submission(self, event: PayrollSubmitted) -> None:
        """Subscriber for PayrollSubmitted; delivery runs in the background."""
        self.schedule(self._submission_from_event(event))

    def schedule(
        self, fanout: Coroutine[Any, Any, DeliveryReport]
    ) -> asyncio.Task[DeliveryReport]:
        """Run one fan-out as a tracked background task."""
        task = asyncio.create_task(fanout)
        self._tasks.add(task)
        task.add_done_callback(self._collect)
        return task

    def _collect(self, task: asyncio.Task[DeliveryReport]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Notification fan-out cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error("Notification fan-out failed", exc_info=error)

    @property
    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def drain(self) -> None:
        """Wait for every scheduled fan-out, including ones scheduled meanwhile.

        Called at shutdown so queued notifications are not dropped.
        """
        while True:
            running = [task for task in self._tasks if not task.done()]
            if not running:
                return
            await asyncio.gather(*running, return_exceptions=True)

    async def _transition_from_event(self, event: PayrollTransitioned) -> DeliveryReport:
        async with self.session_factory() as session:
            payroll = await session.get(Payroll, event.payroll_id)
            actor = await session.get(User, event.actor_id)
            next_approver = (
                await session.get(User, event.next_approver_id)
                if event.next_approver_id
                else None
            )
        if payroll is None or actor is None:
            raise SideEffectError(
                "notification lookup",
                LookupError(f"payroll={event.payroll_id} actor={event.actor_id}"),
            )
        return await self.notify_transition(
            payroll,
            event.level,
            event.decision,
            actor,
            next_approver=next_approver,
            remarks=event.remarks,
        )

    async def _submission_from_event(self, event: PayrollSubmitted) -> DeliveryReport:
        async with self.session_factory() as session:
            payroll = await session.get(Payroll, event.payroll_id)
        if payroll is None:
            raise SideEffectError("notification lookup", LookupError(str(event.payroll_id)))
        return await self.notify_submission(payroll)

    async def dispatch(self, requests: list[NotificationRequest]) -> DeliveryReport:
        """Deliver to every recipient concurrently."""
        report = DeliveryReport()
        if not requests:
            return report

        results = await asyncio.gather(*(self._deliver(r) for r in requests))
        for request, error in zip(requests, results):
            if error is None:
                report.delivered.append(request.recipient_id)
            else:
                report.failed[request.recipient_id] = error

        if report.failed:
            logger.warning(
                "Delivered %d of %d notifications; failed recipients: %s",
                len(report.delivered),
                len(requests),
                ", ".join(str(r) for r in report.failed),
            )
        return report

    async def _deliver(self, request: NotificationRequest) -> SideEffectError | None:
        """Deliver one notification with timeout and backoff."""
        policy = self.policy
        last_error: BaseException | None = None

        for attempt in range(1, policy.max_attempts + 1):
            try:
                await asyncio.wait_for(self.sink.send(request), timeout=policy.timeout_seconds)
                if attempt > 1:
                    logger.info(
                        "Notification to %s delivered on attempt %d",
                        request.recipient_id,
                        attempt,
                    )
                return None
            except Exception as e:
                last_error = e
                logger.warning(
                    "Notification to %s failed (attempt %d/%d): %r",
                    request.recipient_id,
                    attempt,
                    policy.max_attempts,
                    e,
                )
            if attempt < policy.max_attempts:
                await self._sleep(policy.delay_for(attempt))

        assert last_error is not None
        logger.error(
            "Giving up on %s notification to %s for payroll %s",
            request.type.value,
            request.recipient_id,
            request.subject_payroll_id,
        )
        return SideEffectError(f"notify {request.recipient_id}", last_error)
