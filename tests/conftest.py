"""Pytest fixtures for payroll approval tests."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from payroll_approvals.config import DeliveryPolicy
from payroll_approvals.database import make_session_factory
from payroll_approvals.events import AsyncEventEmitter
from payroll_approvals.models import (
    ActorRole,
    Base,
    Department,
    FunctionalRole,
    Payroll,
    User,
)
from payroll_approvals.services.directory import UserDirectory
from payroll_approvals.services.notification_service import NotificationFanout, NotificationRequest
from payroll_approvals.services.payroll_service import PayrollService
from payroll_approvals.services.subscribers import register_default_subscribers


@dataclass
class Organization:
    """Departments and the actors of a complete approval chain."""

    engineering: Department
    hr: Department
    finance: Department
    employee: User
    department_head: User
    hr_manager: User
    finance_director: User
    super_admin: User


class RecordingSink:
    """Notification sink that keeps every request in memory."""

    def __init__(self) -> None:
        self.sent: list[NotificationRequest] = []

    async def send(self, request: NotificationRequest) -> None:
        self.sent.append(request)

    def recipients(self) -> set:
        return {r.recipient_id for r in self.sent}

    def for_recipient(self, recipient_id) -> list[NotificationRequest]:
        return [r for r in self.sent if r.recipient_id == recipient_id]


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite so separate sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/approvals.db", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def delivery_policy() -> DeliveryPolicy:
    return DeliveryPolicy(timeout_seconds=1.0, max_attempts=3, backoff_seconds=0)


@pytest_asyncio.fixture
async def fanout(
    session_factory, sink, delivery_policy
) -> AsyncGenerator[NotificationFanout, None]:
    """Fan-out into the recording sink; background deliveries finish before teardown."""
    fanout = NotificationFanout(session_factory, sink, delivery_policy)
    yield fanout
    await fanout.drain()


@pytest.fixture
def emitter(session_factory, fanout) -> AsyncEventEmitter:
    """Emitter with notification (recorded) and audit subscribers attached."""
    emitter = AsyncEventEmitter()
    register_default_subscribers(emitter, session_factory, fanout)
    return emitter


@pytest_asyncio.fixture
async def org(session: AsyncSession) -> Organization:
    """Engineering, HR and Finance departments with one actor per level."""
    engineering = Department(name="Engineering", code="ENG")
    hr = Department(name="Human Resources", code="HR")
    finance = Department(name="Finance and Accounting", code="FIN")
    session.add_all([engineering, hr, finance])
    await session.flush()

    users = UserDirectory(session)
    employee = await users.provision(
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        role=ActorRole.EMPLOYEE,
        department_id=engineering.department_id,
        position="Software Engineer",
    )
    department_head = await users.provision(
        first_name="Grace",
        last_name="Hopper",
        email="grace@example.com",
        role=ActorRole.ADMIN,
        department_id=engineering.department_id,
        position="Head of Engineering",
    )
    hr_manager = await users.provision(
        first_name="Frances",
        last_name="Perkins",
        email="frances@example.com",
        role=ActorRole.ADMIN,
        department_id=hr.department_id,
        position="HR Manager",
    )
    finance_director = await users.provision(
        first_name="Luca",
        last_name="Pacioli",
        email="luca@example.com",
        role=ActorRole.ADMIN,
        department_id=finance.department_id,
        position="Finance Director",
    )
    super_admin = await users.provision(
        first_name="Alan",
        last_name="Turing",
        email="alan@example.com",
        role=ActorRole.SUPER_ADMIN,
        position="Chief Executive",
    )
    await session.commit()

    assert department_head.functional_role == FunctionalRole.DEPARTMENT_HEAD
    assert hr_manager.functional_role == FunctionalRole.HR_MANAGER
    assert finance_director.functional_role == FunctionalRole.FINANCE_DIRECTOR

    return Organization(
        engineering=engineering,
        hr=hr,
        finance=finance,
        employee=employee,
        department_head=department_head,
        hr_manager=hr_manager,
        finance_director=finance_director,
        super_admin=super_admin,
    )


@pytest_asyncio.fixture
async def payroll(session: AsyncSession, org: Organization) -> Payroll:
    """A freshly submitted payroll, pending at DEPARTMENT_HEAD."""
    return await PayrollService(session).submit(
        employee_id=org.employee.user_id,
        month=3,
        year=2024,
        gross_pay=Decimal("5000.00"),
        net_pay=Decimal("4000.00"),
        submitted_by_id=org.super_admin.user_id,
    )
