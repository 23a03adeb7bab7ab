"""Integration test fixtures: the FastAPI app over the test database."""

from collections.abc import AsyncGenerator

import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from payroll_approvals.api.app import create_app


@pytest_asyncio.fixture
async def app(session_factory, sink) -> AsyncGenerator[FastAPI, None]:
    """App wired to the per-test database and the recording sink."""
    app = create_app(session_factory=session_factory, sink=sink)
    yield app
    await app.state.fanout.drain()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for API testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
