"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_approvals import __version__
from payroll_approvals.api.routes import (
    approvals_router,
    health_router,
    notifications_router,
    payrolls_router,
)
from payroll_approvals.config import get_settings
from payroll_approvals.database import create_schema, dispose_db, init_db
from payroll_approvals.events import AsyncEventEmitter
from payroll_approvals.services.errors import ApprovalError
from payroll_approvals.services.notification_service import NotificationSink
from payroll_approvals.services.subscribers import build_emitter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    settings = get_settings()
    if app.state.owns_engine:
        engine, _ = init_db()
        if settings.create_schema:
            await create_schema(engine)
            logger.info("Database schema created")
    yield
    # Shutdown
    fanout = app.state.fanout
    if fanout is not None and fanout.pending:
        logger.info("Waiting for %d notification fan-out(s)", fanout.pending)
        await fanout.drain()
    if app.state.owns_engine:
        await dispose_db()


def create_app(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    emitter: AsyncEventEmitter | None = None,
    sink: NotificationSink | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Tests pass their own session factory (and optionally a notification
    sink); otherwise the process-wide engine from settings is used. The
    notification fan-out, when built here, is kept on `app.state.fanout`
    and drained at shutdown.
    """
    app = FastAPI(
        title="Payroll Approvals API",
        description="Multi-level payroll approval workflow",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.owns_engine = session_factory is None
    if session_factory is None:
        _, session_factory = init_db()
    app.state.session_factory = session_factory
    app.state.fanout = None
    if emitter is None:
        emitter, app.state.fanout = build_emitter(
            session_factory,
            sink=sink,
            policy=get_settings().delivery_policy,
        )
    app.state.emitter = emitter

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(ApprovalError)
    async def approval_exception_handler(
        request: Request, exc: ApprovalError
    ) -> JSONResponse:
        """Map workflow errors to their status codes."""
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payrolls_router, prefix="/api/v1")
    app.include_router(approvals_router, prefix="/api/v1")
    app.include_router(notifications_router, prefix="/api/v1")

    return app
