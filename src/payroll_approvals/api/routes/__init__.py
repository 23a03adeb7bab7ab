"""API routes."""

from payroll_approvals.api.routes.approvals import router as approvals_router
from payroll_approvals.api.routes.health import router as health_router
from payroll_approvals.api.routes.notifications import router as notifications_router
from payroll_approvals.api.routes.payrolls import router as payrolls_router

__all__ = ["approvals_router", "health_router", "notifications_router", "payrolls_router"]
