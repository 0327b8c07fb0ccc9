"""API routes."""

from payroll_console.api.routes.health import router as health_router
from payroll_console.api.routes.workflow import router as workflow_router

__all__ = ["workflow_router", "health_router"]
