"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from payroll_console import __version__
from payroll_console.api.dependencies import SessionFactory
from payroll_console.database import ping

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
    audit_database: str
    workflow: str


@router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request, session_factory: SessionFactory
) -> HealthResponse:
    """Console health. A broken audit database only degrades it."""
    try:
        await ping(session_factory)
        audit_database = "healthy"
    except SQLAlchemyError:
        audit_database = "unhealthy"

    workflow = getattr(request.app.state, "workflow", None)
    if workflow is None:
        workflow_status = "not started"
    elif workflow.is_busy:
        workflow_status = "busy"
    else:
        workflow_status = "idle"

    return HealthResponse(
        status="healthy" if audit_database == "healthy" else "degraded",
        version=__version__,
        timestamp=datetime.now(timezone.utc),
        audit_database=audit_database,
        workflow=workflow_status,
    )


@router.get("/ready")
async def readiness_check(request: Request) -> dict[str, str]:
    """Ready once the lifespan has created the workflow."""
    if getattr(request.app.state, "workflow", None) is None:
        return {"status": "starting"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
