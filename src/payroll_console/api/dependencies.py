"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_console.services.audit_service import AuditService
from payroll_console.services.workflow_service import PayrollWorkflowService


def get_workflow(request: Request) -> PayrollWorkflowService:
    """The console's single active workflow."""
    workflow = getattr(request.app.state, "workflow", None)
    if workflow is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Workflow not initialized",
        )
    return workflow


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.session_factory


def get_audit_service(request: Request) -> AuditService:
    return AuditService(request.app.state.session_factory)


# Type aliases for cleaner dependency injection
Workflow = Annotated[PayrollWorkflowService, Depends(get_workflow)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
Audit = Annotated[AuditService, Depends(get_audit_service)]
