"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payroll_console.api.routes import health_router, workflow_router
from payroll_console.config import Settings, get_settings
from payroll_console.database import create_schema, get_engine, make_session_factory
from payroll_console.gateway import HttpPayrollGateway, InMemoryPayrollGateway
from payroll_console.gateway.base import PayrollGateway
from payroll_console.services.audit_service import AuditService
from payroll_console.services.state_machine import InvalidTransitionError
from payroll_console.services.workflow_service import (
    PayrollWorkflowService,
    WorkflowBusyError,
    WorkflowClosedError,
)

logger = logging.getLogger(__name__)


def build_gateway(settings: Settings) -> PayrollGateway:
    """Gateway selected by PAYROLL_GATEWAY."""
    if settings.gateway == "memory":
        logger.warning("Using in-memory payroll gateway; nothing reaches the backend")
        return InMemoryPayrollGateway()
    return HttpPayrollGateway.from_settings(settings)


def create_app(
    gateway: PayrollGateway | None = None,
    database_url: str | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    gateway = gateway or build_gateway(settings)
    engine = get_engine(database_url or settings.database_url)
    session_factory = make_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        # Startup
        await create_schema(engine)
        app.state.workflow = PayrollWorkflowService(
            gateway, AuditService(session_factory)
        )
        yield
        # Shutdown
        app.state.workflow.close()
        aclose = getattr(gateway, "aclose", None)
        if aclose is not None:
            await aclose()
        await engine.dispose()

    app = FastAPI(
        title="Payroll Console API",
        description="Payroll calculation and finalization workflow",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.session_factory = session_factory

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition_handler(
        request: Request, exc: InvalidTransitionError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": str(exc), "code": "ACTION_NOT_ALLOWED"},
        )

    @app.exception_handler(WorkflowBusyError)
    async def busy_handler(request: Request, exc: WorkflowBusyError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_423_LOCKED,
            content={"detail": str(exc), "code": "WORKFLOW_BUSY"},
        )

    @app.exception_handler(WorkflowClosedError)
    async def closed_handler(request: Request, exc: WorkflowClosedError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_410_GONE,
            content={"detail": str(exc), "code": "WORKFLOW_CLOSED"},
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
    app.include_router(workflow_router, prefix="/api/v1")

    return app

