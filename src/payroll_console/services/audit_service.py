"""Audit trail for payroll workflow outcomes."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_console.models import WorkflowAuditEvent

logger = logging.getLogger(__name__)


class AuditService:
    """Records workflow outcomes.

    Writes are best-effort: a failing audit store is logged and never
    interrupts the operator's workflow.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(
        self,
        workflow_id: UUID,
        action: str,
        company_id: str | None = None,
        payroll_month: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        event = WorkflowAuditEvent(
            workflow_id=workflow_id,
            company_id=company_id,
            payroll_month=payroll_month,
            action=action,
            details_json=details,
        )
        try:
            async with self.session_factory() as session:
                session.add(event)
                await session.commit()
        except SQLAlchemyError:
            logger.exception(
                "Failed to record audit event %s for workflow %s", action, workflow_id
            )

    async def list_for_period(
        self, company_id: str, payroll_month: str
    ) -> list[WorkflowAuditEvent]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(WorkflowAuditEvent)
                .where(
                    WorkflowAuditEvent.company_id == company_id,
                    WorkflowAuditEvent.payroll_month == payroll_month,
                )
                .order_by(WorkflowAuditEvent.created_at)
            )
            return list(result.scalars().all())
