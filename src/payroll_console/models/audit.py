"""Workflow audit trail."""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from payroll_console.models.base import Base, CreatedAtMixin


class WorkflowAuditEvent(Base, CreatedAtMixin):
    """One operator-visible outcome of the payroll workflow."""

    __tablename__ = "workflow_audit_event"

    audit_event_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    workflow_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    company_id: Mapped[str | None] = mapped_column(String, nullable=True)
    payroll_month: Mapped[str | None] = mapped_column(String(7), nullable=True)
    action: Mapped[str] = mapped_column(String, nullable=False)
    details_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "action IN ('period_checked', 'recalculation_confirmed', 'calculated', "
            "'calculation_failed', 'finalized', 'finalization_failed', "
            "'finalization_conflict', 'reset')",
            name="workflow_audit_event_action_check",
        ),
        Index("ix_workflow_audit_event_period", "company_id", "payroll_month"),
    )
