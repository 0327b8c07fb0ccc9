"""ORM models."""

from payroll_console.models.audit import WorkflowAuditEvent
from payroll_console.models.base import Base, CreatedAtMixin

__all__ = ["Base", "CreatedAtMixin", "WorkflowAuditEvent"]
