"""Payroll workflow services."""

from payroll_console.services.admin_inputs import AdminInputNegotiator, AdminInputStore
from payroll_console.services.audit_service import AuditService
from payroll_console.services.calculation_invoker import CalculationError, CalculationInvoker
from payroll_console.services.existing_payroll_guard import ExistingPayrollGuard, GuardDecision
from payroll_console.services.finalization_committer import (
    FinalizationCommitter,
    FinalizationError,
    PayrollConflictError,
)
from payroll_console.services.state_machine import (
    InvalidTransitionError,
    StepStateMachine,
    WorkflowState,
    WorkflowStep,
)
from payroll_console.services.workflow_service import (
    PayrollWorkflowService,
    WorkflowBusyError,
    WorkflowClosedError,
    WorkflowSnapshot,
)

__all__ = [
    "AdminInputNegotiator",
    "AdminInputStore",
    "AuditService",
    "CalculationError",
    "CalculationInvoker",
    "ExistingPayrollGuard",
    "GuardDecision",
    "FinalizationCommitter",
    "FinalizationError",
    "PayrollConflictError",
    "InvalidTransitionError",
    "StepStateMachine",
    "WorkflowState",
    "WorkflowStep",
    "PayrollWorkflowService",
    "WorkflowBusyError",
    "WorkflowClosedError",
    "WorkflowSnapshot",
]
