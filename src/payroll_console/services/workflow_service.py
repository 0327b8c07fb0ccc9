"""Payroll workflow service - the orchestrator the console drives."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID, uuid4

from payroll_console.gateway.base import GatewayError, PayrollGateway
from payroll_console.services.admin_inputs import AdminInputNegotiator
from payroll_console.services.audit_service import AuditService
from payroll_console.services.calculation_invoker import (
    CalculationError,
    CalculationInvoker,
)
from payroll_console.services.existing_payroll_guard import ExistingPayrollGuard
from payroll_console.services.finalization_committer import (
    FinalizationCommitter,
    FinalizationError,
    PayrollConflictError,
)
from payroll_console.services.state_machine import (
    SELECT_COMPANY_ERROR,
    InvalidTransitionError,
    StepStateMachine,
    WorkflowState,
    WorkflowStep,
)
from payroll_console.types import (
    AdminInputField,
    AdminInputs,
    CalculationResult,
    Employee,
    ExistingPayrollSummary,
    FinalizationReceipt,
    Notice,
    PayrollPeriodKey,
    StepDescriptor,
    format_month,
)

logger = logging.getLogger(__name__)

FETCH_ERROR = "Failed to fetch company details. Please try again."


class WorkflowBusyError(Exception):
    """Raised when an action arrives while a backend call is in flight."""

    def __init__(self, workflow_id: UUID):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow {workflow_id} is waiting for the backend")


class WorkflowClosedError(Exception):
    """Raised when an action arrives after the workflow was torn down."""


@dataclass(frozen=True)
class WorkflowSnapshot:
    """Read-only view of the workflow for presentation."""

    workflow_id: UUID
    current_step: WorkflowStep
    steps: list[StepDescriptor]
    company_id: str
    payroll_month: str
    company_name: str | None
    existing_payroll: ExistingPayrollSummary | None
    recalculate_confirmed: bool
    confirmation_pending: bool
    admin_input_fields: list[AdminInputField]
    admin_input_required: bool
    active_employees: list[Employee]
    admin_inputs: AdminInputs
    calculation_result: CalculationResult | None
    is_finalized: bool
    is_busy: bool
    errors: list[str]
    fetch_failed: bool
    notices: list[Notice]
    available_actions: list[str]


class PayrollWorkflowService:
    """One payroll calculation run for one company/month.

    Operations:
    - select_period: choose company/month and check for a finalized payroll
    - request/confirm/cancel_recalculation: the "recalculate anyway" modal
    - proceed_to_review: fetch company data, step 1 → 2
    - continue_from_review: step 2 → 3, or straight to calculation
    - set_admin_input / calculate: step 3 → 4 → 5
    - finalize: commit, terminal until reset
    - back / reset / close

    Every backend call and audit write is a suspend point. While one is
    in flight the workflow is busy and refuses other actions. After
    close() late responses are dropped.
    """

    def __init__(
        self,
        gateway: PayrollGateway,
        audit: AuditService | None = None,
    ):
        self.workflow_id = uuid4()
        self.gateway = gateway
        self.audit = audit
        self.machine = StepStateMachine()
        self.guard = ExistingPayrollGuard(gateway)
        self.negotiator = AdminInputNegotiator()
        self.invoker = CalculationInvoker(gateway)
        self.committer = FinalizationCommitter(gateway)
        self.notices: list[Notice] = []
        self.last_receipt: FinalizationReceipt | None = None
        self.fetch_failed = False
        self._busy = False
        self._closed = False
        self._generation = 0

    @property
    def state(self) -> WorkflowState:
        return self.machine.state

    @property
    def is_busy(self) -> bool:
        return self._busy

    # -- Suspend-point bookkeeping ------------------------------------------

    def _ensure_idle(self) -> None:
        if self._closed:
            raise WorkflowClosedError(f"Workflow {self.workflow_id} is closed")
        if self._busy:
            raise WorkflowBusyError(self.workflow_id)

    def _begin(self) -> int:
        self._ensure_idle()
        self._busy = True
        return self._generation

    def _end(self, token: int) -> bool:
        """Release the busy flag. False if the response is no longer wanted."""
        if token != self._generation:
            logger.info(
                "Discarding backend response for closed workflow %s", self.workflow_id
            )
            return False
        self._busy = False
        return True

    def close(self) -> None:
        """Tear down. Responses still in flight will not be applied."""
        self._generation += 1
        self._closed = True
        self._busy = False

    def _notify(self, title: str, description: str, variant: str = "default") -> None:
        self.notices.append(Notice(title=title, description=description, variant=variant))

    async def _audit(self, action: str, details: dict[str, Any] | None = None) -> None:
        if self.audit is None:
            return
        token = self._begin()
        try:
            await self.audit.record(
                workflow_id=self.workflow_id,
                action=action,
                company_id=self.state.company_id or None,
                payroll_month=self.state.payroll_month or None,
                details=details,
            )
        finally:
            self._end(token)

    # -- Step 1 --------------------------------------------------------------

    async def select_period(
        self, company_id: str, month: date | str
    ) -> WorkflowSnapshot:
        """Choose company and month; re-checks for a finalized payroll."""
        self._ensure_idle()
        self.machine.require_step(WorkflowStep.SELECT_PERIOD)
        try:
            payroll_month = format_month(month)
        except ValueError:
            self.state.errors = [f"Invalid payroll month {month!r}"]
            return self.snapshot()

        self.machine.select_period(company_id, payroll_month)
        self.fetch_failed = False
        if not company_id:
            self.state.errors = [SELECT_COMPANY_ERROR]
            return self.snapshot()

        key = PayrollPeriodKey(company_id, payroll_month)
        token = self._begin()
        try:
            summary = await self.guard.check(key)
        finally:
            wanted = self._end(token)
        if not wanted:
            return self.snapshot()

        self.machine.record_existing(summary)
        await self._audit(
            "period_checked",
            {"existing_total_employees": summary.total_employees} if summary else None,
        )
        return self.snapshot()

    def request_recalculation(self) -> WorkflowSnapshot:
        """Operator chose "Recalculate anyway"; asks for confirmation."""
        self._ensure_idle()
        self.machine.open_confirmation()
        return self.snapshot()

    async def confirm_recalculation(self) -> WorkflowSnapshot:
        self._ensure_idle()
        self.machine.confirm_recalculation()
        existing = self.state.existing_payroll
        await self._audit(
            "recalculation_confirmed",
            {"superseded_version": existing.version if existing else None},
        )
        return self.snapshot()

    def cancel_recalculation(self) -> WorkflowSnapshot:
        self._ensure_idle()
        self.machine.cancel_confirmation()
        return self.snapshot()

    async def proceed_to_review(self) -> WorkflowSnapshot:
        """Fetch company details and employees, then move to review."""
        self._ensure_idle()
        self.machine.require_step(WorkflowStep.SELECT_PERIOD)
        errors = self.machine.selection_errors()
        if errors:
            self.state.errors = errors
            return self.snapshot()

        company_id = self.state.company_id
        failure: GatewayError | None = None
        token = self._begin()
        try:
            try:
                company = await self.gateway.fetch_company_details(company_id)
                employees = await self.gateway.fetch_company_employees(company_id)
            except GatewayError as e:
                failure = e
        finally:
            wanted = self._end(token)
        if not wanted:
            return self.snapshot()

        if failure is not None:
            logger.warning("Fetching company %s failed: %s", company_id, failure)
            self.fetch_failed = True
            self.state.errors = [FETCH_ERROR]
            self._notify(
                "Error",
                failure.message or "Failed to fetch company details",
                "destructive",
            )
            return self.snapshot()

        self.fetch_failed = False
        fields = self.negotiator.fields_requiring(company)
        self.machine.enter_review(company, employees, fields)
        return self.snapshot()

    # -- Steps 2-4 -----------------------------------------------------------

    async def continue_from_review(self) -> WorkflowSnapshot:
        """Step 2 → 3 when fields need input, otherwise calculate directly."""
        self._ensure_idle()
        self.machine.require_step(WorkflowStep.REVIEW_DATA)
        if self.state.admin_input_required:
            self.machine.enter_admin_input()
            return self.snapshot()
        return await self._run_calculation()

    def set_admin_input(self, employee_id: str, key: str, value: Any) -> WorkflowSnapshot:
        """Enter one grid cell. Blank clears it (and counts as zero)."""
        self._ensure_idle()
        self.machine.require_step(WorkflowStep.ADMIN_INPUT)
        if employee_id not in {e.id for e in self.state.active_employees}:
            raise ValueError(f"Employee {employee_id} is not an active employee")
        if key not in {f.key for f in self.state.admin_input_fields}:
            raise ValueError(f"{key!r} is not an admin input field")
        self.state.admin_inputs.set(employee_id, key, value)
        return self.snapshot()

    async def calculate(self) -> WorkflowSnapshot:
        """Validate admin inputs, then calculate."""
        self._ensure_idle()
        if self.state.is_finalized:
            raise InvalidTransitionError(
                self.state.step,
                WorkflowStep.CALCULATING,
                "Payroll is finalized; reset to start over",
            )
        self.machine.require_step(self.machine.calculation_origin())
        active_ids = [e.id for e in self.state.active_employees]
        errors = self.negotiator.validate(
            active_ids,
            self.state.admin_input_fields,
            self.state.admin_inputs.snapshot(),
        )
        if errors:
            self.state.errors = errors
            return self.snapshot()
        return await self._run_calculation()

    def build_admin_inputs(self) -> AdminInputs | None:
        """Dense request inputs, or None when no field needs input."""
        fields = self.state.admin_input_fields
        if not fields:
            return None
        return self.negotiator.canonicalize(
            [e.id for e in self.state.active_employees],
            fields,
            self.state.admin_inputs.snapshot(),
        )

    async def _run_calculation(self) -> WorkflowSnapshot:
        admin_inputs = self.build_admin_inputs()
        company_id = self.state.company_id
        payroll_month = self.state.payroll_month

        failure: CalculationError | None = None
        token = self._begin()
        try:
            self.machine.begin_calculation()
            try:
                result = await self.invoker.calculate(
                    company_id, payroll_month, admin_inputs
                )
            except CalculationError as e:
                failure = e
        finally:
            wanted = self._end(token)
        if not wanted:
            return self.snapshot()

        if failure is not None:
            self.machine.calculation_failed(failure.reason)
            self._notify(
                "Calculation Failed",
                failure.reason or "Failed to calculate payroll. Please try again.",
                "destructive",
            )
            await self._audit("calculation_failed", {"reason": failure.reason})
            return self.snapshot()

        self.machine.calculation_succeeded(result)
        self._notify(
            "Payroll Calculated",
            f"Successfully calculated payroll for {result.total_employees} employees.",
        )
        await self._audit(
            "calculated",
            {
                "total_employees": result.total_employees,
                "failed_employees": [e.employee_id for e in result.failed_entries],
            },
        )
        return self.snapshot()

    # -- Step 5 --------------------------------------------------------------

    async def finalize(self) -> WorkflowSnapshot:
        """Commit the calculated payroll. Refused once finalized."""
        self._ensure_idle()
        result = self.machine.ensure_can_finalize()
        records = self.committer.build_records(result)
        existing = self.state.existing_payroll
        expected_version = existing.version if existing else None
        key = PayrollPeriodKey(self.state.company_id, self.state.payroll_month)

        receipt: FinalizationReceipt | None = None
        conflict: PayrollConflictError | None = None
        failure: FinalizationError | None = None
        refreshed: ExistingPayrollSummary | None = None
        token = self._begin()
        try:
            try:
                receipt = await self.committer.finalize(
                    key.company_id, key.payroll_month, records, expected_version
                )
            except PayrollConflictError as e:
                conflict = e
                refreshed = await self.guard.check(key)
            except FinalizationError as e:
                failure = e
        finally:
            wanted = self._end(token)
        if not wanted:
            return self.snapshot()

        if conflict is not None:
            logger.warning(
                "Finalize conflict for %s %s: %s",
                key.company_id,
                key.payroll_month,
                conflict.reason,
            )
            self.machine.return_to_guard(refreshed)
            self.state.errors = [
                "Payroll for this month was finalized by someone else. "
                "Review the existing payroll before recalculating."
            ]
            self._notify("Payroll Changed", conflict.reason, "destructive")
            await self._audit(
                "finalization_conflict", {"current_version": conflict.current_version}
            )
            return self.snapshot()

        if failure is not None:
            self.state.errors = [failure.reason]
            self._notify(
                "Finalization Failed",
                failure.reason or "Failed to finalize payroll. Please try again.",
                "destructive",
            )
            await self._audit("finalization_failed", {"reason": failure.reason})
            return self.snapshot()

        self.machine.mark_finalized()
        self.last_receipt = receipt
        self._notify(
            "Payroll Finalized",
            f"Successfully finalized payroll for {receipt.total_records} employees.",
        )
        await self._audit(
            "finalized",
            {"total_records": receipt.total_records, "version": receipt.version},
        )
        return self.snapshot()

    # -- Navigation ----------------------------------------------------------

    def back(self) -> WorkflowSnapshot:
        self._ensure_idle()
        self.machine.back()
        return self.snapshot()

    async def reset(self) -> WorkflowSnapshot:
        """Start over: full state wipe, back to step 1."""
        self._ensure_idle()
        had_period = bool(self.state.company_id)
        if had_period:
            await self._audit("reset", {"finalized": self.state.is_finalized})
        self.machine.reset()
        self.notices = []
        self.last_receipt = None
        self.fetch_failed = False
        return self.snapshot()

    # -- Presentation --------------------------------------------------------

    def snapshot(self) -> WorkflowSnapshot:
        s = self.state
        return WorkflowSnapshot(
            workflow_id=self.workflow_id,
            current_step=s.step,
            steps=self.machine.step_descriptors(),
            company_id=s.company_id,
            payroll_month=s.payroll_month,
            company_name=s.company.name if s.company else None,
            existing_payroll=s.existing_payroll,
            recalculate_confirmed=s.recalculate_confirmed,
            confirmation_pending=s.confirmation_pending,
            admin_input_fields=list(s.admin_input_fields),
            admin_input_required=s.admin_input_required,
            active_employees=s.active_employees,
            admin_inputs=s.admin_inputs.snapshot(),
            calculation_result=s.calculation_result,
            is_finalized=s.is_finalized,
            is_busy=self._busy,
            errors=list(s.errors),
            fetch_failed=self.fetch_failed,
            notices=list(self.notices),
            available_actions=[] if self._busy else self.machine.available_actions(),
        )
