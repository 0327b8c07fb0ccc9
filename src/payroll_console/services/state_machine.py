"""Payroll workflow step machine with transition validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

from payroll_console.services.admin_inputs import AdminInputStore
from payroll_console.services.existing_payroll_guard import (
    ExistingPayrollGuard,
    GuardDecision,
)
from payroll_console.types import (
    AdminInputField,
    CalculationResult,
    CompanyDetails,
    Employee,
    ExistingPayrollSummary,
    StepDescriptor,
)


class WorkflowStep(IntEnum):
    """Workflow steps, numbered as shown to the operator."""

    SELECT_PERIOD = 1
    REVIEW_DATA = 2
    ADMIN_INPUT = 3
    CALCULATING = 4
    FINALIZE = 5


STEP_INFO: dict[WorkflowStep, tuple[str, str]] = {
    WorkflowStep.SELECT_PERIOD: (
        "Select Company & Month",
        "Choose company and payroll period",
    ),
    WorkflowStep.REVIEW_DATA: ("Review Data", "Verify employee and attendance data"),
    WorkflowStep.ADMIN_INPUT: ("Admin Input", "Fill required custom fields"),
    WorkflowStep.CALCULATING: ("Calculate", "Calculate payroll amounts"),
    WorkflowStep.FINALIZE: ("Finalize", "Review and finalize payroll"),
}

SELECT_COMPANY_ERROR = "Please select a company"


class InvalidTransitionError(Exception):
    """Raised when an action is not allowed in the current step."""

    def __init__(self, from_step: int, to_step: int | None, reason: str | None = None):
        self.from_step = from_step
        self.to_step = to_step
        self.reason = reason
        if to_step is None:
            msg = f"Action not allowed in step {from_step}"
        else:
            msg = f"Invalid transition from step {from_step} to step {to_step}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


@dataclass
class WorkflowState:
    """Everything one workflow run knows. Owned by a single machine."""

    step: WorkflowStep = WorkflowStep.SELECT_PERIOD
    company_id: str = ""
    payroll_month: str = ""

    # Guard
    existing_payroll: ExistingPayrollSummary | None = None
    recalculate_confirmed: bool = False
    confirmation_pending: bool = False  # modal, not a step

    # Review data, evaluated on entry to REVIEW_DATA
    company: CompanyDetails | None = None
    employees: tuple[Employee, ...] = ()
    admin_input_fields: tuple[AdminInputField, ...] = ()
    admin_input_required: bool = False

    admin_inputs: AdminInputStore = field(default_factory=AdminInputStore)

    calculation_result: CalculationResult | None = None
    calculation_origin: WorkflowStep | None = None
    is_finalized: bool = False

    errors: list[str] = field(default_factory=list)

    @property
    def active_employees(self) -> list[Employee]:
        return [e for e in self.employees if e.is_active]


class StepStateMachine:
    """State machine for the payroll workflow.

    Allowed transitions:
    - select period → review data
    - review data → select period (back)
    - review data → admin input (fields configured)
    - review data → calculating (no fields configured)
    - admin input → review data (back)
    - admin input → calculating
    - calculating → finalize (success)
    - calculating → admin input / review data (request failed)
    - finalize → admin input / review data (back)
    - finalize → select period (finalize conflict)

    Once finalized, only reset is possible.
    """

    VALID_TRANSITIONS: dict[WorkflowStep, list[WorkflowStep]] = {
        WorkflowStep.SELECT_PERIOD: [WorkflowStep.REVIEW_DATA],
        WorkflowStep.REVIEW_DATA: [
            WorkflowStep.SELECT_PERIOD,
            WorkflowStep.ADMIN_INPUT,
            WorkflowStep.CALCULATING,
        ],
        WorkflowStep.ADMIN_INPUT: [WorkflowStep.REVIEW_DATA, WorkflowStep.CALCULATING],
        WorkflowStep.CALCULATING: [
            WorkflowStep.FINALIZE,
            WorkflowStep.ADMIN_INPUT,
            WorkflowStep.REVIEW_DATA,
        ],
        WorkflowStep.FINALIZE: [
            WorkflowStep.ADMIN_INPUT,
            WorkflowStep.REVIEW_DATA,
            WorkflowStep.SELECT_PERIOD,
        ],
    }

    def __init__(self, state: WorkflowState | None = None):
        self.state = state or WorkflowState()

    @classmethod
    def can_transition(cls, from_step: int, to_step: int) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(WorkflowStep(from_step), [])
        return to_step in allowed

    @classmethod
    def validate_transition(cls, from_step: int, to_step: int) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_step, to_step):
            raise InvalidTransitionError(from_step, to_step)

    @classmethod
    def get_next_steps(cls, current_step: int) -> list[WorkflowStep]:
        """Get list of valid next steps from current step."""
        return cls.VALID_TRANSITIONS.get(WorkflowStep(current_step), [])

    def transition_to(self, to_step: WorkflowStep) -> None:
        if self.state.is_finalized:
            raise InvalidTransitionError(
                self.state.step, to_step, "Payroll is finalized; reset to start over"
            )
        self.validate_transition(self.state.step, to_step)
        self.state.step = to_step

    def require_step(self, *steps: WorkflowStep) -> None:
        if self.state.step not in steps:
            raise InvalidTransitionError(self.state.step, None)

    # -- Step 1 --------------------------------------------------------------

    def select_period(self, company_id: str, payroll_month: str) -> bool:
        """Record a company/month choice. Returns True if it changed.

        A change discards the guard result, the confirmation and the admin
        inputs entered for the previous period.
        """
        self.require_step(WorkflowStep.SELECT_PERIOD)
        s = self.state
        changed = (company_id, payroll_month) != (s.company_id, s.payroll_month)
        s.company_id = company_id
        s.payroll_month = payroll_month
        s.errors = []
        if changed:
            s.existing_payroll = None
            s.recalculate_confirmed = False
            s.confirmation_pending = False
            s.admin_inputs.clear()
            s.calculation_result = None
        return changed

    def record_existing(self, summary: ExistingPayrollSummary | None) -> None:
        self.require_step(WorkflowStep.SELECT_PERIOD)
        self.state.existing_payroll = summary
        self.state.recalculate_confirmed = False
        self.state.confirmation_pending = False

    def guard_decision(self) -> GuardDecision:
        return ExistingPayrollGuard.decide(
            self.state.existing_payroll, self.state.recalculate_confirmed
        )

    def open_confirmation(self) -> None:
        self.require_step(WorkflowStep.SELECT_PERIOD)
        if self.state.existing_payroll is None:
            raise InvalidTransitionError(
                self.state.step, None, "No finalized payroll to recalculate"
            )
        self.state.confirmation_pending = True

    def confirm_recalculation(self) -> None:
        self.require_step(WorkflowStep.SELECT_PERIOD)
        if not self.state.confirmation_pending:
            raise InvalidTransitionError(
                self.state.step, None, "Recalculation was not requested"
            )
        self.state.confirmation_pending = False
        self.state.recalculate_confirmed = True
        self.state.errors = []

    def cancel_confirmation(self) -> None:
        self.require_step(WorkflowStep.SELECT_PERIOD)
        self.state.confirmation_pending = False

    def selection_errors(self) -> list[str]:
        """Reasons the machine cannot leave step 1 (empty if it can)."""
        if not self.state.company_id:
            return [SELECT_COMPANY_ERROR]
        if self.guard_decision() is GuardDecision.BLOCK:
            return [
                f"Payroll for {self.state.payroll_month} is already finalized. "
                "View it or choose to recalculate anyway."
            ]
        return []

    def enter_review(
        self,
        company: CompanyDetails,
        employees: list[Employee],
        fields: list[AdminInputField],
    ) -> None:
        """1 → 2. The admin input decision is taken here and kept until re-entry."""
        errors = self.selection_errors()
        if errors:
            raise InvalidTransitionError(
                self.state.step, WorkflowStep.REVIEW_DATA, errors[0]
            )
        self.transition_to(WorkflowStep.REVIEW_DATA)
        s = self.state
        s.company = company
        s.employees = tuple(employees)
        s.admin_input_fields = tuple(fields)
        s.admin_input_required = bool(fields)
        s.errors = []

    # -- Steps 2-4 -----------------------------------------------------------

    def enter_admin_input(self) -> None:
        self.require_step(WorkflowStep.REVIEW_DATA)
        if not self.state.admin_input_required:
            raise InvalidTransitionError(
                self.state.step, WorkflowStep.ADMIN_INPUT, "No admin input fields"
            )
        self.transition_to(WorkflowStep.ADMIN_INPUT)

    def calculation_origin(self) -> WorkflowStep:
        """The step calculation starts from (and falls back to on failure)."""
        if self.state.admin_input_required:
            return WorkflowStep.ADMIN_INPUT
        return WorkflowStep.REVIEW_DATA

    def begin_calculation(self) -> None:
        origin = self.calculation_origin()
        if self.state.is_finalized:
            raise InvalidTransitionError(
                self.state.step,
                WorkflowStep.CALCULATING,
                "Payroll is finalized; reset to start over",
            )
        if self.state.step != origin:
            raise InvalidTransitionError(self.state.step, WorkflowStep.CALCULATING)
        self.transition_to(WorkflowStep.CALCULATING)
        self.state.calculation_origin = origin
        self.state.errors = []

    def calculation_succeeded(self, result: CalculationResult) -> None:
        self.require_step(WorkflowStep.CALCULATING)
        self.transition_to(WorkflowStep.FINALIZE)
        # Superseded, never merged
        self.state.calculation_result = result

    def calculation_failed(self, reason: str) -> None:
        self.require_step(WorkflowStep.CALCULATING)
        self.transition_to(self.state.calculation_origin or self.calculation_origin())
        self.state.calculation_result = None
        self.state.errors = [reason]

    # -- Step 5 --------------------------------------------------------------

    def ensure_can_finalize(self) -> CalculationResult:
        self.require_step(WorkflowStep.FINALIZE)
        if self.state.is_finalized:
            raise InvalidTransitionError(
                self.state.step, None, "Payroll is already finalized"
            )
        if self.state.calculation_result is None:
            raise InvalidTransitionError(self.state.step, None, "Nothing calculated")
        return self.state.calculation_result

    def mark_finalized(self) -> None:
        self.ensure_can_finalize()
        self.state.is_finalized = True
        # Stale the instant a finalize happens
        self.state.existing_payroll = None
        self.state.errors = []

    def return_to_guard(self, summary: ExistingPayrollSummary | None) -> None:
        """Finalize conflict: back to step 1 with a fresh summary.

        Admin inputs are kept; the calculation is discarded and the operator
        has to confirm recalculation again.
        """
        self.require_step(WorkflowStep.FINALIZE)
        self.transition_to(WorkflowStep.SELECT_PERIOD)
        s = self.state
        s.calculation_result = None
        s.calculation_origin = None
        s.company = None
        s.employees = ()
        s.admin_input_fields = ()
        s.admin_input_required = False
        s.existing_payroll = summary
        s.recalculate_confirmed = False
        s.confirmation_pending = False

    # -- Navigation ----------------------------------------------------------

    def back(self) -> WorkflowStep:
        s = self.state
        if s.is_finalized:
            raise InvalidTransitionError(
                s.step, None, "Payroll is finalized; reset to start over"
            )
        if s.step == WorkflowStep.REVIEW_DATA:
            target = WorkflowStep.SELECT_PERIOD
        elif s.step == WorkflowStep.ADMIN_INPUT:
            target = WorkflowStep.REVIEW_DATA
        elif s.step == WorkflowStep.FINALIZE:
            target = self.calculation_origin()
        else:
            raise InvalidTransitionError(s.step, None, "Cannot go back from here")
        self.transition_to(target)
        s.errors = []
        return target

    def reset(self) -> None:
        """Full wipe, back to step 1."""
        self.state = WorkflowState()

    # -- Presentation --------------------------------------------------------

    def step_descriptors(self) -> list[StepDescriptor]:
        s = self.state
        descriptors = []
        for step, (title, description) in STEP_INFO.items():
            if step == s.step:
                completed = s.is_finalized
                current = not s.is_finalized
            else:
                completed = step < s.step
                current = False
            descriptors.append(
                StepDescriptor(
                    id=int(step),
                    title=title,
                    description=description,
                    completed=completed,
                    current=current,
                )
            )
        return descriptors

    def available_actions(self) -> list[str]:
        """Operator actions enabled in the current state."""
        s = self.state
        actions: list[str] = []
        if s.step == WorkflowStep.SELECT_PERIOD:
            actions.append("select_period")
            if s.existing_payroll is not None:
                actions.append("view_existing")
                if s.confirmation_pending:
                    actions += ["confirm_recalculation", "cancel_recalculation"]
                elif not s.recalculate_confirmed:
                    actions.append("request_recalculation")
            if not self.selection_errors():
                actions.append("proceed")
        elif s.step == WorkflowStep.REVIEW_DATA:
            actions += ["back", "continue"]
        elif s.step == WorkflowStep.ADMIN_INPUT:
            actions += ["back", "set_admin_input", "calculate"]
        elif s.step == WorkflowStep.FINALIZE and not s.is_finalized:
            actions += ["back", "finalize"]
        if s.step != WorkflowStep.CALCULATING:
            actions.append("reset")
        return actions
