"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from payroll_console.services.workflow_service import WorkflowSnapshot
from payroll_console.types import CalculationResult, ExistingPayrollSummary


# ============================================================================
# Requests
# ============================================================================


class PeriodSelection(BaseModel):
    """Company and month chosen in step 1."""

    company_id: str = ""
    payroll_month: str = Field(description="YYYY-MM, or any ISO date in the month")


class AdminInputCell(BaseModel):
    """One grid cell. A null value clears the cell."""

    employee_id: str
    key: str
    value: Decimal | None = None


class AdminInputUpdate(BaseModel):
    """Batch of grid edits."""

    values: list[AdminInputCell]


# ============================================================================
# Responses
# ============================================================================


class StepResponse(BaseModel):
    id: int
    title: str
    description: str
    completed: bool
    current: bool


class AdminInputFieldResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    key: str
    label: str
    purpose: str
    field_type: str
    description: str | None = None
    default_value: str | None = None


class EmployeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    first_name: str
    last_name: str
    status: str


class ExistingPayrollResponse(BaseModel):
    """Summary of the payroll already finalized for the period."""

    total_employees: int
    total_net_salary: Decimal
    total_gross_salary: Decimal
    finalized_date: datetime | None = None
    version: str | None = None
    record_count: int

    @classmethod
    def from_summary(cls, summary: ExistingPayrollSummary) -> ExistingPayrollResponse:
        return cls(
            total_employees=summary.total_employees,
            total_net_salary=summary.total_net_salary,
            total_gross_salary=summary.total_gross_salary,
            finalized_date=summary.finalized_date,
            version=summary.version,
            record_count=len(summary.records),
        )


class CalculationEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: str
    employee_name: str
    present_days: Decimal
    salary: dict[str, Any] | None = None
    error: str | None = None
    basic_pay: Decimal | None = None
    gross_salary: Decimal | None = None
    total_deductions: Decimal | None = None
    net_salary: Decimal | None = None


class CalculationResultResponse(BaseModel):
    company_name: str
    payroll_month: str
    total_employees: int
    payroll_results: list[CalculationEntryResponse]
    finalizable_count: int

    @classmethod
    def from_result(cls, result: CalculationResult) -> CalculationResultResponse:
        return cls(
            company_name=result.company_name,
            payroll_month=result.payroll_month,
            total_employees=result.total_employees,
            payroll_results=[
                CalculationEntryResponse.model_validate(e) for e in result.payroll_results
            ],
            finalizable_count=len(result.finalizable_entries),
        )


class NoticeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str
    description: str
    variant: str


class WorkflowResponse(BaseModel):
    """Full workflow state as consumed by the console UI."""

    workflow_id: UUID
    current_step: int
    steps: list[StepResponse]
    company_id: str
    payroll_month: str
    company_name: str | None = None
    existing_payroll: ExistingPayrollResponse | None = None
    recalculate_confirmed: bool
    confirmation_pending: bool
    admin_input_fields: list[AdminInputFieldResponse]
    admin_input_required: bool
    active_employees: list[EmployeeResponse]
    admin_inputs: dict[str, dict[str, Decimal]]
    calculation_result: CalculationResultResponse | None = None
    is_finalized: bool
    is_busy: bool
    errors: list[str]
    fetch_failed: bool
    notices: list[NoticeResponse]
    available_actions: list[str]

    @classmethod
    def from_snapshot(cls, snapshot: WorkflowSnapshot) -> WorkflowResponse:
        return cls(
            workflow_id=snapshot.workflow_id,
            current_step=int(snapshot.current_step),
            steps=[StepResponse(**s.to_dict()) for s in snapshot.steps],
            company_id=snapshot.company_id,
            payroll_month=snapshot.payroll_month,
            company_name=snapshot.company_name,
            existing_payroll=(
                ExistingPayrollResponse.from_summary(snapshot.existing_payroll)
                if snapshot.existing_payroll
                else None
            ),
            recalculate_confirmed=snapshot.recalculate_confirmed,
            confirmation_pending=snapshot.confirmation_pending,
            admin_input_fields=[
                AdminInputFieldResponse(
                    key=f.key,
                    label=f.label,
                    purpose=f.purpose.value,
                    field_type=f.field_type,
                    description=f.description,
                    default_value=f.default_value,
                )
                for f in snapshot.admin_input_fields
            ],
            admin_input_required=snapshot.admin_input_required,
            active_employees=[
                EmployeeResponse.model_validate(e) for e in snapshot.active_employees
            ],
            admin_inputs=snapshot.admin_inputs,
            calculation_result=(
                CalculationResultResponse.from_result(snapshot.calculation_result)
                if snapshot.calculation_result
                else None
            ),
            is_finalized=snapshot.is_finalized,
            is_busy=snapshot.is_busy,
            errors=snapshot.errors,
            fetch_failed=snapshot.fetch_failed,
            notices=[NoticeResponse.model_validate(n) for n in snapshot.notices],
            available_actions=snapshot.available_actions,
        )


class AuditEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    audit_event_id: UUID
    workflow_id: UUID
    company_id: str | None = None
    payroll_month: str | None = None
    action: str
    details_json: dict[str, Any] | None = None
    created_at: datetime


class ErrorResponse(BaseModel):
    """Error response body."""

    detail: str
    code: str
