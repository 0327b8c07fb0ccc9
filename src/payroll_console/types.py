"""Type definitions for the payroll calculation workflow."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

# employee_id -> field key -> amount
AdminInputs = dict[str, dict[str, Decimal]]


class FieldPurpose(str, Enum):
    """What a custom salary field contributes to the payslip."""

    ALLOWANCE = "ALLOWANCE"
    DEDUCTION = "DEDUCTION"
    CALCULATION = "CALCULATION"
    INFORMATION = "INFORMATION"

    @classmethod
    def parse(cls, value: str | None) -> FieldPurpose:
        """Parse a purpose as sent by the backend (case varies)."""
        if not value:
            return cls.INFORMATION
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.INFORMATION


@dataclass(frozen=True)
class PayrollPeriodKey:
    """Company + calendar month. Day of month is irrelevant."""

    company_id: str
    payroll_month: str  # YYYY-MM

    def __post_init__(self) -> None:
        if not self.company_id:
            raise ValueError("company_id is required")
        # Raises ValueError for anything that is not YYYY-MM
        datetime.strptime(self.payroll_month, "%Y-%m")
        if len(self.payroll_month) != 7:
            raise ValueError(f"payroll_month must be YYYY-MM, got {self.payroll_month!r}")

    @classmethod
    def of(cls, company_id: str, month: date | str) -> PayrollPeriodKey:
        """Build a key from a date (any day in the month) or a YYYY-MM string."""
        return cls(company_id=company_id, payroll_month=format_month(month))


def format_month(month: date | str) -> str:
    """Normalize a month to YYYY-MM."""
    if isinstance(month, date):
        return month.strftime("%Y-%m")
    value = str(month).strip()
    # Accept full ISO dates too
    if len(value) == 10:
        return date.fromisoformat(value).strftime("%Y-%m")
    return datetime.strptime(value, "%Y-%m").strftime("%Y-%m")


@dataclass(frozen=True)
class AdminInputField:
    """A custom salary field that needs a value from the operator."""

    key: str
    label: str
    purpose: FieldPurpose = FieldPurpose.INFORMATION
    field_type: str = "number"
    description: str | None = None
    default_value: str | None = None


@dataclass(frozen=True)
class Employee:
    """Employee as listed for a company."""

    id: str
    first_name: str = ""
    last_name: str = ""
    status: str = "ACTIVE"

    @property
    def is_active(self) -> bool:
        return self.status.upper() == "ACTIVE"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class CompanyDetails:
    """Company record with its salary template configuration."""

    id: str
    name: str
    status: str = "ACTIVE"
    contact_person_name: str | None = None
    contact_person_number: str | None = None
    salary_template: dict[str, Any] | None = None


@dataclass(frozen=True)
class CalculationResultEntry:
    """One employee's outcome from a calculation request."""

    employee_id: str
    employee_name: str
    present_days: Decimal = Decimal("0")
    salary: dict[str, Any] | None = None
    error: str | None = None

    @property
    def is_finalizable(self) -> bool:
        """Only rows with a salary and no error are committed."""
        return self.salary is not None and not self.error

    def _amount(self, key: str) -> Decimal | None:
        if not self.salary or self.salary.get(key) is None:
            return None
        return Decimal(str(self.salary[key]))

    @property
    def basic_pay(self) -> Decimal | None:
        return self._amount("basicPay")

    @property
    def gross_salary(self) -> Decimal | None:
        return self._amount("grossSalary")

    @property
    def total_deductions(self) -> Decimal | None:
        return self._amount("totalDeductions")

    @property
    def net_salary(self) -> Decimal | None:
        return self._amount("netSalary")


@dataclass(frozen=True)
class CalculationResult:
    """Per-employee result set for one calculation invocation."""

    company_name: str
    payroll_month: str
    total_employees: int
    payroll_results: tuple[CalculationResultEntry, ...] = ()

    @property
    def failed_entries(self) -> list[CalculationResultEntry]:
        return [e for e in self.payroll_results if e.error]

    @property
    def finalizable_entries(self) -> list[CalculationResultEntry]:
        return [e for e in self.payroll_results if e.is_finalizable]


@dataclass(frozen=True)
class ExistingPayrollSummary:
    """Snapshot of a finalized payroll for a period.

    Never patched: a new finalize makes it stale and it is fetched again.
    """

    records: tuple[dict[str, Any], ...]
    total_employees: int
    total_net_salary: Decimal
    total_gross_salary: Decimal
    finalized_date: datetime | None = None
    version: str | None = None  # concurrency token echoed back on finalize


@dataclass(frozen=True)
class PayrollRecord:
    """A row of the finalize payload."""

    employee_id: str
    salary: dict[str, Any]

    def to_payload(self) -> dict[str, Any]:
        return {"employeeId": self.employee_id, "salary": self.salary}


@dataclass(frozen=True)
class FinalizationReceipt:
    """Backend acknowledgement of a finalize call."""

    company_id: str
    payroll_month: str
    total_records: int
    version: str | None = None


def _json_number(value: Decimal) -> int | float:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


@dataclass(frozen=True)
class CalculationRequest:
    """Body of a calculate-payroll call."""

    company_id: str
    payroll_month: str
    admin_inputs: AdminInputs | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "companyId": self.company_id,
            "payrollMonth": self.payroll_month,
        }
        if self.admin_inputs:
            payload["adminInputs"] = {
                employee_id: {key: _json_number(v) for key, v in values.items()}
                for employee_id, values in self.admin_inputs.items()
            }
        return payload

    def to_json(self) -> bytes:
        """Deterministic encoding: identical requests give identical bytes."""
        return json.dumps(
            self.to_payload(), sort_keys=True, separators=(",", ":")
        ).encode("utf-8")


@dataclass(frozen=True)
class FinalizationRequest:
    """Body of a finalize call plus the version it supersedes."""

    company_id: str
    payroll_month: str
    payroll_records: tuple[PayrollRecord, ...] = ()
    expected_version: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "companyId": self.company_id,
            "payrollMonth": self.payroll_month,
            "payrollRecords": [r.to_payload() for r in self.payroll_records],
        }

    def to_json(self) -> bytes:
        return json.dumps(
            self.to_payload(), sort_keys=True, separators=(",", ":"), default=str
        ).encode("utf-8")


@dataclass(frozen=True)
class Notice:
    """A toast shown to the operator after an outcome."""

    title: str
    description: str
    variant: str = "default"  # default | destructive


@dataclass
class StepDescriptor:
    """Progress indicator entry for one workflow step."""

    id: int
    title: str
    description: str
    completed: bool = False
    current: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "current": self.current,
        }

