"""In-memory payroll backend for local development and testing.

Replace with HttpPayrollGateway to talk to the real backend.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from payroll_console.gateway.base import (
    GatewayConflictError,
    GatewayError,
    GatewayNotFoundError,
)
from payroll_console.types import (
    CalculationRequest,
    CalculationResult,
    CalculationResultEntry,
    CompanyDetails,
    Employee,
    ExistingPayrollSummary,
    FinalizationReceipt,
    FinalizationRequest,
)

Calculator = Callable[[CalculationRequest], CalculationResult]


class InMemoryPayrollGateway:
    """Stub backend keeping companies, employees and finalized payrolls in dicts.

    Salary amounts are not computed here: supply a ``calculator`` callable, or
    every active employee gets an empty breakdown with admin inputs echoed.
    Failures can be queued per operation with ``fail_next``.
    """

    def __init__(self, calculator: Calculator | None = None):
        self.companies: dict[str, CompanyDetails] = {}
        self.employees: dict[str, list[Employee]] = {}
        self.finalized: dict[tuple[str, str], ExistingPayrollSummary] = {}
        self.calculator = calculator or self._echo_calculator

        # Call log, for assertions
        self.calls: list[tuple[str, Any]] = []
        self.calculation_payloads: list[bytes] = []
        self.finalization_requests: list[FinalizationRequest] = []

        self._failures: dict[str, list[GatewayError]] = {}
        self._versions = itertools.count(1)

    def add_company(
        self, company: CompanyDetails, employees: list[Employee] | None = None
    ) -> None:
        self.companies[company.id] = company
        self.employees[company.id] = list(employees or [])

    def seed_finalized(
        self,
        company_id: str,
        payroll_month: str,
        summary: ExistingPayrollSummary,
    ) -> None:
        self.finalized[(company_id, payroll_month)] = summary

    def fail_next(self, operation: str, error: GatewayError) -> None:
        """Make the next call of ``operation`` raise ``error``."""
        self._failures.setdefault(operation, []).append(error)

    def _maybe_fail(self, operation: str) -> None:
        queued = self._failures.get(operation)
        if queued:
            raise queued.pop(0)

    async def get_finalized_payroll(
        self, company_id: str, payroll_month: str
    ) -> ExistingPayrollSummary:
        self.calls.append(("get_finalized_payroll", (company_id, payroll_month)))
        self._maybe_fail("get_finalized_payroll")
        summary = self.finalized.get((company_id, payroll_month))
        if summary is None:
            raise GatewayNotFoundError("No payroll found for this month", 404)
        return summary

    async def fetch_company_details(self, company_id: str) -> CompanyDetails:
        self.calls.append(("fetch_company_details", company_id))
        self._maybe_fail("fetch_company_details")
        company = self.companies.get(company_id)
        if company is None:
            raise GatewayNotFoundError(f"Company {company_id} not found", 404)
        return company

    async def fetch_company_employees(self, company_id: str) -> list[Employee]:
        self.calls.append(("fetch_company_employees", company_id))
        self._maybe_fail("fetch_company_employees")
        return list(self.employees.get(company_id, []))

    async def calculate(self, request: CalculationRequest) -> CalculationResult:
        self.calls.append(("calculate", request))
        self.calculation_payloads.append(request.to_json())
        self._maybe_fail("calculate")
        return self.calculator(request)

    async def finalize(self, request: FinalizationRequest) -> FinalizationReceipt:
        self.calls.append(("finalize", request))
        self.finalization_requests.append(request)
        self._maybe_fail("finalize")

        key = (request.company_id, request.payroll_month)
        current = self.finalized.get(key)
        current_version = current.version if current else None
        if current_version != request.expected_version:
            raise GatewayConflictError(
                "Payroll for this month was finalized by someone else",
                current_version=current_version,
            )

        version = str(next(self._versions))
        records = tuple(
            {"employeeId": r.employee_id, "salaryData": r.salary}
            for r in request.payroll_records
        )
        self.finalized[key] = ExistingPayrollSummary(
            records=records,
            total_employees=len(records),
            total_net_salary=_sum(request, "netSalary"),
            total_gross_salary=_sum(request, "grossSalary"),
            finalized_date=datetime.now(timezone.utc),
            version=version,
        )
        return FinalizationReceipt(
            company_id=request.company_id,
            payroll_month=request.payroll_month,
            total_records=len(records),
            version=version,
        )

    def _echo_calculator(self, request: CalculationRequest) -> CalculationResult:
        company = self.companies.get(request.company_id)
        if company is None:
            raise GatewayNotFoundError(f"Company {request.company_id} not found", 404)
        active = [e for e in self.employees.get(company.id, []) if e.is_active]
        inputs = request.admin_inputs or {}
        entries = tuple(
            CalculationResultEntry(
                employee_id=e.id,
                employee_name=e.full_name,
                salary={key: str(v) for key, v in inputs.get(e.id, {}).items()},
            )
            for e in active
        )
        return CalculationResult(
            company_name=company.name,
            payroll_month=request.payroll_month,
            total_employees=len(entries),
            payroll_results=entries,
        )


def _sum(request: FinalizationRequest, key: str) -> Decimal:
    return sum(
        (Decimal(str(r.salary.get(key, 0))) for r in request.payroll_records),
        Decimal("0"),
    )
