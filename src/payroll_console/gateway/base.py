"""Base protocol and errors for payroll backend gateways.

All backend adapters must implement the PayrollGateway protocol. The workflow
uses the gateway without knowing how the backend computes or stores payroll.
"""

from __future__ import annotations

from typing import Protocol

from payroll_console.types import (
    CalculationRequest,
    CalculationResult,
    CompanyDetails,
    Employee,
    ExistingPayrollSummary,
    FinalizationReceipt,
    FinalizationRequest,
)


class GatewayError(Exception):
    """Raised when a backend call fails: transport error, non-2xx or unreadable body."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


class GatewayNotFoundError(GatewayError):
    """Raised when the backend answers 404."""


class GatewayConflictError(GatewayError):
    """Raised when the backend rejects a write because the data changed."""

    def __init__(
        self,
        message: str,
        status_code: int | None = 409,
        current_version: str | None = None,
    ):
        self.current_version = current_version
        super().__init__(message, status_code)


class PayrollGateway(Protocol):
    """Protocol for payroll backend adapters.

    Every method is a suspend point for the workflow.
    """

    async def get_finalized_payroll(
        self, company_id: str, payroll_month: str
    ) -> ExistingPayrollSummary:
        """Fetch the finalized payroll for a period.

        Raises:
            GatewayNotFoundError: If nothing was finalized for the period.
            GatewayError: On any other failure.
        """
        ...

    async def fetch_company_details(self, company_id: str) -> CompanyDetails:
        """Fetch a company with its salary template."""
        ...

    async def fetch_company_employees(self, company_id: str) -> list[Employee]:
        """Fetch all employees of a company (active or not)."""
        ...

    async def calculate(self, request: CalculationRequest) -> CalculationResult:
        """Compute payroll without persisting anything.

        Per-employee failures are reported on the result entries.
        """
        ...

    async def finalize(self, request: FinalizationRequest) -> FinalizationReceipt:
        """Persist payroll records for a period, superseding any previous ones.

        Raises:
            GatewayConflictError: If request.expected_version no longer
                matches the stored payroll.
            GatewayError: On any other failure.
        """
        ...
