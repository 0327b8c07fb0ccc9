"""Calculation requests against the payroll backend."""

from __future__ import annotations

import logging

from payroll_console.gateway.base import GatewayError, PayrollGateway
from payroll_console.types import AdminInputs, CalculationRequest, CalculationResult

logger = logging.getLogger(__name__)


class CalculationError(Exception):
    """Raised when the calculation request as a whole fails."""

    def __init__(self, company_id: str, payroll_month: str, reason: str):
        self.company_id = company_id
        self.payroll_month = payroll_month
        self.reason = reason
        super().__init__(
            f"Payroll calculation for {company_id} {payroll_month} failed: {reason}"
        )


class CalculationInvoker:
    """Sends calculation requests. Read/compute only, never persists.

    Per-employee failures are not exceptions: they come back as
    CalculationResultEntry.error inside a successful result.
    """

    def __init__(self, gateway: PayrollGateway):
        self.gateway = gateway

    @staticmethod
    def build_request(
        company_id: str,
        payroll_month: str,
        admin_inputs: AdminInputs | None = None,
    ) -> CalculationRequest:
        return CalculationRequest(
            company_id=company_id,
            payroll_month=payroll_month,
            admin_inputs=admin_inputs or None,
        )

    async def calculate(
        self,
        company_id: str,
        payroll_month: str,
        admin_inputs: AdminInputs | None = None,
    ) -> CalculationResult:
        """Calculate payroll for a period.

        Raises:
            CalculationError: If the gateway call fails.
        """
        request = self.build_request(company_id, payroll_month, admin_inputs)
        try:
            result = await self.gateway.calculate(request)
        except GatewayError as e:
            raise CalculationError(company_id, payroll_month, e.message) from e

        failed = result.failed_entries
        if failed:
            logger.warning(
                "Calculation for %s %s returned %d employee error(s)",
                company_id,
                payroll_month,
                len(failed),
            )
        return result
