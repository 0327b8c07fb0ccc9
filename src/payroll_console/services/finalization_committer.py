"""Commit of calculated payroll for a period."""

from __future__ import annotations

import logging

from payroll_console.gateway.base import (
    GatewayConflictError,
    GatewayError,
    PayrollGateway,
)
from payroll_console.types import (
    CalculationResult,
    FinalizationReceipt,
    FinalizationRequest,
    PayrollRecord,
)

logger = logging.getLogger(__name__)


class FinalizationError(Exception):
    """Raised when the backend rejects a finalize."""

    def __init__(self, company_id: str, payroll_month: str, reason: str):
        self.company_id = company_id
        self.payroll_month = payroll_month
        self.reason = reason
        super().__init__(
            f"Finalizing payroll for {company_id} {payroll_month} failed: {reason}"
        )


class PayrollConflictError(FinalizationError):
    """Raised when the period was finalized by someone else meanwhile."""

    def __init__(
        self,
        company_id: str,
        payroll_month: str,
        reason: str,
        current_version: str | None = None,
    ):
        self.current_version = current_version
        super().__init__(company_id, payroll_month, reason)


class FinalizationCommitter:
    """Turns a calculation result into persisted payroll records.

    Finalize is not idempotent: a second call supersedes the first. Callers
    must disable the action once it succeeded.
    """

    def __init__(self, gateway: PayrollGateway):
        self.gateway = gateway

    @staticmethod
    def build_records(result: CalculationResult) -> list[PayrollRecord]:
        """Rows with a salary and without an error."""
        return [
            PayrollRecord(employee_id=entry.employee_id, salary=dict(entry.salary))
            for entry in result.payroll_results
            if entry.is_finalizable
        ]

    async def finalize(
        self,
        company_id: str,
        payroll_month: str,
        records: list[PayrollRecord],
        expected_version: str | None = None,
    ) -> FinalizationReceipt:
        """Commit records for a period.

        Raises:
            PayrollConflictError: If expected_version is stale.
            FinalizationError: If there is nothing to commit or the backend
                rejects the commit.
        """
        if not records:
            raise FinalizationError(
                company_id, payroll_month, "No employees with a calculated salary"
            )

        request = FinalizationRequest(
            company_id=company_id,
            payroll_month=payroll_month,
            payroll_records=tuple(records),
            expected_version=expected_version,
        )
        try:
            receipt = await self.gateway.finalize(request)
        except GatewayConflictError as e:
            raise PayrollConflictError(
                company_id, payroll_month, e.message, e.current_version
            ) from e
        except GatewayError as e:
            raise FinalizationError(company_id, payroll_month, e.message) from e

        logger.info(
            "Finalized payroll for %s %s (%d records)",
            company_id,
            payroll_month,
            receipt.total_records,
        )
        return receipt
