"""Detection of payroll already finalized for a period."""

from __future__ import annotations

import logging
from enum import Enum

from payroll_console.gateway.base import GatewayError, PayrollGateway
from payroll_console.types import ExistingPayrollSummary, PayrollPeriodKey

logger = logging.getLogger(__name__)


class GuardDecision(str, Enum):
    """What the period selection step may do."""

    PASS = "pass"  # nothing finalized yet
    BLOCK = "block"  # finalized, operator has not confirmed
    CONFIRMED = "confirmed"  # finalized, operator chose to recalculate


class ExistingPayrollGuard:
    """Looks up a prior finalized payroll before calculation may start.

    Absence of data means absence of a finalized payroll: every gateway
    failure, 404 included, is reported as "nothing finalized".
    """

    def __init__(self, gateway: PayrollGateway):
        self.gateway = gateway

    async def check(self, key: PayrollPeriodKey) -> ExistingPayrollSummary | None:
        try:
            summary = await self.gateway.get_finalized_payroll(
                key.company_id, key.payroll_month
            )
        except GatewayError as e:
            logger.debug(
                "No finalized payroll for %s %s (%s)",
                key.company_id,
                key.payroll_month,
                e,
            )
            return None
        logger.info(
            "Payroll for %s %s already finalized for %d employees",
            key.company_id,
            key.payroll_month,
            summary.total_employees,
        )
        return summary

    @staticmethod
    def decide(
        existing: ExistingPayrollSummary | None, recalculate_confirmed: bool
    ) -> GuardDecision:
        if existing is None:
            return GuardDecision.PASS
        if recalculate_confirmed:
            return GuardDecision.CONFIRMED
        return GuardDecision.BLOCK
