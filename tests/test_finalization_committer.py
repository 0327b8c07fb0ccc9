"""Tests for committing calculated payroll."""

from decimal import Decimal

import pytest

from payroll_console.gateway import GatewayError
from payroll_console.services.finalization_committer import (
    FinalizationCommitter,
    FinalizationError,
    PayrollConflictError,
)
from payroll_console.types import (
    CalculationResult,
    CalculationResultEntry,
    PayrollRecord,
)

from tests.conftest import COMPANY_ID, PAYROLL_MONTH, make_summary


def _salary(net: int) -> dict:
    return {"basicPay": net, "grossSalary": net + 200, "netSalary": net}


def _five_results_one_error() -> CalculationResult:
    entries = [
        CalculationResultEntry(f"emp-{i}", f"Employee {i}", salary=_salary(1000 * i))
        for i in range(1, 5)
    ]
    entries.insert(
        2, CalculationResultEntry("emp-x", "Broken Employee", error="rate not found")
    )
    return CalculationResult(
        company_name="Acme Ltd",
        payroll_month=PAYROLL_MONTH,
        total_employees=5,
        payroll_results=tuple(entries),
    )


class TestBuildRecords:
    """Test selection of finalizable rows."""

    def test_errored_rows_excluded(self):
        """Five results with one error give exactly four records."""
        records = FinalizationCommitter.build_records(_five_results_one_error())

        assert len(records) == 4
        assert "emp-x" not in [r.employee_id for r in records]
        assert records[0].to_payload() == {"employeeId": "emp-1", "salary": _salary(1000)}

    def test_rows_without_salary_excluded(self):
        result = CalculationResult(
            company_name="Acme Ltd",
            payroll_month=PAYROLL_MONTH,
            total_employees=1,
            payroll_results=(CalculationResultEntry("emp-1", "Ada Lovelace"),),
        )

        assert FinalizationCommitter.build_records(result) == []


class TestFinalize:
    """Test the commit through the gateway."""

    async def test_finalize_sends_four_records(self, gateway):
        committer = FinalizationCommitter(gateway)
        records = committer.build_records(_five_results_one_error())

        receipt = await committer.finalize(COMPANY_ID, PAYROLL_MONTH, records)

        assert receipt.total_records == 4
        request = gateway.finalization_requests[-1]
        assert len(request.to_payload()["payrollRecords"]) == 4

        stored = gateway.finalized[(COMPANY_ID, PAYROLL_MONTH)]
        assert stored.total_employees == 4
        assert stored.total_net_salary == Decimal("10000")
        assert stored.version == receipt.version

    async def test_empty_records_refused_without_backend_call(self, gateway):
        with pytest.raises(FinalizationError, match="No employees"):
            await FinalizationCommitter(gateway).finalize(COMPANY_ID, PAYROLL_MONTH, [])

        assert gateway.finalization_requests == []

    async def test_stale_version_conflicts(self, gateway):
        """Someone else finalized meanwhile: the expected version is stale."""
        gateway.seed_finalized(COMPANY_ID, PAYROLL_MONTH, make_summary(version="v2"))
        records = [PayrollRecord("emp-1", _salary(1000))]

        with pytest.raises(PayrollConflictError) as exc_info:
            await FinalizationCommitter(gateway).finalize(
                COMPANY_ID, PAYROLL_MONTH, records, expected_version="v1"
            )

        assert exc_info.value.current_version == "v2"
        assert gateway.finalized[(COMPANY_ID, PAYROLL_MONTH)].version == "v2"

    async def test_unexpected_existing_payroll_conflicts(self, gateway):
        gateway.seed_finalized(COMPANY_ID, PAYROLL_MONTH, make_summary(version="v2"))
        records = [PayrollRecord("emp-1", _salary(1000))]

        with pytest.raises(PayrollConflictError):
            await FinalizationCommitter(gateway).finalize(
                COMPANY_ID, PAYROLL_MONTH, records
            )

    async def test_matching_version_supersedes(self, gateway):
        gateway.seed_finalized(COMPANY_ID, PAYROLL_MONTH, make_summary(version="v2"))
        records = [PayrollRecord("emp-1", _salary(1000))]

        receipt = await FinalizationCommitter(gateway).finalize(
            COMPANY_ID, PAYROLL_MONTH, records, expected_version="v2"
        )

        assert receipt.version != "v2"
        assert gateway.finalized[(COMPANY_ID, PAYROLL_MONTH)].total_employees == 1

    async def test_gateway_failure(self, gateway):
        gateway.fail_next("finalize", GatewayError("Database unavailable", 503))
        records = [PayrollRecord("emp-1", _salary(1000))]

        with pytest.raises(FinalizationError) as exc_info:
            await FinalizationCommitter(gateway).finalize(
                COMPANY_ID, PAYROLL_MONTH, records
            )

        assert not isinstance(exc_info.value, PayrollConflictError)
        assert exc_info.value.reason == "Database unavailable"
