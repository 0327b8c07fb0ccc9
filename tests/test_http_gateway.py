"""Tests for the HTTP payroll gateway, using httpx.MockTransport."""

import json
from decimal import Decimal

import httpx
import pytest

from payroll_console.config import Settings
from payroll_console.gateway import (
    GatewayConflictError,
    GatewayError,
    GatewayNotFoundError,
    HttpPayrollGateway,
)
from payroll_console.services.calculation_invoker import (
    CalculationError,
    CalculationInvoker,
)
from payroll_console.services.existing_payroll_guard import ExistingPayrollGuard
from payroll_console.services.state_machine import WorkflowStep
from payroll_console.services.workflow_service import (
    FETCH_ERROR,
    PayrollWorkflowService,
)
from payroll_console.types import (
    CalculationRequest,
    FinalizationRequest,
    PayrollPeriodKey,
    PayrollRecord,
)

pytestmark = pytest.mark.asyncio

BASE_URL = "http://backend.test/api"


def _envelope(data, status_code=200, headers=None) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={"statusCode": status_code, "message": "OK", "data": data},
        headers=headers,
    )


def _gateway(handler) -> HttpPayrollGateway:
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return HttpPayrollGateway(client)


class TestFinalizedPayroll:
    """Test GET /payroll/by-month."""

    async def test_summary_with_etag(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/payroll/by-month/c1/2024-03"
            return _envelope(
                {
                    "records": [{"employeeId": "e1"}, {"employeeId": "e2"}],
                    "summary": {
                        "totalEmployees": 12,
                        "totalNetSalary": "45000.50",
                        "totalGrossSalary": 52000,
                    },
                    "updatedAt": "2024-04-01T10:00:00Z",
                },
                headers={"ETag": '"abc123"'},
            )

        summary = await _gateway(handler).get_finalized_payroll("c1", "2024-03")

        assert summary.total_employees == 12
        assert summary.total_net_salary == Decimal("45000.50")
        assert summary.total_gross_salary == Decimal("52000")
        assert summary.finalized_date.year == 2024
        assert summary.version == '"abc123"'
        assert len(summary.records) == 2

    async def test_version_falls_back_to_timestamp(self):
        def handler(request):
            return _envelope(
                {"records": [{"employeeId": "e1"}], "createdAt": "2024-04-01T10:00:00Z"}
            )

        summary = await _gateway(handler).get_finalized_payroll("c1", "2024-03")

        assert summary.version == "2024-04-01T10:00:00Z"
        assert summary.total_employees == 1

    async def test_empty_records_is_not_found(self):
        gateway = _gateway(lambda request: _envelope({"records": []}))

        with pytest.raises(GatewayNotFoundError):
            await gateway.get_finalized_payroll("c1", "2024-03")

    async def test_404(self):
        gateway = _gateway(
            lambda request: httpx.Response(404, json={"message": "No payroll found"})
        )

        with pytest.raises(GatewayNotFoundError) as exc_info:
            await gateway.get_finalized_payroll("c1", "2024-03")

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "No payroll found"


class TestErrors:
    """Test mapping of failures to gateway errors."""

    async def test_server_error_message_list(self):
        gateway = _gateway(
            lambda request: httpx.Response(
                500, json={"message": ["companyId is required", "bad month"]}
            )
        )

        with pytest.raises(GatewayError) as exc_info:
            await gateway.fetch_company_details("c1")

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "companyId is required; bad month"

    async def test_non_json_error_body(self):
        gateway = _gateway(lambda request: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(GatewayError) as exc_info:
            await gateway.fetch_company_employees("c1")

        assert exc_info.value.message == "Request failed with status 502"

    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GatewayError) as exc_info:
            await _gateway(handler).fetch_company_details("c1")

        assert exc_info.value.status_code is None
        assert "connection refused" in exc_info.value.message


class TestCompany:
    """Test company and employee lookups."""

    async def test_company_details(self):
        template = {"customFields": [{"key": "bonus", "requiresAdminInput": True}]}

        def handler(request):
            assert request.url.path == "/api/companies/c1"
            return _envelope(
                {
                    "id": "c1",
                    "name": "Acme Ltd",
                    "status": "ACTIVE",
                    "contactPersonName": "Ada",
                    "salaryTemplates": [template],
                }
            )

        company = await _gateway(handler).fetch_company_details("c1")

        assert company.name == "Acme Ltd"
        assert company.contact_person_name == "Ada"
        assert company.salary_template == template

    async def test_company_without_template(self):
        gateway = _gateway(
            lambda request: _envelope({"id": 7, "name": "Plain", "salaryTemplates": []})
        )

        company = await gateway.fetch_company_details("7")

        assert company.id == "7"
        assert company.salary_template is None

    async def test_employees(self):
        def handler(request):
            assert request.url.path == "/api/companies/c1/employees"
            return _envelope(
                [
                    {"id": "e1", "firstName": "Ada", "lastName": "Lovelace", "status": "ACTIVE"},
                    {"id": "e2", "firstName": "Alan", "status": "INACTIVE"},
                ]
            )

        employees = await _gateway(handler).fetch_company_employees("c1")

        assert [e.full_name for e in employees] == ["Ada Lovelace", "Alan"]
        assert [e.is_active for e in employees] == [True, False]


class TestCalculateAndFinalize:
    """Test the write-side endpoints."""

    async def test_calculate_sends_canonical_body(self):
        request = CalculationRequest("c1", "2024-03", {"e1": {"bonus": Decimal("500")}})
        seen = {}

        def handler(http_request):
            seen["body"] = http_request.content
            seen["content_type"] = http_request.headers["Content-Type"]
            return _envelope(
                {
                    "companyName": "Acme Ltd",
                    "payrollMonth": "2024-03",
                    "totalEmployees": 2,
                    "payrollResults": [
                        {
                            "employeeId": "e1",
                            "employeeName": "Ada Lovelace",
                            "presentDays": 22,
                            "salary": {"basicPay": 1000, "netSalary": 1400.5},
                        },
                        {
                            "employeeId": "e2",
                            "employeeName": "Alan Turing",
                            "presentDays": 0,
                            "error": "rate not found",
                        },
                    ],
                }
            )

        result = await _gateway(handler).calculate(request)

        assert seen["body"] == request.to_json()
        assert seen["content_type"] == "application/json"
        assert result.total_employees == 2
        assert result.payroll_results[0].net_salary == Decimal("1400.5")
        assert result.payroll_results[0].present_days == Decimal("22")
        assert [e.employee_id for e in result.failed_entries] == ["e2"]

    async def test_finalize_sends_if_match(self):
        request = FinalizationRequest(
            "c1",
            "2024-03",
            (PayrollRecord("e1", {"netSalary": 1000}),),
            expected_version="v1",
        )
        seen = {}

        def handler(http_request):
            seen["if_match"] = http_request.headers.get("If-Match")
            seen["body"] = json.loads(http_request.content)
            return _envelope({"totalRecords": 1}, 201, headers={"ETag": "v2"})

        receipt = await _gateway(handler).finalize(request)

        assert seen["if_match"] == "v1"
        assert seen["body"]["payrollRecords"] == [
            {"employeeId": "e1", "salary": {"netSalary": 1000}}
        ]
        assert receipt.total_records == 1
        assert receipt.version == "v2"

    async def test_first_finalize_requires_unfinalized_period(self):
        """Without a known version the backend must refuse an existing payroll."""
        request = FinalizationRequest(
            "c1", "2024-03", (PayrollRecord("e1", {"netSalary": 1000}),)
        )
        seen = {}

        def handler(http_request):
            seen["headers"] = http_request.headers
            return _envelope({"totalRecords": 1}, 201)

        await _gateway(handler).finalize(request)

        assert "If-Match" not in seen["headers"]
        assert seen["headers"]["If-None-Match"] == "*"

    async def test_finalize_without_body(self):
        """A 204 acknowledgement is a committed finalize."""
        request = FinalizationRequest(
            "c1",
            "2024-03",
            (
                PayrollRecord("e1", {"netSalary": 1000}),
                PayrollRecord("e2", {"netSalary": 900}),
            ),
        )
        gateway = _gateway(lambda http_request: httpx.Response(204))

        receipt = await gateway.finalize(request)

        assert receipt.company_id == "c1"
        assert receipt.payroll_month == "2024-03"
        assert receipt.total_records == 2
        assert receipt.version is None

    async def test_finalize_with_plain_text_body(self):
        request = FinalizationRequest(
            "c1", "2024-03", (PayrollRecord("e1", {"netSalary": 1000}),)
        )
        gateway = _gateway(
            lambda http_request: httpx.Response(
                200, text="Finalized", headers={"ETag": "v1"}
            )
        )

        receipt = await gateway.finalize(request)

        assert receipt.total_records == 1
        assert receipt.version == "v1"

    @pytest.mark.parametrize("status_code", [409, 412])
    async def test_finalize_conflict(self, status_code):
        request = FinalizationRequest(
            "c1",
            "2024-03",
            (PayrollRecord("e1", {"netSalary": 1000}),),
            expected_version="v1",
        )
        gateway = _gateway(
            lambda http_request: httpx.Response(
                status_code,
                json={"message": "Payroll was modified"},
                headers={"ETag": "v3"},
            )
        )

        with pytest.raises(GatewayConflictError) as exc_info:
            await gateway.finalize(request)

        assert exc_info.value.current_version == "v3"
        assert exc_info.value.message == "Payroll was modified"


class TestMalformedBodies:
    """Test 2xx bodies that do not have the expected shape."""

    async def test_null_company(self):
        gateway = _gateway(lambda request: _envelope(None))

        with pytest.raises(GatewayError) as exc_info:
            await gateway.fetch_company_details("c1")

        assert exc_info.value.status_code == 200

    async def test_employees_not_a_list(self):
        gateway = _gateway(lambda request: _envelope({"id": "e1"}))

        with pytest.raises(GatewayError):
            await gateway.fetch_company_employees("c1")

    async def test_employee_row_not_an_object(self):
        gateway = _gateway(lambda request: _envelope(["e1", "e2"]))

        with pytest.raises(GatewayError):
            await gateway.fetch_company_employees("c1")

    async def test_bad_amount_in_summary(self):
        gateway = _gateway(
            lambda request: _envelope(
                {
                    "records": [{"employeeId": "e1"}],
                    "summary": {"totalNetSalary": "lots"},
                }
            )
        )

        with pytest.raises(GatewayError):
            await gateway.get_finalized_payroll("c1", "2024-03")

    async def test_finalized_payroll_not_an_object(self):
        gateway = _gateway(lambda request: _envelope([{"employeeId": "e1"}]))

        with pytest.raises(GatewayNotFoundError):
            await gateway.get_finalized_payroll("c1", "2024-03")

    async def test_calculation_row_without_employee(self):
        gateway = _gateway(
            lambda request: _envelope({"payrollResults": [{"employeeName": "Ada"}]})
        )

        with pytest.raises(GatewayError):
            await gateway.calculate(CalculationRequest("c1", "2024-03"))

    async def test_html_success_page(self):
        gateway = _gateway(
            lambda request: httpx.Response(200, text="<html>Maintenance</html>")
        )

        with pytest.raises(GatewayError):
            await gateway.fetch_company_details("c1")

    async def test_guard_treats_bad_body_as_nothing_finalized(self):
        guard = ExistingPayrollGuard(
            _gateway(lambda request: _envelope({"records": [{"employeeId": "e1"}], "summary": "n/a"}))
        )

        assert await guard.check(PayrollPeriodKey("c1", "2024-03")) is None

    async def test_invoker_reports_bad_body_as_calculation_error(self):
        invoker = CalculationInvoker(_gateway(lambda request: _envelope(None)))

        with pytest.raises(CalculationError):
            await invoker.calculate("c1", "2024-03")

    async def test_workflow_reports_fetch_failure(self):
        """A null company body leaves the operator on step 1 with a retry."""

        def handler(request):
            if request.url.path.startswith("/api/payroll/by-month/"):
                return httpx.Response(404, json={"message": "No payroll found"})
            return _envelope(None)

        workflow = PayrollWorkflowService(_gateway(handler))
        await workflow.select_period("c1", "2024-03")

        snapshot = await workflow.proceed_to_review()

        assert snapshot.current_step == WorkflowStep.SELECT_PERIOD
        assert snapshot.fetch_failed is True
        assert snapshot.errors == [FETCH_ERROR]
        assert workflow.is_busy is False

    async def test_workflow_finalizes_on_empty_acknowledgement(self):
        def handler(request):
            path = request.url.path
            if path.startswith("/api/payroll/by-month/"):
                return httpx.Response(404, json={"message": "No payroll found"})
            if path == "/api/companies/c1":
                return _envelope({"id": "c1", "name": "Plain Co"})
            if path == "/api/companies/c1/employees":
                return _envelope([{"id": "e1", "firstName": "Ada"}])
            if path == "/api/payroll/calculate-payroll":
                return _envelope(
                    {
                        "totalEmployees": 1,
                        "payrollResults": [
                            {"employeeId": "e1", "salary": {"netSalary": 1000}}
                        ],
                    }
                )
            return httpx.Response(204)

        workflow = PayrollWorkflowService(_gateway(handler))
        await workflow.select_period("c1", "2024-03")
        await workflow.proceed_to_review()
        await workflow.continue_from_review()

        snapshot = await workflow.finalize()

        assert snapshot.is_finalized is True
        assert snapshot.errors == []
        assert snapshot.available_actions == ["reset"]
        assert workflow.last_receipt.total_records == 1


class TestFromSettings:
    """Test client construction from settings."""

    async def test_bearer_token(self):
        settings = Settings(
            api_base_url=BASE_URL,
            api_token="secret",
            api_timeout=5,
            gateway="http",
            database_url="sqlite+aiosqlite:///:memory:",
            host="127.0.0.1",
            port=8000,
            debug=False,
            log_level="INFO",
        )

        gateway = HttpPayrollGateway.from_settings(settings)

        assert gateway.client.headers["Authorization"] == "Bearer secret"
        assert str(gateway.client.base_url).startswith(BASE_URL)
        await gateway.aclose()
