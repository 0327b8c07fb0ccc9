"""HTTP adapter for the payroll REST backend."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, TypeVar

import httpx

from payroll_console.config import Settings
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

logger = logging.getLogger(__name__)

PAYROLL_ENDPOINT = "/payroll"
COMPANY_ENDPOINT = "/companies"

T = TypeVar("T")


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


def parse_existing_payroll(
    data: dict[str, Any], etag: str | None = None
) -> ExistingPayrollSummary:
    """Build a summary from a by-month response body."""
    summary = data.get("summary") or {}
    records = tuple(data.get("records") or ())
    finalized = data.get("updatedAt") or data.get("createdAt")
    return ExistingPayrollSummary(
        records=records,
        total_employees=int(summary.get("totalEmployees", len(records))),
        total_net_salary=_decimal(summary.get("totalNetSalary")),
        total_gross_salary=_decimal(summary.get("totalGrossSalary")),
        finalized_date=_parse_datetime(finalized),
        version=etag or data.get("version") or finalized,
    )


def parse_company(data: dict[str, Any]) -> CompanyDetails:
    """Build company details; salaryTemplates may be a list or one object."""
    templates = data.get("salaryTemplates")
    if isinstance(templates, list):
        template = templates[0] if templates else None
    else:
        template = templates
    return CompanyDetails(
        id=str(data["id"]),
        name=data.get("name", ""),
        status=data.get("status", "ACTIVE"),
        contact_person_name=data.get("contactPersonName"),
        contact_person_number=data.get("contactPersonNumber"),
        salary_template=template,
    )


def parse_employee(data: dict[str, Any]) -> Employee:
    return Employee(
        id=str(data.get("id") or data.get("employeeId")),
        first_name=data.get("firstName") or "",
        last_name=data.get("lastName") or "",
        status=data.get("status") or "ACTIVE",
    )


def parse_calculation(data: dict[str, Any]) -> CalculationResult:
    """Build a calculation result from a calculate-payroll response body."""
    entries = tuple(
        CalculationResultEntry(
            employee_id=str(row["employeeId"]),
            employee_name=row.get("employeeName") or "",
            present_days=_decimal(row.get("presentDays")),
            salary=row.get("salary"),
            error=row.get("error") or None,
        )
        for row in data.get("payrollResults") or ()
    )
    return CalculationResult(
        company_name=data.get("companyName", ""),
        payroll_month=data.get("payrollMonth", ""),
        total_employees=int(data.get("totalEmployees", len(entries))),
        payroll_results=entries,
    )


class HttpPayrollGateway:
    """Gateway over the console's REST backend.

    Responses use the envelope {statusCode, message, data}.
    """

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> HttpPayrollGateway:
        headers = {"Accept": "application/json"}
        if settings.api_token:
            headers["Authorization"] = f"Bearer {settings.api_token}"
        client = httpx.AsyncClient(
            base_url=settings.api_base_url,
            headers=headers,
            timeout=settings.api_timeout,
        )
        return cls(client)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        request_headers = dict(headers or {})
        if content is not None:
            request_headers["Content-Type"] = "application/json"
        try:
            response = await self.client.request(
                method, url, content=content, headers=request_headers
            )
        except httpx.HTTPError as e:
            raise GatewayError(f"{method} {url} failed: {e}") from e

        if response.is_success:
            return response

        message = _error_message(response)
        if response.status_code == 404:
            raise GatewayNotFoundError(message, response.status_code)
        if response.status_code in (409, 412):
            raise GatewayConflictError(
                message,
                response.status_code,
                current_version=response.headers.get("ETag"),
            )
        raise GatewayError(message, response.status_code)

    async def get_finalized_payroll(
        self, company_id: str, payroll_month: str
    ) -> ExistingPayrollSummary:
        response = await self._request(
            "GET", f"{PAYROLL_ENDPOINT}/by-month/{company_id}/{payroll_month}"
        )
        data = _data(response)
        if not isinstance(data, dict) or not data.get("records"):
            raise GatewayNotFoundError("No finalized payroll", response.status_code)
        return _parsed(
            response, parse_existing_payroll, data, response.headers.get("ETag")
        )

    async def fetch_company_details(self, company_id: str) -> CompanyDetails:
        response = await self._request("GET", f"{COMPANY_ENDPOINT}/{company_id}")
        return _parsed(response, parse_company, _data(response))

    async def fetch_company_employees(self, company_id: str) -> list[Employee]:
        response = await self._request(
            "GET", f"{COMPANY_ENDPOINT}/{company_id}/employees"
        )
        return _parsed(response, parse_employees, _data(response))

    async def calculate(self, request: CalculationRequest) -> CalculationResult:
        logger.debug(
            "Calculating payroll for %s %s", request.company_id, request.payroll_month
        )
        response = await self._request(
            "POST", f"{PAYROLL_ENDPOINT}/calculate-payroll", content=request.to_json()
        )
        return _parsed(response, parse_calculation, _data(response))

    async def finalize(self, request: FinalizationRequest) -> FinalizationReceipt:
        # Without a known version the period must still be unfinalized
        if request.expected_version:
            headers = {"If-Match": request.expected_version}
        else:
            headers = {"If-None-Match": "*"}
        response = await self._request(
            "POST",
            f"{PAYROLL_ENDPOINT}/finalize",
            content=request.to_json(),
            headers=headers,
        )
        # Committed at this point: an odd acknowledgement body must not fail it
        return parse_receipt(_data(response), request, response.headers.get("ETag"))


def parse_employees(data: Any) -> list[Employee]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise TypeError(f"expected a list of employees, got {type(data).__name__}")
    return [parse_employee(row) for row in data]


def parse_receipt(
    data: Any, request: FinalizationRequest, etag: str | None = None
) -> FinalizationReceipt:
    """Receipt for a committed finalize; request values fill the gaps."""
    if not isinstance(data, dict):
        data = {}
    try:
        total_records = int(data.get("totalRecords", len(request.payroll_records)))
    except (TypeError, ValueError):
        total_records = len(request.payroll_records)
    return FinalizationReceipt(
        company_id=str(data.get("companyId") or request.company_id),
        payroll_month=data.get("payrollMonth") or request.payroll_month,
        total_records=total_records,
        version=etag,
    )


# What a parser raises on a body of the wrong shape
PARSE_ERRORS = (AttributeError, KeyError, TypeError, ValueError, ArithmeticError)


def _parsed(response: httpx.Response, parser: Callable[..., T], *args: Any) -> T:
    """Run a parser, reporting a malformed body as a GatewayError."""
    try:
        return parser(*args)
    except PARSE_ERRORS as e:
        raise GatewayError(
            f"Unexpected response from {response.request.url.path}: {e!r}",
            response.status_code,
        ) from e


def _data(response: httpx.Response) -> Any:
    """Envelope payload; None for an empty or non-JSON body."""
    if not response.content:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        message = body["message"]
        if isinstance(message, list):
            return "; ".join(str(m) for m in message)
        return str(message)
    return f"Request failed with status {response.status_code}"
