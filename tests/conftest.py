"""Pytest fixtures for payroll console tests."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_console.api.app import create_app
from payroll_console.database import create_schema, get_engine, make_session_factory
from payroll_console.gateway import InMemoryPayrollGateway
from payroll_console.services.audit_service import AuditService
from payroll_console.services.workflow_service import PayrollWorkflowService
from payroll_console.types import CompanyDetails, Employee, ExistingPayrollSummary

# Shared single-connection in-memory database (StaticPool)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

COMPANY_ID = "company-acme"
PLAIN_COMPANY_ID = "company-plain"
PAYROLL_MONTH = "2024-03"

SALARY_TEMPLATE = {
    "mandatoryFields": [
        {"key": "basicPay", "label": "Basic Pay", "purpose": "CALCULATION"},
    ],
    "optionalFields": [
        {
            "key": "bonus",
            "label": "Bonus",
            "purpose": "allowance",
            "type": "number",
            "requiresAdminInput": True,
        },
    ],
    "customFields": [
        {
            "key": "advance",
            "label": "Salary Advance",
            "purpose": "DEDUCTION",
            "requiresAdminInput": True,
            "defaultValue": "0",
        },
        {"key": "note", "label": "Note", "purpose": "INFORMATION"},
    ],
}

EMPLOYEES = [
    Employee(id="emp-1", first_name="Ada", last_name="Lovelace", status="ACTIVE"),
    Employee(id="emp-2", first_name="Alan", last_name="Turing", status="ACTIVE"),
    Employee(id="emp-3", first_name="Grace", last_name="Hopper", status="active"),
    Employee(id="emp-4", first_name="Charles", last_name="Babbage", status="INACTIVE"),
]


def make_summary(
    version: str = "v1", total_employees: int = 12
) -> ExistingPayrollSummary:
    """Finalized payroll summary for seeding the gateway."""
    return ExistingPayrollSummary(
        records=tuple(
            {"employeeId": f"emp-{i}", "salaryData": {"netSalary": 1000}}
            for i in range(total_employees)
        ),
        total_employees=total_employees,
        total_net_salary=Decimal("1000") * total_employees,
        total_gross_salary=Decimal("1200") * total_employees,
        finalized_date=datetime(2024, 4, 1, tzinfo=timezone.utc),
        version=version,
    )


def add_companies(gw: InMemoryPayrollGateway) -> InMemoryPayrollGateway:
    """One company with admin input fields and one without a template."""
    gw.add_company(
        CompanyDetails(
            id=COMPANY_ID,
            name="Acme Ltd",
            contact_person_name="Ada Lovelace",
            salary_template=SALARY_TEMPLATE,
        ),
        EMPLOYEES,
    )
    gw.add_company(
        CompanyDetails(id=PLAIN_COMPANY_ID, name="Plain Co", salary_template=None),
        EMPLOYEES[:2],
    )
    return gw


@pytest.fixture
def gateway() -> InMemoryPayrollGateway:
    return add_companies(InMemoryPayrollGateway())


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory on a fresh in-memory audit database."""
    engine = get_engine(TEST_DATABASE_URL)
    await create_schema(engine)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def audit(session_factory) -> AuditService:
    return AuditService(session_factory)


@pytest.fixture
def workflow(gateway, audit) -> PayrollWorkflowService:
    return PayrollWorkflowService(gateway, audit)


@pytest.fixture
async def client(gateway) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, with its lifespan running."""
    app = create_app(gateway=gateway, database_url=TEST_DATABASE_URL)
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
