"""Payroll workflow API endpoints.

Refused transitions, busy workflows and closed workflows are translated to
HTTP errors by the handlers registered in the app factory.
"""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status

from payroll_console.api.dependencies import Audit, Workflow
from payroll_console.api.schemas import (
    AdminInputUpdate,
    AuditEventResponse,
    ErrorResponse,
    PeriodSelection,
    WorkflowResponse,
)

router = APIRouter(prefix="/payroll-workflow", tags=["payroll-workflow"])

REFUSALS = {
    409: {"model": ErrorResponse},
    423: {"model": ErrorResponse},
}


# ============================================================================
# State
# ============================================================================


@router.get("", response_model=WorkflowResponse)
async def get_workflow_state(workflow: Workflow) -> WorkflowResponse:
    """Current step, validation errors, results and enabled actions."""
    return WorkflowResponse.from_snapshot(workflow.snapshot())


@router.get("/audit", response_model=list[AuditEventResponse])
async def list_audit_events(
    audit: Audit,
    company_id: Annotated[str, Query(min_length=1)],
    payroll_month: Annotated[str, Query(pattern=r"^\d{4}-\d{2}$")],
) -> list[AuditEventResponse]:
    """Audit trail of workflow outcomes for a period."""
    events = await audit.list_for_period(company_id, payroll_month)
    return [AuditEventResponse.model_validate(e) for e in events]


# ============================================================================
# Step 1: period selection and existing payroll guard
# ============================================================================


@router.post("/period", response_model=WorkflowResponse, responses=REFUSALS)
async def select_period(workflow: Workflow, payload: PeriodSelection) -> WorkflowResponse:
    """Select company and month; checks for an already finalized payroll."""
    snapshot = await workflow.select_period(payload.company_id, payload.payroll_month)
    return WorkflowResponse.from_snapshot(snapshot)


@router.post("/recalculation", response_model=WorkflowResponse, responses=REFUSALS)
async def request_recalculation(workflow: Workflow) -> WorkflowResponse:
    """Open the "recalculate anyway" confirmation."""
    return WorkflowResponse.from_snapshot(workflow.request_recalculation())


@router.post(
    "/recalculation/confirm", response_model=WorkflowResponse, responses=REFUSALS
)
async def confirm_recalculation(workflow: Workflow) -> WorkflowResponse:
    return WorkflowResponse.from_snapshot(await workflow.confirm_recalculation())


@router.post(
    "/recalculation/cancel", response_model=WorkflowResponse, responses=REFUSALS
)
async def cancel_recalculation(workflow: Workflow) -> WorkflowResponse:
    return WorkflowResponse.from_snapshot(workflow.cancel_recalculation())


@router.post("/review", response_model=WorkflowResponse, responses=REFUSALS)
async def proceed_to_review(workflow: Workflow) -> WorkflowResponse:
    """Fetch company data and move to the review step."""
    return WorkflowResponse.from_snapshot(await workflow.proceed_to_review())


# ============================================================================
# Steps 2-5
# ============================================================================


@router.post("/continue", response_model=WorkflowResponse, responses=REFUSALS)
async def continue_from_review(workflow: Workflow) -> WorkflowResponse:
    """Go to admin input, or calculate straight away when none is needed."""
    return WorkflowResponse.from_snapshot(await workflow.continue_from_review())


@router.put(
    "/admin-inputs",
    response_model=WorkflowResponse,
    responses={**REFUSALS, 422: {"model": ErrorResponse}},
)
async def update_admin_inputs(
    workflow: Workflow, payload: AdminInputUpdate
) -> WorkflowResponse:
    """Enter admin input values for active employees."""
    try:
        for cell in payload.values:
            workflow.set_admin_input(cell.employee_id, cell.key, cell.value)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    return WorkflowResponse.from_snapshot(workflow.snapshot())


@router.post("/calculate", response_model=WorkflowResponse, responses=REFUSALS)
async def calculate(workflow: Workflow) -> WorkflowResponse:
    """Validate admin inputs and calculate payroll."""
    return WorkflowResponse.from_snapshot(await workflow.calculate())


@router.post("/finalize", response_model=WorkflowResponse, responses=REFUSALS)
async def finalize(workflow: Workflow) -> WorkflowResponse:
    """Commit the calculated payroll for the period."""
    return WorkflowResponse.from_snapshot(await workflow.finalize())


@router.post("/back", response_model=WorkflowResponse, responses=REFUSALS)
async def back(workflow: Workflow) -> WorkflowResponse:
    return WorkflowResponse.from_snapshot(workflow.back())


@router.post("/reset", response_model=WorkflowResponse, responses=REFUSALS)
async def reset(workflow: Workflow) -> WorkflowResponse:
    """Start over from step 1."""
    return WorkflowResponse.from_snapshot(await workflow.reset())
