"""Task API Routes

Clean Architecture implementation: Route → TaskLedgerService → Store
"""

import structlog
from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field, field_validator

from ..core.entities import Task, TaskStatus
from ..core.exceptions import LedgerException
from .dependencies import CallerDep, LedgerServiceDep, to_http_error

router = APIRouter(prefix="/api/v1/tasks", tags=["tasks"])
reservations_router = APIRouter(prefix="/api/v1/reservations", tags=["reservations"])
logger = structlog.get_logger()


# ========== Request/Response Models ==========


class TaskCreateRequest(BaseModel):
    """Request to create a task"""

    task_id: str = Field(..., min_length=1, max_length=128)
    amount: str = Field(..., description="Tokens to reserve (non-negative integer as string)")
    task_owner: str = Field(..., min_length=1, max_length=128)

    @field_validator("amount", mode="before")
    @classmethod
    def amount_must_be_non_negative_integer(cls, v) -> str:
        text = str(v).strip()
        if isinstance(v, bool) or not (text.isascii() and text.isdigit()):
            raise ValueError("amount must be a non-negative integer (e.g. '100')")
        return text


class AssigneeRequest(BaseModel):
    """Request to add an assignee"""

    assignee: str = Field(..., min_length=1, max_length=128)


class TaskResponse(BaseModel):
    """Task response model"""

    task_id: str
    owner: str
    reserved_amount: str
    assignees: list[str]
    status: str
    created_at: str
    updated_at: str | None = None
    closed_at: str | None = None


class TaskListResponse(BaseModel):
    """List of tasks"""

    tasks: list[TaskResponse]
    total: int


class ReservationResponse(BaseModel):
    """Reserved amount for one owner"""

    owner: str
    reserved: str


class DiscrepancyResponse(BaseModel):
    """Reservation entry disagreeing with open tasks"""

    owner: str
    recorded: str
    expected: str


class AuditResponse(BaseModel):
    """Reservation audit result"""

    consistent: bool
    discrepancies: list[DiscrepancyResponse]


def _task_to_response(task: Task) -> TaskResponse:
    data = task.to_dict()
    data.pop("previous_status", None)
    return TaskResponse(**data)


# ========== Public Endpoints ==========


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    ledger: LedgerServiceDep,
    owner: str | None = Query(None, description="Filter by task owner"),
    status: str | None = Query(None, description="Filter by status"),
):
    """List tasks"""
    status_filter = None
    if status:
        try:
            status_filter = TaskStatus(status.upper())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid status: {status}")

    tasks = await ledger.list_tasks(owner=owner, status=status_filter)
    return TaskListResponse(tasks=[_task_to_response(t) for t in tasks], total=len(tasks))


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str, ledger: LedgerServiceDep):
    """Get task details"""
    try:
        task = await ledger.get_task(task_id)
    except LedgerException as e:
        raise to_http_error(e) from e
    return _task_to_response(task)


# ========== Authenticated Endpoints ==========


@router.post("", response_model=TaskResponse, status_code=201)
async def create_task(
    request: TaskCreateRequest,
    ctx: CallerDep,
    ledger: LedgerServiceDep,
):
    """
    Create a task

    Only the principal controlling the token ledger may create tasks. The
    amount is reserved against the task owner's balance.
    """
    try:
        task = await ledger.create_task(ctx, request.task_id, request.amount, request.task_owner)
    except LedgerException as e:
        logger.info("task_creation_rejected", task_id=request.task_id, error=str(e))
        raise to_http_error(e) from e
    return _task_to_response(task)


@router.post("/{task_id}/assignees", response_model=TaskResponse)
async def add_assignee(
    task_id: str,
    request: AssigneeRequest,
    ctx: CallerDep,
    ledger: LedgerServiceDep,
):
    """Add an assignee (task owner only)"""
    try:
        task = await ledger.add_assignee(ctx, task_id, request.assignee)
    except LedgerException as e:
        raise to_http_error(e) from e
    return _task_to_response(task)


@router.post("/{task_id}/complete", response_model=TaskResponse)
async def complete_task(task_id: str, ctx: CallerDep, ledger: LedgerServiceDep):
    """Mark a task as completed (task owner only)"""
    try:
        task = await ledger.mark_completed(ctx, task_id)
    except LedgerException as e:
        raise to_http_error(e) from e
    return _task_to_response(task)


@router.post("/{task_id}/close", response_model=TaskResponse)
async def close_task(task_id: str, ctx: CallerDep, ledger: LedgerServiceDep):
    """
    Close a task (administrator only)

    Releases the reserved tokens to the assignees.
    """
    try:
        task = await ledger.mark_closed(ctx, task_id)
    except LedgerException as e:
        logger.warning("task_close_rejected", task_id=task_id, error=str(e))
        raise to_http_error(e) from e
    return _task_to_response(task)


# ========== Reservations ==========


@reservations_router.get("/audit", response_model=AuditResponse)
async def audit_reservations(ledger: LedgerServiceDep):
    """Check the reservation ledger against open tasks"""
    discrepancies = await ledger.audit_reservations()
    return AuditResponse(
        consistent=not discrepancies,
        discrepancies=[
            DiscrepancyResponse(owner=d.owner, recorded=str(d.recorded), expected=str(d.expected))
            for d in discrepancies
        ],
    )


@reservations_router.get("/{owner}", response_model=ReservationResponse)
async def get_reservation(owner: str, ledger: LedgerServiceDep):
    """Get tokens reserved for an owner"""
    reserved = await ledger.get_reservation(owner)
    return ReservationResponse(owner=owner, reserved=str(reserved))
