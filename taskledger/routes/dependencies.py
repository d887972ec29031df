"""FastAPI Dependencies for the Task Ledger

Provides dependency injection for the ledger service and caller identity.
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException

from ..config import Settings, get_settings
from ..core.entities import CallContext
from ..core.exceptions import (
    AlreadyInitialized,
    ConcurrentModification,
    ExternalCallFailure,
    InsufficientBalance,
    InvalidAmount,
    InvalidStateTransition,
    InvariantViolation,
    LedgerException,
    LedgerNotInitialized,
    TaskAlreadyExists,
    TaskNotFound,
    Unauthorized,
)
from ..services import TaskLedgerService

# Global service instance (initialized in lifespan)
_ledger_service: TaskLedgerService | None = None


def init_services(ledger_service: TaskLedgerService) -> None:
    """Initialize global service instances (called from lifespan)"""
    global _ledger_service
    _ledger_service = ledger_service


def get_ledger_service() -> TaskLedgerService:
    """Get TaskLedgerService instance"""
    if _ledger_service is None:
        raise RuntimeError("TaskLedgerService not initialized")
    return _ledger_service


def get_call_context(
    authorization: Annotated[str | None, Header()] = None,
    settings: Settings = Depends(get_settings),
) -> CallContext:
    """
    Resolve the caller from a bearer token

    Identity comes from the configured token table only, never from a
    request body field.
    """
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")

    token = authorization[7:].strip()
    principal = settings.api_tokens.get(token)
    if not principal:
        raise HTTPException(status_code=401, detail="Invalid token")
    return CallContext(caller=principal)


LedgerServiceDep = Annotated[TaskLedgerService, Depends(get_ledger_service)]
CallerDep = Annotated[CallContext, Depends(get_call_context)]


# Domain error -> HTTP status
_STATUS_CODES: list[tuple[type[LedgerException], int]] = [
    (Unauthorized, 403),
    (TaskNotFound, 404),
    (TaskAlreadyExists, 409),
    (InsufficientBalance, 409),
    (InvalidStateTransition, 409),
    (LedgerNotInitialized, 409),
    (AlreadyInitialized, 409),
    (ConcurrentModification, 409),
    (InvalidAmount, 422),
    (ExternalCallFailure, 502),
    (InvariantViolation, 500),
]


def to_http_error(error: LedgerException) -> HTTPException:
    """Translate a domain exception into an HTTPException"""
    for exc_type, status_code in _STATUS_CODES:
        if isinstance(error, exc_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail="Ledger error")
