"""Contract API Routes

Initialization and ledger address management.
"""

import structlog
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..core.entities import ContractState
from ..core.exceptions import LedgerException
from .dependencies import CallerDep, LedgerServiceDep, to_http_error

router = APIRouter(prefix="/api/v1/contract", tags=["contract"])
logger = structlog.get_logger()


class LedgerAddressRequest(BaseModel):
    """Request carrying a token ledger address"""

    ledger_address: str = Field(..., min_length=1, max_length=512)


class ContractResponse(BaseModel):
    """Contract state response model"""

    administrator: str
    ledger_address: str
    initialized_at: str


def _contract_to_response(contract: ContractState) -> ContractResponse:
    return ContractResponse(**contract.to_dict())


@router.get("", response_model=ContractResponse)
async def get_contract(ledger: LedgerServiceDep):
    """Get administrator and ledger address"""
    try:
        contract = await ledger.get_contract()
    except LedgerException as e:
        raise to_http_error(e) from e
    return _contract_to_response(contract)


@router.post("/init", response_model=ContractResponse, status_code=201)
async def initialize_contract(
    request: LedgerAddressRequest,
    ctx: CallerDep,
    ledger: LedgerServiceDep,
):
    """
    Initialize the contract

    The authenticated caller becomes the administrator. Can only be done once.
    """
    try:
        contract = await ledger.initialize(ctx, request.ledger_address)
    except LedgerException as e:
        raise to_http_error(e) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return _contract_to_response(contract)


@router.put("/address", response_model=ContractResponse)
async def set_ledger_address(
    request: LedgerAddressRequest,
    ctx: CallerDep,
    ledger: LedgerServiceDep,
):
    """Change the token ledger address (administrator only)"""
    try:
        contract = await ledger.set_ledger_address(ctx, request.ledger_address)
    except LedgerException as e:
        logger.info("ledger_address_change_rejected", caller=ctx.caller, error=str(e))
        raise to_http_error(e) from e
    return _contract_to_response(contract)
