"""Token account query route.

Routes:
    GET    /api/v1/accounts/{address}   — Token account balance
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from token_escrow.api.deps import get_escrow_service, parse_address
from token_escrow.schemas.escrow import TokenAccountResponse
from token_escrow.services.escrow_service import EscrowService

router = APIRouter(prefix="/api/v1/accounts", tags=["Accounts"])


@router.get(
    "/{address}",
    response_model=TokenAccountResponse,
    summary="Get a token account",
)
async def get_token_account(
    address: str,
    svc: EscrowService = Depends(get_escrow_service),
) -> TokenAccountResponse:
    account = await svc.token_balance(parse_address(address))
    return TokenAccountResponse.model_validate(account)
