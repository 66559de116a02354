"""Transaction submission route.

Routes:
    POST   /api/v1/transactions    — Submit a signed transaction

Clients build and sign transactions themselves; the server never holds a
private key. A transaction either commits completely (201 + receipt) or
not at all (structured error naming the failing instruction).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from token_escrow.api.deps import get_escrow_service
from token_escrow.logging_config import get_logger
from token_escrow.runtime.transaction import decode_transaction
from token_escrow.schemas.escrow import SubmitTransactionRequest, TransactionReceiptResponse
from token_escrow.services.escrow_service import EscrowService

router = APIRouter(prefix="/api/v1/transactions", tags=["Transactions"])
logger = get_logger(__name__)


@router.post(
    "",
    response_model=TransactionReceiptResponse,
    status_code=201,
    summary="Submit a signed transaction",
)
async def submit_transaction(
    request: SubmitTransactionRequest,
    svc: EscrowService = Depends(get_escrow_service),
) -> TransactionReceiptResponse:
    """Decode, verify, execute and commit a transaction atomically."""
    tx = decode_transaction(request.transaction)
    receipt = await svc.submit(tx)
    logger.info("api.transaction_committed", signature=receipt.signature)
    return TransactionReceiptResponse(**receipt.to_dict())
