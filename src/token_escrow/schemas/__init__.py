"""Pydantic API schemas."""

from token_escrow.schemas.escrow import (
    HealthResponse,
    LedgerEventResponse,
    OfferResponse,
    OfferStatusResponse,
    SubmitTransactionRequest,
    TokenAccountResponse,
    TransactionReceiptResponse,
)

__all__ = [
    "HealthResponse",
    "LedgerEventResponse",
    "OfferResponse",
    "OfferStatusResponse",
    "SubmitTransactionRequest",
    "TokenAccountResponse",
    "TransactionReceiptResponse",
]
