"""Pydantic schemas for the ledger API.

These schemas define the request/response shapes for the REST API. They
are separate from the ORM models and the runtime dataclasses to keep clean
boundaries between the API, the runtime and the database layers.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class SubmitTransactionRequest(BaseModel):
    """Request body for submitting a signed transaction."""

    transaction: str = Field(
        ...,
        min_length=1,
        description="Signed transaction, bincode-serialized and base64-encoded",
    )
    encoding: Literal["base64"] = "base64"


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class TransactionReceiptResponse(BaseModel):
    """Response schema for a committed transaction."""

    signature: str
    logs: list[str]


class OfferResponse(BaseModel):
    """Response schema for an open offer."""

    address: str
    id: int
    maker: str
    token_mint_a: str
    token_mint_b: str
    token_b_amount_wanted: int
    bump: int
    vault: str


class OfferStatusResponse(BaseModel):
    """Lightweight status check response."""

    offer_address: str
    status: str
    allowed_events: list[str] = Field(
        description="State machine events that can fire from the current status"
    )


class LedgerEventResponse(BaseModel):
    """Response schema for an audit event."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    offer_address: str
    event_type: str
    old_status: str
    new_status: str
    actor: str
    transaction_signature: str
    metadata: dict | None = Field(default=None, validation_alias="metadata_json")
    created_at: datetime


class TokenAccountResponse(BaseModel):
    """Response schema for a token account balance."""

    model_config = ConfigDict(from_attributes=True)

    address: str
    mint: str
    owner: str
    amount: int
    lamports: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
