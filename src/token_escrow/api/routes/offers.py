"""Offer query routes.

Routes:
    GET    /api/v1/offers?maker=...          — Open offers of a maker
    GET    /api/v1/offers/{address}          — Open offer details
    GET    /api/v1/offers/{address}/status   — Lifecycle status
    GET    /api/v1/offers/{address}/events   — Audit trail

Offers are made, taken and cancelled through POST /api/v1/transactions.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from token_escrow.api.deps import get_escrow_service, parse_address
from token_escrow.programs.escrow.custody import VaultCustodian
from token_escrow.programs.escrow.state import Offer
from token_escrow.schemas.escrow import (
    LedgerEventResponse,
    OfferResponse,
    OfferStatusResponse,
)
from token_escrow.services.escrow_service import EscrowService

router = APIRouter(prefix="/api/v1/offers", tags=["Offers"])


def _offer_response(offer: Offer) -> OfferResponse:
    return OfferResponse(
        **offer.to_dict(),
        vault=str(VaultCustodian.vault_address(offer.address, offer.token_mint_a)),
    )


@router.get(
    "",
    response_model=list[OfferResponse],
    summary="List a maker's open offers",
)
async def list_offers(
    maker: str = Query(..., description="Base58 address of the maker"),
    svc: EscrowService = Depends(get_escrow_service),
) -> list[OfferResponse]:
    offers = await svc.list_offers(parse_address(maker))
    return [_offer_response(offer) for offer in offers]


@router.get(
    "/{address}",
    response_model=OfferResponse,
    summary="Get an open offer",
)
async def get_offer(
    address: str,
    svc: EscrowService = Depends(get_escrow_service),
) -> OfferResponse:
    offer = await svc.get_offer(parse_address(address))
    return _offer_response(offer)


@router.get(
    "/{address}/status",
    response_model=OfferStatusResponse,
    summary="Get offer lifecycle status",
)
async def get_offer_status(
    address: str,
    svc: EscrowService = Depends(get_escrow_service),
) -> OfferStatusResponse:
    """Works for consumed offers too; their status comes from the audit trail."""
    status = await svc.get_status(parse_address(address))
    return OfferStatusResponse(**status)


@router.get(
    "/{address}/events",
    response_model=list[LedgerEventResponse],
    summary="Get offer audit trail",
)
async def get_offer_events(
    address: str,
    svc: EscrowService = Depends(get_escrow_service),
) -> list[LedgerEventResponse]:
    events = await svc.get_events(parse_address(address))
    return [LedgerEventResponse.model_validate(evt) for evt in events]
