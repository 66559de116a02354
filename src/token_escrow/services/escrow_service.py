"""Escrow Service — client-side use cases for the offer lifecycle.

This is the application layer that coordinates between:
    - Instruction builders (derived offer, vault and token accounts)
    - The runtime (signing and atomic execution)
    - Ledger reads (offers, balances, the audit trail)

Both REST routes and the simulation call into this service. Writes always
go through a signed transaction; the service never touches ledger rows
directly. Reads use a fresh session each, so they observe the latest
committed state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from token_escrow.domain.enums import OfferStatus
from token_escrow.domain.exceptions import AccountNotInitializedError
from token_escrow.domain.state_machine import OfferStateMachine
from token_escrow.logging_config import get_logger
from token_escrow.programs.escrow.builders import (
    cancel_offer_instruction,
    find_offer_address,
    make_offer_instruction,
    take_offer_instruction,
)
from token_escrow.runtime.transaction import build_transaction

if TYPE_CHECKING:
    from solders.keypair import Keypair
    from solders.pubkey import Pubkey
    from solders.transaction import Transaction

    from token_escrow.infrastructure.database.orm_models import LedgerEvent, TokenAccount
    from token_escrow.programs.escrow.state import Offer
    from token_escrow.runtime.processor import Runtime
    from token_escrow.runtime.transaction import TransactionReceipt

logger = get_logger(__name__)


class EscrowService:
    """Makes, takes and cancels offers, and answers questions about them."""

    def __init__(self, runtime: Runtime) -> None:
        self._runtime = runtime
        self._program_id = runtime.escrow.program_id
        self._registry = runtime.escrow.registry

    @property
    def program_id(self) -> Pubkey:
        return self._program_id

    def offer_address(self, maker: Pubkey, offer_id: int) -> Pubkey:
        address, _ = find_offer_address(self._program_id, maker, offer_id)
        return address

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def make_offer(
        self,
        maker: Keypair,
        token_mint_a: Pubkey,
        token_mint_b: Pubkey,
        offer_id: int,
        token_a_offered_amount: int,
        token_b_amount_wanted: int,
    ) -> TransactionReceipt:
        """Lock `token_a_offered_amount` of A and ask for `token_b_amount_wanted` of B."""
        ix = make_offer_instruction(
            self._program_id,
            maker=maker.pubkey(),
            token_mint_a=token_mint_a,
            token_mint_b=token_mint_b,
            offer_id=offer_id,
            token_a_offered_amount=token_a_offered_amount,
            token_b_amount_wanted=token_b_amount_wanted,
        )
        receipt = await self.submit(build_transaction([ix], [maker]))
        logger.info(
            "escrow.make_submitted",
            offer=str(self.offer_address(maker.pubkey(), offer_id)),
            signature=receipt.signature,
        )
        return receipt

    async def take_offer(self, taker: Keypair, offer_address: Pubkey) -> TransactionReceipt:
        """Accept an open offer in full."""
        offer = await self.get_offer(offer_address)
        ix = take_offer_instruction(
            self._program_id,
            taker=taker.pubkey(),
            maker=offer.maker,
            token_mint_a=offer.token_mint_a,
            token_mint_b=offer.token_mint_b,
            offer_id=offer.id,
        )
        receipt = await self.submit(build_transaction([ix], [taker]))
        logger.info("escrow.take_submitted", offer=str(offer_address), signature=receipt.signature)
        return receipt

    async def cancel_offer(self, maker: Keypair, offer_address: Pubkey) -> TransactionReceipt:
        """Withdraw an open offer and recover the escrowed A."""
        offer = await self.get_offer(offer_address)
        ix = cancel_offer_instruction(
            self._program_id,
            maker=maker.pubkey(),
            token_mint_a=offer.token_mint_a,
            offer_id=offer.id,
        )
        receipt = await self.submit(build_transaction([ix], [maker]))
        logger.info(
            "escrow.cancel_submitted", offer=str(offer_address), signature=receipt.signature
        )
        return receipt

    async def submit(self, tx: Transaction) -> TransactionReceipt:
        return await self._runtime.process_transaction(tx)

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_offer(self, offer_address: Pubkey) -> Offer:
        """Get an open offer or raise."""
        async with self._runtime.snapshot() as store:
            offer = await self._registry.get(store, offer_address)
        if offer is None:
            raise AccountNotInitializedError(str(offer_address), kind="offer")
        return offer

    async def list_offers(self, maker: Pubkey) -> list[Offer]:
        async with self._runtime.snapshot() as store:
            return await self._registry.list_by_maker(store, maker)

    async def get_status(self, offer_address: Pubkey) -> dict:
        """Get the lifecycle status of an offer address with allowed events.

        An open record means OPEN. Without one, the latest audit event tells
        whether the address was fulfilled or cancelled, or never used.
        """
        async with self._runtime.snapshot() as store:
            if await store.offers.get(str(offer_address)) is not None:
                status = OfferStatus.OPEN
            else:
                latest = await store.events.get_latest(str(offer_address))
                status = OfferStatus(latest.new_status) if latest else OfferStatus.NON_EXISTENT
        sm = OfferStateMachine(current_status=status.value)
        return {
            "offer_address": str(offer_address),
            "status": status.value,
            "allowed_events": sm.get_allowed_events(),
        }

    async def get_events(self, offer_address: Pubkey) -> list[LedgerEvent]:
        """Get audit trail."""
        async with self._runtime.snapshot() as store:
            return await store.events.get_by_offer(str(offer_address))

    async def token_balance(self, address: Pubkey) -> TokenAccount:
        """Get a token account or raise."""
        async with self._runtime.snapshot() as store:
            account = await store.token_accounts.get(str(address))
        if account is None:
            raise AccountNotInitializedError(str(address), kind="token account")
        return account

