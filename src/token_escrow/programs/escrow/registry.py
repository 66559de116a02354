"""Offer registry — one record per open (maker, id) pair.

The record lives at the offer's derived address, so a second offer with the
same (maker, id) collides on creation. Consumption deletes the record, which
is what makes take and cancel single-shot: whichever runs second finds
nothing to load.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from token_escrow.domain.exceptions import AccountNotInitializedError, AddressAlreadyInUseError
from token_escrow.infrastructure.database.orm_models import OfferAccount
from token_escrow.programs.escrow.state import OFFER_SPACE, Offer

if TYPE_CHECKING:
    from solders.pubkey import Pubkey

    from token_escrow.infrastructure.database.repositories import LedgerStore
    from token_escrow.programs.escrow.custody import VaultCustodian
    from token_escrow.programs.system import SystemProgram
    from token_escrow.runtime.context import InvokeContext


class OfferRegistry:
    """Creates, loads and closes offer records."""

    def __init__(self, system: SystemProgram, custodian: VaultCustodian) -> None:
        self._system = system
        self._custodian = custodian

    async def create(
        self,
        ctx: InvokeContext,
        payer: Pubkey,
        maker: Pubkey,
        offer_id: int,
        token_mint_a: Pubkey,
        token_mint_b: Pubkey,
        token_b_amount_wanted: int,
        address: Pubkey | None = None,
    ) -> Offer:
        """Store a new offer at its derived address, paid for by `payer`."""
        expected, bump = self._custodian.derive_authority(maker, offer_id)
        if address is not None:
            self._custodian.verify_authority(address, maker, offer_id)
        ctx.require_writable(expected)

        if await ctx.store.offers.get(str(expected)) is not None:
            raise AddressAlreadyInUseError(str(expected))

        deposit = await self._system.pay_deposit(ctx, payer, OFFER_SPACE)
        row = await ctx.store.offers.create(
            OfferAccount(
                address=str(expected),
                offer_id=offer_id,
                maker=str(maker),
                token_mint_a=str(token_mint_a),
                token_mint_b=str(token_mint_b),
                token_b_amount_wanted=token_b_amount_wanted,
                bump=bump,
                lamports=deposit,
            )
        )
        return Offer.from_row(row)

    async def load(self, ctx: InvokeContext, address: Pubkey) -> Offer:
        offer = await self.get(ctx.store, address)
        if offer is None:
            raise AccountNotInitializedError(str(address), kind="offer")
        return offer

    async def close(self, ctx: InvokeContext, offer: Offer, rent_destination: Pubkey) -> int:
        """Delete the record and refund its deposit. Returns the refund."""
        ctx.require_writable(offer.address)
        row = await ctx.store.offers.get(str(offer.address))
        if row is None:
            raise AccountNotInitializedError(str(offer.address), kind="offer")
        refund = row.lamports
        await ctx.store.offers.delete(row)
        await self._system.refund_deposit(ctx, rent_destination, refund)
        return refund

    @staticmethod
    async def get(store: LedgerStore, address: Pubkey) -> Offer | None:
        row = await store.offers.get(str(address))
        return Offer.from_row(row) if row is not None else None

    @staticmethod
    async def list_by_maker(store: LedgerStore, maker: Pubkey) -> list[Offer]:
        rows = await store.offers.get_by_maker(str(maker))
        return [Offer.from_row(row) for row in rows]
