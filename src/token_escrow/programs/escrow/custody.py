"""Vault custody — exclusive authority over escrowed funds without a key.

The vault is a token account owned by the offer's program-derived address.
That address is computed from ("offer", maker, id) plus a bump that pushes
it off the ed25519 curve, so no private key exists for it. The only way to
act as its signer is `InvokeContext.with_signer_seeds`, which is available
solely to this program while the runtime executes one of its instructions.

Drain and close are separate operations, always called in that order by
the instruction handlers, so a close never discards a non-zero balance.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from solders.pubkey import Pubkey

from token_escrow.domain.exceptions import ConstraintSeedsError
from token_escrow.logging_config import get_logger
from token_escrow.programs.associated_token import get_associated_token_address
from token_escrow.programs.escrow.state import offer_seeds

if TYPE_CHECKING:
    from token_escrow.infrastructure.database.orm_models import TokenAccount
    from token_escrow.programs.associated_token import AssociatedTokenProgram
    from token_escrow.programs.escrow.state import Offer
    from token_escrow.programs.token import TokenProgram
    from token_escrow.runtime.context import InvokeContext

logger = get_logger(__name__)


class VaultCustodian:
    """Derives offer authorities and exercises them over vaults."""

    def __init__(
        self,
        program_id: Pubkey,
        token: TokenProgram,
        associated_token: AssociatedTokenProgram,
    ) -> None:
        self._program_id = program_id
        self._token = token
        self._associated_token = associated_token

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def derive_authority(self, maker: Pubkey, offer_id: int) -> tuple[Pubkey, int]:
        """Return the offer's derived address and its canonical bump."""
        return Pubkey.find_program_address(offer_seeds(maker, offer_id), self._program_id)

    def verify_authority(
        self,
        address: Pubkey,
        maker: Pubkey,
        offer_id: int,
        bump: int | None = None,
    ) -> int:
        """Recompute the derivation and reject any mismatch. Returns the bump."""
        expected, canonical_bump = self.derive_authority(maker, offer_id)
        if address != expected or (bump is not None and bump != canonical_bump):
            logger.warning(
                "custody.derivation_mismatch",
                expected=str(expected),
                supplied=str(address),
                maker=str(maker),
                offer_id=offer_id,
            )
            raise ConstraintSeedsError(str(expected), str(address))
        return canonical_bump

    @staticmethod
    def vault_address(authority: Pubkey, mint: Pubkey) -> Pubkey:
        return get_associated_token_address(authority, mint)

    # ------------------------------------------------------------------
    # Vault lifecycle
    # ------------------------------------------------------------------

    async def open_vault(
        self,
        ctx: InvokeContext,
        payer: Pubkey,
        authority: Pubkey,
        mint: Pubkey,
        vault: Pubkey | None = None,
    ) -> TokenAccount:
        """Create the empty vault; fails if an account already sits at its address."""
        return await self._associated_token.create(
            ctx, payer=payer, owner=authority, mint=mint, address=vault
        )

    async def load_vault(
        self,
        ctx: InvokeContext,
        offer: Offer,
        vault: Pubkey,
    ) -> TokenAccount:
        return await self._associated_token.load(
            ctx, vault, owner=offer.address, mint=offer.token_mint_a
        )

    async def authorize_transfer(
        self,
        ctx: InvokeContext,
        offer: Offer,
        vault: Pubkey,
        destination: Pubkey,
        amount: int,
        mint: Pubkey,
    ) -> None:
        """Move exactly `amount` out of the vault, signed by the offer authority."""
        mint_row = await self._token.load_mint(ctx, mint)
        await self._token.transfer_checked(
            ctx.with_signer_seeds(offer.signer_seeds()),
            source=vault,
            mint=mint,
            destination=destination,
            authority=offer.address,
            amount=amount,
            decimals=mint_row.decimals,
        )

    async def drain(
        self,
        ctx: InvokeContext,
        offer: Offer,
        vault: Pubkey,
        destination: Pubkey,
    ) -> int:
        """Transfer the vault's live balance to `destination`. Returns the amount."""
        row = await self.load_vault(ctx, offer, vault)
        await ctx.store.token_accounts.reload(row)
        amount = row.amount
        await self.authorize_transfer(
            ctx, offer, vault, destination, amount, offer.token_mint_a
        )
        return amount

    async def close_and_reclaim(
        self,
        ctx: InvokeContext,
        offer: Offer,
        vault: Pubkey,
        rent_destination: Pubkey,
    ) -> int:
        """Delete the drained vault; its deposit goes to `rent_destination`."""
        return await self._token.close_account(
            ctx.with_signer_seeds(offer.signer_seeds()),
            account=vault,
            destination=rent_destination,
            authority=offer.address,
        )
