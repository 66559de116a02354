"""Escrow instruction handlers: MakeOffer, TakeOffer, CancelOffer.

Each handler validates first and moves funds last. Any raise aborts the
enclosing transaction, so a handler never has to undo its own writes.

Lifecycle (guarded by OfferStateMachine):
    NON_EXISTENT --make--> OPEN --take--> FULFILLED
                                 --cancel--> CANCELLED
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from statemachine.exceptions import TransitionNotAllowed

from token_escrow.domain.enums import EventType, OfferStatus
from token_escrow.domain.exceptions import (
    AddressAlreadyInUseError,
    ConstraintHasOneError,
    InvalidStateTransitionError,
    TakerShouldNotBeMakerError,
)
from token_escrow.domain.state_machine import OfferStateMachine
from token_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from solders.pubkey import Pubkey

    from token_escrow.programs.associated_token import AssociatedTokenProgram
    from token_escrow.programs.escrow.accounts import (
        CancelOfferAccounts,
        MakeOfferAccounts,
        TakeOfferAccounts,
    )
    from token_escrow.programs.escrow.custody import VaultCustodian
    from token_escrow.programs.escrow.registry import OfferRegistry
    from token_escrow.programs.escrow.state import Offer
    from token_escrow.programs.token import TokenProgram
    from token_escrow.runtime.context import InvokeContext

logger = get_logger(__name__)


class OfferHandlers:
    """The three offer transitions, built on the custodian and the registry."""

    def __init__(
        self,
        token: TokenProgram,
        associated_token: AssociatedTokenProgram,
        custodian: VaultCustodian,
        registry: OfferRegistry,
    ) -> None:
        self._token = token
        self._associated_token = associated_token
        self._custodian = custodian
        self._registry = registry

    # ------------------------------------------------------------------
    # MakeOffer
    # ------------------------------------------------------------------

    async def make_offer(
        self,
        ctx: InvokeContext,
        accounts: MakeOfferAccounts,
        offer_id: int,
        token_a_offered_amount: int,
        token_b_amount_wanted: int,
    ) -> Offer:
        """Lock `token_a_offered_amount` of mint A in a fresh vault and open the offer."""
        ctx.require_signer(accounts.maker)
        self._custodian.verify_authority(accounts.offer, accounts.maker, offer_id)

        if await self._registry.get(ctx.store, accounts.offer) is not None:
            raise AddressAlreadyInUseError(str(accounts.offer))
        _fire_transition(OfferStatus.NON_EXISTENT, "make")

        mint_a = await self._token.load_mint(ctx, accounts.token_mint_a)
        await self._token.load_mint(ctx, accounts.token_mint_b)
        await self._associated_token.load(
            ctx,
            accounts.maker_token_account_a,
            owner=accounts.maker,
            mint=accounts.token_mint_a,
        )

        await self._custodian.open_vault(
            ctx,
            payer=accounts.maker,
            authority=accounts.offer,
            mint=accounts.token_mint_a,
            vault=accounts.vault,
        )
        await self._token.transfer_checked(
            ctx,
            source=accounts.maker_token_account_a,
            mint=accounts.token_mint_a,
            destination=accounts.vault,
            authority=accounts.maker,
            amount=token_a_offered_amount,
            decimals=mint_a.decimals,
        )
        offer = await self._registry.create(
            ctx,
            payer=accounts.maker,
            maker=accounts.maker,
            offer_id=offer_id,
            token_mint_a=accounts.token_mint_a,
            token_mint_b=accounts.token_mint_b,
            token_b_amount_wanted=token_b_amount_wanted,
            address=accounts.offer,
        )

        await ctx.store.events.record(
            offer_address=str(offer.address),
            event_type=EventType.OFFER_MADE,
            old_status=OfferStatus.NON_EXISTENT,
            new_status=OfferStatus.OPEN,
            actor=str(accounts.maker),
            transaction_signature=ctx.transaction_signature,
            metadata={
                "offer_id": offer_id,
                "token_mint_a": str(offer.token_mint_a),
                "token_mint_b": str(offer.token_mint_b),
                "token_a_offered_amount": token_a_offered_amount,
                "token_b_amount_wanted": token_b_amount_wanted,
                "vault": str(accounts.vault),
            },
        )
        ctx.log(f"Instruction: MakeOffer id={offer_id}")
        logger.info(
            "escrow.offer_made",
            offer=str(offer.address),
            maker=str(offer.maker),
            offer_id=offer_id,
            amount_a=token_a_offered_amount,
            amount_b_wanted=token_b_amount_wanted,
        )
        return offer

    # ------------------------------------------------------------------
    # TakeOffer
    # ------------------------------------------------------------------

    async def take_offer(self, ctx: InvokeContext, accounts: TakeOfferAccounts) -> int:
        """Swap: the taker pays the wanted amount of B and receives the vault's A.

        Returns the amount of A released from the vault.
        """
        ctx.require_signer(accounts.taker)
        offer = await self._registry.load(ctx, accounts.offer)
        _check_has_one("maker", offer.maker, accounts.maker)
        _check_has_one("token_mint_a", offer.token_mint_a, accounts.token_mint_a)
        _check_has_one("token_mint_b", offer.token_mint_b, accounts.token_mint_b)
        self._custodian.verify_authority(offer.address, offer.maker, offer.id, offer.bump)

        if accounts.taker == offer.maker:
            logger.warning("escrow.self_trade_rejected", offer=str(offer.address))
            raise TakerShouldNotBeMakerError(str(offer.maker))
        _fire_transition(OfferStatus.OPEN, "take")

        mint_b = await self._token.load_mint(ctx, offer.token_mint_b)
        await self._custodian.load_vault(ctx, offer, accounts.vault)
        await self._associated_token.load(
            ctx,
            accounts.taker_token_account_b,
            owner=accounts.taker,
            mint=offer.token_mint_b,
        )
        await self._associated_token.create(
            ctx,
            payer=accounts.taker,
            owner=accounts.taker,
            mint=offer.token_mint_a,
            address=accounts.taker_token_account_a,
            idempotent=True,
        )
        await self._associated_token.create(
            ctx,
            payer=accounts.taker,
            owner=offer.maker,
            mint=offer.token_mint_b,
            address=accounts.maker_token_account_b,
            idempotent=True,
        )

        await self._token.transfer_checked(
            ctx,
            source=accounts.taker_token_account_b,
            mint=offer.token_mint_b,
            destination=accounts.maker_token_account_b,
            authority=accounts.taker,
            amount=offer.token_b_amount_wanted,
            decimals=mint_b.decimals,
        )
        released = await self._custodian.drain(
            ctx, offer, accounts.vault, accounts.taker_token_account_a
        )
        vault_refund = await self._custodian.close_and_reclaim(
            ctx, offer, accounts.vault, offer.maker
        )
        offer_refund = await self._registry.close(ctx, offer, offer.maker)

        await ctx.store.events.record(
            offer_address=str(offer.address),
            event_type=EventType.OFFER_TAKEN,
            old_status=OfferStatus.OPEN,
            new_status=OfferStatus.FULFILLED,
            actor=str(accounts.taker),
            transaction_signature=ctx.transaction_signature,
            metadata={
                "offer_id": offer.id,
                "taker": str(accounts.taker),
                "token_a_released": released,
                "token_b_paid": offer.token_b_amount_wanted,
                "lamports_reclaimed": vault_refund + offer_refund,
            },
        )
        ctx.log(f"Instruction: TakeOffer id={offer.id}")
        logger.info(
            "escrow.offer_taken",
            offer=str(offer.address),
            taker=str(accounts.taker),
            amount_a=released,
            amount_b=offer.token_b_amount_wanted,
        )
        return released

    # ------------------------------------------------------------------
    # CancelOffer
    # ------------------------------------------------------------------

    async def cancel_offer(self, ctx: InvokeContext, accounts: CancelOfferAccounts) -> int:
        """Return the vault's A to the maker and close the offer.

        Returns the amount of A refunded.
        """
        ctx.require_signer(accounts.maker)
        offer = await self._registry.load(ctx, accounts.offer)
        _check_has_one("maker", offer.maker, accounts.maker)
        _check_has_one("token_mint_a", offer.token_mint_a, accounts.token_mint_a)
        self._custodian.verify_authority(offer.address, offer.maker, offer.id, offer.bump)
        _fire_transition(OfferStatus.OPEN, "cancel")

        await self._custodian.load_vault(ctx, offer, accounts.vault)
        await self._associated_token.create(
            ctx,
            payer=offer.maker,
            owner=offer.maker,
            mint=offer.token_mint_a,
            address=accounts.maker_token_account_a,
            idempotent=True,
        )

        refunded = await self._custodian.drain(
            ctx, offer, accounts.vault, accounts.maker_token_account_a
        )
        vault_refund = await self._custodian.close_and_reclaim(
            ctx, offer, accounts.vault, offer.maker
        )
        offer_refund = await self._registry.close(ctx, offer, offer.maker)

        await ctx.store.events.record(
            offer_address=str(offer.address),
            event_type=EventType.OFFER_CANCELLED,
            old_status=OfferStatus.OPEN,
            new_status=OfferStatus.CANCELLED,
            actor=str(offer.maker),
            transaction_signature=ctx.transaction_signature,
            metadata={
                "offer_id": offer.id,
                "token_a_refunded": refunded,
                "lamports_reclaimed": vault_refund + offer_refund,
            },
        )
        ctx.log(f"Instruction: CancelOffer id={offer.id}")
        logger.info("escrow.offer_cancelled", offer=str(offer.address), amount_a=refunded)
        return refunded


# ------------------------------------------------------------------
# Private helpers
# ------------------------------------------------------------------


def _check_has_one(field: str, stored: Pubkey, supplied: Pubkey) -> None:
    if stored != supplied:
        raise ConstraintHasOneError(field, str(stored), str(supplied))


def _fire_transition(current_status: OfferStatus, event_name: str) -> None:
    """Validate and fire a state machine transition.

    Raises InvalidStateTransitionError if the transition is illegal.
    """
    sm = OfferStateMachine(current_status=current_status.value)
    try:
        getattr(sm, event_name)()
    except TransitionNotAllowed as err:
        raise InvalidStateTransitionError(current_status.value, event_name) from err
