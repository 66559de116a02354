"""Escrow program entrypoint: decodes instructions and dispatches to handlers.

Instruction data is an 8-byte discriminator followed by the arguments:

    make_offer    id u64, token_a_offered_amount u64, token_b_amount_wanted u64
    take_offer    (none)
    cancel_offer  (none)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from token_escrow.domain.exceptions import InvalidInstructionError
from token_escrow.programs.escrow.accounts import (
    CancelOfferAccounts,
    MakeOfferAccounts,
    TakeOfferAccounts,
)
from token_escrow.programs.escrow.custody import VaultCustodian
from token_escrow.programs.escrow.instructions import OfferHandlers
from token_escrow.programs.escrow.registry import OfferRegistry
from token_escrow.programs.escrow.state import (
    CANCEL_OFFER,
    DISCRIMINATOR_SIZE,
    MAKE_OFFER,
    TAKE_OFFER,
)
from token_escrow.runtime.transaction import InstructionData

if TYPE_CHECKING:
    from solders.instruction import Instruction
    from solders.pubkey import Pubkey

    from token_escrow.programs.associated_token import AssociatedTokenProgram
    from token_escrow.programs.system import SystemProgram
    from token_escrow.programs.token import TokenProgram
    from token_escrow.runtime.context import InvokeContext


class EscrowProgram:
    """Two-party token escrow deployed at `program_id`."""

    def __init__(
        self,
        program_id: Pubkey,
        system: SystemProgram,
        token: TokenProgram,
        associated_token: AssociatedTokenProgram,
    ) -> None:
        self.program_id = program_id
        self.custodian = VaultCustodian(program_id, token, associated_token)
        self.registry = OfferRegistry(system, self.custodian)
        self.handlers = OfferHandlers(token, associated_token, self.custodian, self.registry)

    async def process(self, ctx: InvokeContext, ix: Instruction) -> None:
        data = InstructionData(ix.data, "escrow")
        discriminator = data.read(DISCRIMINATOR_SIZE)
        if discriminator == MAKE_OFFER:
            offer_id = data.u64()
            token_a_offered_amount = data.u64()
            token_b_amount_wanted = data.u64()
            data.finish()
            await self.handlers.make_offer(
                ctx,
                MakeOfferAccounts.parse(ix),
                offer_id=offer_id,
                token_a_offered_amount=token_a_offered_amount,
                token_b_amount_wanted=token_b_amount_wanted,
            )
        elif discriminator == TAKE_OFFER:
            data.finish()
            await self.handlers.take_offer(ctx, TakeOfferAccounts.parse(ix))
        elif discriminator == CANCEL_OFFER:
            data.finish()
            await self.handlers.cancel_offer(ctx, CancelOfferAccounts.parse(ix))
        else:
            raise InvalidInstructionError(
                f"Escrow program has no instruction with discriminator {discriminator.hex()}"
            )
