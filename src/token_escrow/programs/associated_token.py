"""Associated token program — one canonical token account per (owner, mint).

The canonical address is derived, never chosen:
    find_program_address([owner, token_program_id, mint], associated_token_program_id)

so any verifier can recompute where a party's balance of a mint must live.
Offer vaults are the associated accounts of the offer's derived address.
"""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from token_escrow.domain.exceptions import (
    AddressAlreadyInUseError,
    IncorrectProgramIdError,
    InvalidInstructionError,
    InvalidSeedsError,
    MintMismatchError,
    OwnerMismatchError,
)
from token_escrow.programs.system import SYSTEM_PROGRAM_ID
from token_escrow.programs.token import TOKEN_PROGRAM_ID
from token_escrow.runtime.transaction import InstructionData, expect_accounts, pack_u8

if TYPE_CHECKING:
    from token_escrow.infrastructure.database.orm_models import TokenAccount
    from token_escrow.programs.token import TokenProgram
    from token_escrow.runtime.context import InvokeContext

ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWSBswmcZHg4ASZiK")


class AssociatedTokenInstruction(IntEnum):
    """Empty data also means CREATE."""

    CREATE = 0
    CREATE_IDEMPOTENT = 1


def get_associated_token_address(owner: Pubkey, mint: Pubkey) -> Pubkey:
    address, _ = Pubkey.find_program_address(
        [bytes(owner), bytes(TOKEN_PROGRAM_ID), bytes(mint)],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )
    return address


def check_program_id(expected: Pubkey, actual: Pubkey) -> None:
    if expected != actual:
        raise IncorrectProgramIdError(str(expected), str(actual))


class AssociatedTokenProgram:
    """Creates and validates canonical token accounts."""

    program_id = ASSOCIATED_TOKEN_PROGRAM_ID

    def __init__(self, token: TokenProgram) -> None:
        self._token = token

    async def process(self, ctx: InvokeContext, ix: Instruction) -> None:
        data = InstructionData(ix.data, "associated token")
        tag = data.u8() if ix.data else AssociatedTokenInstruction.CREATE
        data.finish()
        if tag not in tuple(AssociatedTokenInstruction):
            raise InvalidInstructionError(f"Associated token program has no instruction {tag}")
        payer, address, owner, mint, system_program, token_program = expect_accounts(
            ix, 6, "create"
        )
        check_program_id(SYSTEM_PROGRAM_ID, system_program.pubkey)
        check_program_id(TOKEN_PROGRAM_ID, token_program.pubkey)
        await self.create(
            ctx,
            payer=payer.pubkey,
            owner=owner.pubkey,
            mint=mint.pubkey,
            address=address.pubkey,
            idempotent=tag == AssociatedTokenInstruction.CREATE_IDEMPOTENT,
        )

    async def create(
        self,
        ctx: InvokeContext,
        payer: Pubkey,
        owner: Pubkey,
        mint: Pubkey,
        address: Pubkey | None = None,
        idempotent: bool = False,
    ) -> TokenAccount:
        """Create the associated account of (owner, mint), paid by `payer`.

        With `idempotent`, an existing account is validated and returned
        instead of failing with AddressAlreadyInUse.
        """
        expected = get_associated_token_address(owner, mint)
        if address is not None and address != expected:
            raise InvalidSeedsError(str(expected), str(address))

        existing = await ctx.store.token_accounts.get(str(expected))
        if existing is not None:
            if not idempotent:
                raise AddressAlreadyInUseError(str(expected))
            self._check_holder(existing, owner, mint)
            return existing

        return await self._token.create_account(ctx, expected, mint, owner, payer)

    async def load(
        self,
        ctx: InvokeContext,
        address: Pubkey,
        owner: Pubkey,
        mint: Pubkey,
    ) -> TokenAccount:
        """Load an existing associated account, checking its derivation and holder."""
        expected = get_associated_token_address(owner, mint)
        if address != expected:
            raise InvalidSeedsError(str(expected), str(address))
        account = await self._token.load_account(ctx, address)
        self._check_holder(account, owner, mint)
        return account

    @staticmethod
    def _check_holder(account: TokenAccount, owner: Pubkey, mint: Pubkey) -> None:
        if account.mint != str(mint):
            raise MintMismatchError(account.address, str(mint), account.mint)
        if account.owner != str(owner):
            raise OwnerMismatchError(account.address, account.owner, str(owner))


def create_associated_token_account_instruction(
    payer: Pubkey,
    owner: Pubkey,
    mint: Pubkey,
    idempotent: bool = False,
) -> Instruction:
    tag = (
        AssociatedTokenInstruction.CREATE_IDEMPOTENT
        if idempotent
        else AssociatedTokenInstruction.CREATE
    )
    return Instruction(
        ASSOCIATED_TOKEN_PROGRAM_ID,
        pack_u8(tag),
        [
            AccountMeta(payer, is_signer=True, is_writable=True),
            AccountMeta(
                get_associated_token_address(owner, mint), is_signer=False, is_writable=True
            ),
            AccountMeta(owner, is_signer=False, is_writable=False),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        ],
    )
