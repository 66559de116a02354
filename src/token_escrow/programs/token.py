"""Token program — mints, token accounts and checked transfers.

`transfer_checked` is the transfer primitive every escrow transition is
built on. It refuses to move anything unless:

    - source and destination both hold the declared mint,
    - the declared decimals equal the mint's decimals,
    - the authority owns the source account and signed (or is a derived
      address the calling program signed for),
    - the source balance covers the amount and the destination cannot
      overflow.

All checks run before the first balance is written.
"""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from token_escrow.domain.exceptions import (
    AccountNotInitializedError,
    AddressAlreadyInUseError,
    ArithmeticOverflowError,
    InsufficientFundsError,
    InvalidInstructionError,
    MintDecimalsMismatchError,
    MintMismatchError,
    NonNativeHasBalanceError,
    OwnerMismatchError,
)
from token_escrow.infrastructure.database.orm_models import MintAccount, TokenAccount
from token_escrow.logging_config import get_logger
from token_escrow.runtime.transaction import (
    InstructionData,
    expect_accounts,
    pack_u8,
    pack_u64,
)

if TYPE_CHECKING:
    from token_escrow.programs.system import SystemProgram
    from token_escrow.runtime.context import InvokeContext

logger = get_logger(__name__)

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")

MINT_SPACE = 82
TOKEN_ACCOUNT_SPACE = 165
U64_MAX = 2**64 - 1


class TokenInstruction(IntEnum):
    """One-byte instruction tags."""

    INITIALIZE_MINT = 0
    MINT_TO = 7
    CLOSE_ACCOUNT = 9
    TRANSFER_CHECKED = 12


class TokenProgram:
    """Asset ledger: mint management, token accounts, transfers, closing."""

    program_id = TOKEN_PROGRAM_ID

    def __init__(self, system: SystemProgram) -> None:
        self._system = system

    async def process(self, ctx: InvokeContext, ix: Instruction) -> None:
        data = InstructionData(ix.data, "token")
        tag = data.u8()
        if tag == TokenInstruction.INITIALIZE_MINT:
            decimals = data.u8()
            data.finish()
            mint, payer, authority = expect_accounts(ix, 3, "initialize_mint")
            await self.initialize_mint(ctx, mint.pubkey, payer.pubkey, authority.pubkey, decimals)
        elif tag == TokenInstruction.MINT_TO:
            amount = data.u64()
            data.finish()
            mint, destination, authority = expect_accounts(ix, 3, "mint_to")
            await self.mint_to(ctx, mint.pubkey, destination.pubkey, authority.pubkey, amount)
        elif tag == TokenInstruction.TRANSFER_CHECKED:
            amount = data.u64()
            decimals = data.u8()
            data.finish()
            source, mint, destination, authority = expect_accounts(ix, 4, "transfer_checked")
            await self.transfer_checked(
                ctx,
                source=source.pubkey,
                mint=mint.pubkey,
                destination=destination.pubkey,
                authority=authority.pubkey,
                amount=amount,
                decimals=decimals,
            )
        elif tag == TokenInstruction.CLOSE_ACCOUNT:
            data.finish()
            account, destination, authority = expect_accounts(ix, 3, "close_account")
            await self.close_account(ctx, account.pubkey, destination.pubkey, authority.pubkey)
        else:
            raise InvalidInstructionError(f"Token program has no instruction {tag}")

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_mint(self, ctx: InvokeContext, address: Pubkey) -> MintAccount:
        mint = await ctx.store.mints.get(str(address))
        if mint is None:
            raise AccountNotInitializedError(str(address), kind="mint")
        return mint

    async def load_account(self, ctx: InvokeContext, address: Pubkey) -> TokenAccount:
        account = await ctx.store.token_accounts.get(str(address))
        if account is None:
            raise AccountNotInitializedError(str(address), kind="token account")
        return account

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def initialize_mint(
        self,
        ctx: InvokeContext,
        address: Pubkey,
        payer: Pubkey,
        mint_authority: Pubkey,
        decimals: int,
    ) -> MintAccount:
        ctx.require_signer(address)
        ctx.require_writable(address)
        if await ctx.store.mints.get(str(address)) is not None:
            raise AddressAlreadyInUseError(str(address))
        deposit = await self._system.pay_deposit(ctx, payer, MINT_SPACE)
        mint = await ctx.store.mints.create(
            MintAccount(
                address=str(address),
                decimals=decimals,
                supply=0,
                mint_authority=str(mint_authority),
                lamports=deposit,
            )
        )
        ctx.log(f"Instruction: InitializeMint decimals={decimals}")
        return mint

    async def create_account(
        self,
        ctx: InvokeContext,
        address: Pubkey,
        mint: Pubkey,
        owner: Pubkey,
        payer: Pubkey,
    ) -> TokenAccount:
        """Allocate an empty token account for `mint` owned by `owner`."""
        ctx.require_writable(address)
        await self.load_mint(ctx, mint)
        if await ctx.store.token_accounts.get(str(address)) is not None:
            raise AddressAlreadyInUseError(str(address))
        deposit = await self._system.pay_deposit(ctx, payer, TOKEN_ACCOUNT_SPACE)
        account = await ctx.store.token_accounts.create(
            TokenAccount(
                address=str(address),
                mint=str(mint),
                owner=str(owner),
                amount=0,
                lamports=deposit,
            )
        )
        ctx.log("Instruction: InitializeAccount")
        return account

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    async def mint_to(
        self,
        ctx: InvokeContext,
        mint: Pubkey,
        destination: Pubkey,
        authority: Pubkey,
        amount: int,
    ) -> None:
        ctx.require_writable(mint)
        ctx.require_writable(destination)
        ctx.require_signer(authority)
        mint_row = await self.load_mint(ctx, mint)
        if mint_row.mint_authority != str(authority):
            raise OwnerMismatchError(str(mint), mint_row.mint_authority, str(authority))
        account = await self.load_account(ctx, destination)
        if account.mint != str(mint):
            raise MintMismatchError(str(destination), str(mint), account.mint)
        if mint_row.supply + amount > U64_MAX:
            raise ArithmeticOverflowError(str(mint))
        if account.amount + amount > U64_MAX:
            raise ArithmeticOverflowError(str(destination))

        await ctx.store.mints.set_supply(mint_row, mint_row.supply + amount)
        await ctx.store.token_accounts.set_amount(account, account.amount + amount)
        ctx.log(f"Instruction: MintTo amount={amount}")

    async def transfer_checked(
        self,
        ctx: InvokeContext,
        source: Pubkey,
        mint: Pubkey,
        destination: Pubkey,
        authority: Pubkey,
        amount: int,
        decimals: int,
    ) -> None:
        """Move exactly `amount` of `mint` from `source` to `destination`."""
        ctx.require_writable(source)
        ctx.require_writable(destination)

        mint_row = await self.load_mint(ctx, mint)
        if mint_row.decimals != decimals:
            raise MintDecimalsMismatchError(str(mint), mint_row.decimals, decimals)

        source_row = await self.load_account(ctx, source)
        destination_row = await self.load_account(ctx, destination)
        if source_row.mint != str(mint):
            raise MintMismatchError(str(source), str(mint), source_row.mint)
        if destination_row.mint != str(mint):
            raise MintMismatchError(str(destination), str(mint), destination_row.mint)

        if source_row.owner != str(authority):
            raise OwnerMismatchError(str(source), source_row.owner, str(authority))
        ctx.require_signer(authority)

        if source_row.amount < amount:
            raise InsufficientFundsError(str(source), amount, source_row.amount)
        if source_row is not destination_row and destination_row.amount + amount > U64_MAX:
            raise ArithmeticOverflowError(str(destination))

        await ctx.store.token_accounts.set_amount(source_row, source_row.amount - amount)
        await ctx.store.token_accounts.set_amount(destination_row, destination_row.amount + amount)

        ctx.log(f"Instruction: TransferChecked amount={amount}")
        logger.debug(
            "token.transfer_checked",
            source=str(source),
            destination=str(destination),
            mint=str(mint),
            amount=amount,
        )

    async def close_account(
        self,
        ctx: InvokeContext,
        account: Pubkey,
        destination: Pubkey,
        authority: Pubkey,
    ) -> int:
        """Delete an empty token account and refund its deposit. Returns the refund."""
        ctx.require_writable(account)
        row = await self.load_account(ctx, account)
        if row.owner != str(authority):
            raise OwnerMismatchError(str(account), row.owner, str(authority))
        ctx.require_signer(authority)
        if row.amount != 0:
            raise NonNativeHasBalanceError(str(account), row.amount)

        refund = row.lamports
        await ctx.store.token_accounts.delete(row)
        await self._system.refund_deposit(ctx, destination, refund)
        ctx.log("Instruction: CloseAccount")
        return refund


# ----------------------------------------------------------------------
# Instruction builders
# ----------------------------------------------------------------------


def initialize_mint_instruction(
    mint: Pubkey,
    payer: Pubkey,
    mint_authority: Pubkey,
    decimals: int,
) -> Instruction:
    return Instruction(
        TOKEN_PROGRAM_ID,
        pack_u8(TokenInstruction.INITIALIZE_MINT) + pack_u8(decimals),
        [
            AccountMeta(mint, is_signer=True, is_writable=True),
            AccountMeta(payer, is_signer=True, is_writable=True),
            AccountMeta(mint_authority, is_signer=False, is_writable=False),
        ],
    )


def mint_to_instruction(
    mint: Pubkey,
    destination: Pubkey,
    authority: Pubkey,
    amount: int,
) -> Instruction:
    return Instruction(
        TOKEN_PROGRAM_ID,
        pack_u8(TokenInstruction.MINT_TO) + pack_u64(amount),
        [
            AccountMeta(mint, is_signer=False, is_writable=True),
            AccountMeta(destination, is_signer=False, is_writable=True),
            AccountMeta(authority, is_signer=True, is_writable=False),
        ],
    )


def transfer_checked_instruction(
    source: Pubkey,
    mint: Pubkey,
    destination: Pubkey,
    authority: Pubkey,
    amount: int,
    decimals: int,
) -> Instruction:
    return Instruction(
        TOKEN_PROGRAM_ID,
        pack_u8(TokenInstruction.TRANSFER_CHECKED) + pack_u64(amount) + pack_u8(decimals),
        [
            AccountMeta(source, is_signer=False, is_writable=True),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(destination, is_signer=False, is_writable=True),
            AccountMeta(authority, is_signer=True, is_writable=False),
        ],
    )


def close_account_instruction(
    account: Pubkey,
    destination: Pubkey,
    authority: Pubkey,
) -> Instruction:
    return Instruction(
        TOKEN_PROGRAM_ID,
        pack_u8(TokenInstruction.CLOSE_ACCOUNT),
        [
            AccountMeta(account, is_signer=False, is_writable=True),
            AccountMeta(destination, is_signer=False, is_writable=True),
            AccountMeta(authority, is_signer=True, is_writable=False),
        ],
    )
