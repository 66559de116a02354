"""System program — native lamport balances and storage deposits.

Every account that holds data carries a rent-exempt deposit paid by whoever
creates it. Closing an account hands the deposit back to a designated
destination. The deposit formula matches the host ledger's defaults:
`(128 + space) * 3480 * 2` lamports.
"""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from token_escrow.domain.exceptions import (
    ArithmeticOverflowError,
    InsufficientLamportsError,
    InvalidInstructionError,
)
from token_escrow.logging_config import get_logger
from token_escrow.runtime.transaction import (
    InstructionData,
    expect_accounts,
    pack_u32,
    pack_u64,
)

if TYPE_CHECKING:
    from token_escrow.infrastructure.database.repositories import LedgerStore
    from token_escrow.runtime.context import InvokeContext

logger = get_logger(__name__)

SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")

ACCOUNT_STORAGE_OVERHEAD = 128
LAMPORTS_PER_BYTE_YEAR = 3480
EXEMPTION_THRESHOLD_YEARS = 2
U64_MAX = 2**64 - 1


class SystemInstruction(IntEnum):
    """u32 instruction indexes, as the host ledger numbers them."""

    TRANSFER = 2


def rent_exempt_minimum(space: int) -> int:
    """Lamports an account of `space` data bytes must hold to stay alive."""
    return (ACCOUNT_STORAGE_OVERHEAD + space) * LAMPORTS_PER_BYTE_YEAR * EXEMPTION_THRESHOLD_YEARS


async def credit_lamports(store: LedgerStore, destination: Pubkey, lamports: int) -> int:
    """Add lamports to a wallet, creating it on first credit. Returns the new balance."""
    account = await store.system_accounts.get_or_create(str(destination))
    balance = account.lamports + lamports
    if balance > U64_MAX:
        raise ArithmeticOverflowError(str(destination))
    await store.system_accounts.set_lamports(account, balance)
    return balance


class SystemProgram:
    """Lamport transfers and storage deposit bookkeeping."""

    program_id = SYSTEM_PROGRAM_ID

    async def process(self, ctx: InvokeContext, ix: Instruction) -> None:
        data = InstructionData(ix.data, "system")
        tag = data.u32()
        if tag != SystemInstruction.TRANSFER:
            raise InvalidInstructionError(f"System program has no instruction {tag}")
        lamports = data.u64()
        data.finish()
        source, destination = expect_accounts(ix, 2, "transfer")
        await self.transfer(ctx, source.pubkey, destination.pubkey, lamports)

    async def debit(self, ctx: InvokeContext, payer: Pubkey, lamports: int) -> None:
        ctx.require_signer(payer)
        ctx.require_writable(payer)
        account = await ctx.store.system_accounts.get(str(payer))
        available = account.lamports if account is not None else 0
        if account is None or available < lamports:
            raise InsufficientLamportsError(str(payer), lamports, available)
        await ctx.store.system_accounts.set_lamports(account, available - lamports)

    async def transfer(
        self,
        ctx: InvokeContext,
        source: Pubkey,
        destination: Pubkey,
        lamports: int,
    ) -> None:
        ctx.require_writable(destination)
        await self.debit(ctx, source, lamports)
        await credit_lamports(ctx.store, destination, lamports)
        ctx.log(f"Transfer {lamports} lamports")

    async def pay_deposit(self, ctx: InvokeContext, payer: Pubkey, space: int) -> int:
        """Charge the payer the storage deposit for a new account of `space` bytes."""
        deposit = rent_exempt_minimum(space)
        await self.debit(ctx, payer, deposit)
        return deposit

    async def refund_deposit(self, ctx: InvokeContext, destination: Pubkey, lamports: int) -> None:
        """Return a closed account's deposit to `destination`."""
        ctx.require_writable(destination)
        await credit_lamports(ctx.store, destination, lamports)


async def airdrop(store: LedgerStore, address: Pubkey, lamports: int) -> int:
    """Mint native lamports into a wallet (ledger administration only)."""
    balance = await credit_lamports(store, address, lamports)
    logger.info("system.airdrop", address=str(address), lamports=lamports, balance=balance)
    return balance


def transfer_instruction(source: Pubkey, destination: Pubkey, lamports: int) -> Instruction:
    return Instruction(
        SYSTEM_PROGRAM_ID,
        pack_u32(SystemInstruction.TRANSFER) + pack_u64(lamports),
        [
            AccountMeta(source, is_signer=True, is_writable=True),
            AccountMeta(destination, is_signer=False, is_writable=True),
        ],
    )
