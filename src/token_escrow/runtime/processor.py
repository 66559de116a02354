"""Transaction processor — verifies, locks, executes and commits transactions.

Processing pipeline for one transaction:

    1. verify    the transaction structure and every required signature
    2. lock      every writable account (sorted, bounded wait)
    3. begin     one database transaction
    4. replay    reject a signature that was already committed
    5. execute   each instruction in order, in its program's invoke context
    6. commit    all effects plus the processed signature, or nothing

Steps 3 to 6 share a single `session.begin()` block, so any exception from
any instruction rolls back every write of the transaction.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from solders.pubkey import Pubkey

from token_escrow.domain.exceptions import (
    AccountInUseError,
    AlreadyProcessedError,
    EscrowError,
    InvalidInstructionError,
)
from token_escrow.infrastructure.database.repositories import LedgerStore
from token_escrow.logging_config import get_logger
from token_escrow.programs import system as system_program
from token_escrow.programs.associated_token import AssociatedTokenProgram
from token_escrow.programs.escrow import EscrowProgram
from token_escrow.programs.system import SystemProgram
from token_escrow.programs.token import TokenProgram
from token_escrow.runtime.context import InvokeContext
from token_escrow.runtime.locks import AccountLocks
from token_escrow.runtime.transaction import (
    TransactionReceipt,
    decompile_instructions,
    fee_payer,
    transaction_id,
    verify_transaction,
    writable_keys,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from solders.instruction import Instruction
    from solders.transaction import Transaction
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from token_escrow.config import Settings

logger = get_logger(__name__)


class Program(Protocol):
    """Anything the runtime can dispatch instructions to."""

    program_id: Pubkey

    async def process(self, ctx: InvokeContext, ix: Instruction) -> None: ...


class Runtime:
    """Executes signed transactions against the ledger database."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        programs: Iterable[Program],
        lock_timeout_seconds: float = 10.0,
        airdrop_enabled: bool = True,
    ) -> None:
        self._session_factory = session_factory
        self._programs: dict[Pubkey, Program] = {p.program_id: p for p in programs}
        self._airdrop_enabled = airdrop_enabled
        self.locks = AccountLocks(lock_timeout_seconds)

    def program(self, program_id: Pubkey) -> Program:
        program = self._programs.get(program_id)
        if program is None:
            raise InvalidInstructionError(f"Unknown program: {program_id}")
        return program

    @property
    def escrow(self) -> EscrowProgram:
        for program in self._programs.values():
            if isinstance(program, EscrowProgram):
                return program
        raise InvalidInstructionError("No escrow program is deployed")

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def process_transaction(self, tx: Transaction) -> TransactionReceipt:
        """Run a transaction to completion or not at all.

        Raises:
            EscrowError: Any ledger error. `instruction_index` is set when the
                failure happened inside an instruction.
        """
        signers = verify_transaction(tx)
        signature = transaction_id(tx)
        message = tx.message
        payer = fee_payer(message)
        instructions = decompile_instructions(message)
        log = logger.bind(signature=signature, fee_payer=str(payer))
        logs: list[str] = []

        try:
            async with self.locks.hold(writable_keys(message)):
                async with self._session_factory() as session, session.begin():
                    store = LedgerStore(session)
                    if await store.processed.exists(signature):
                        raise AlreadyProcessedError(signature)

                    for index, ix in enumerate(instructions):
                        await self._invoke(store, ix, index, signers, signature, logs)

                    await store.processed.record(
                        signature=signature,
                        fee_payer=str(payer),
                        instruction_count=len(instructions),
                    )
        except StaleDataError as err:
            log.warning("runtime.write_conflict", error=str(err))
            raise AccountInUseError("concurrent modification of a ledger row") from err
        except IntegrityError as err:
            log.warning("runtime.write_conflict", error=str(err.orig))
            raise AccountInUseError("concurrent creation of a ledger row") from err
        except EscrowError as err:
            log.info(
                "runtime.transaction_failed",
                error=err.code,
                message=err.message,
                instruction_index=err.instruction_index,
            )
            raise

        log.info("runtime.transaction_committed", instructions=len(instructions))
        return TransactionReceipt(signature=signature, logs=tuple(logs))

    async def _invoke(
        self,
        store: LedgerStore,
        ix: Instruction,
        index: int,
        signers: frozenset[Pubkey],
        signature: str,
        logs: list[str],
    ) -> None:
        logs.append(f"Program {ix.program_id} invoke [1]")
        try:
            program = self.program(ix.program_id)
            ctx = InvokeContext(
                store=store,
                program_id=ix.program_id,
                signers=frozenset(m.pubkey for m in ix.accounts if m.is_signer) & signers,
                writable=frozenset(m.pubkey for m in ix.accounts if m.is_writable),
                transaction_signature=signature,
                logs=logs,
            )
            await program.process(ctx, ix)
        except EscrowError as err:
            err.instruction_index = index
            logs.append(f"Program {ix.program_id} failed: {err.message}")
            raise
        logs.append(f"Program {ix.program_id} success")

    # ------------------------------------------------------------------
    # Administration and reads
    # ------------------------------------------------------------------

    async def airdrop(self, address: Pubkey, lamports: int) -> int:
        """Credit native lamports to a wallet. Returns the new balance."""
        if not self._airdrop_enabled:
            raise InvalidInstructionError("Airdrops are disabled on this ledger")
        if not 0 < lamports <= system_program.U64_MAX:
            raise InvalidInstructionError("Airdrop amount must be a positive u64")
        async with self.locks.hold([address]):
            async with self._session_factory() as session, session.begin():
                return await system_program.airdrop(LedgerStore(session), address, lamports)

    @asynccontextmanager
    async def snapshot(self) -> AsyncIterator[LedgerStore]:
        """Yield a store over a fresh read session."""
        async with self._session_factory() as session:
            yield LedgerStore(session)


def build_runtime(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> Runtime:
    """Deploy the system, token, associated token and escrow programs."""
    system = SystemProgram()
    token = TokenProgram(system)
    associated_token = AssociatedTokenProgram(token)
    escrow = EscrowProgram(
        Pubkey.from_string(settings.escrow_program_id),
        system,
        token,
        associated_token,
    )
    logger.info("runtime.programs_deployed", escrow_program_id=str(escrow.program_id))
    return Runtime(
        session_factory,
        [system, token, associated_token, escrow],
        lock_timeout_seconds=settings.account_lock_timeout_seconds,
        airdrop_enabled=settings.airdrop_enabled,
    )
