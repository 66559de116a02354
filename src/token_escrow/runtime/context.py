"""Invoke context handed to a program while it executes one instruction.

The context is the only way a program reaches ledger state, and the only
place signer privileges live. Transaction signers come from verified
ed25519 signatures. A program-derived address gains signer status through
`with_signer_seeds`, which derives the address from the seeds and the id of
the program currently executing. Because the runtime sets `program_id`, a
program can only ever sign for addresses derived from its own id, and since
derived addresses are off-curve nobody holds a private key for them.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from solders.pubkey import Pubkey

from token_escrow.domain.exceptions import (
    AccountNotWritableError,
    MissingRequiredSignatureError,
)

if TYPE_CHECKING:
    from token_escrow.infrastructure.database.repositories import LedgerStore


@dataclass(frozen=True)
class InvokeContext:
    store: LedgerStore
    program_id: Pubkey
    signers: frozenset[Pubkey]
    writable: frozenset[Pubkey]
    transaction_signature: str
    logs: list[str] = field(default_factory=list)

    def is_signer(self, key: Pubkey) -> bool:
        return key in self.signers

    def require_signer(self, key: Pubkey) -> None:
        if key not in self.signers:
            raise MissingRequiredSignatureError(str(key))

    def require_writable(self, key: Pubkey) -> None:
        if key not in self.writable:
            raise AccountNotWritableError(str(key))

    def with_signer_seeds(self, seeds: Sequence[bytes]) -> InvokeContext:
        """Return a child context in which the derived address is a signer."""
        derived = Pubkey.create_program_address(list(seeds), self.program_id)
        return replace(self, signers=self.signers | {derived})

    def log(self, message: str) -> None:
        self.logs.append(f"Program log: {message}")
