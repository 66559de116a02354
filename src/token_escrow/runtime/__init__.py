"""Ledger runtime primitives — transactions, invoke contexts, account locks.

The transaction processor lives in `token_escrow.runtime.processor`; it is
not re-exported here because it depends on the programs, which in turn
build instructions from this package.
"""

from token_escrow.runtime.context import InvokeContext
from token_escrow.runtime.locks import AccountLocks
from token_escrow.runtime.transaction import (
    InstructionData,
    TransactionReceipt,
    build_transaction,
    decode_transaction,
    encode_transaction,
    transaction_id,
    verify_transaction,
)

__all__ = [
    "AccountLocks",
    "InstructionData",
    "InvokeContext",
    "TransactionReceipt",
    "build_transaction",
    "decode_transaction",
    "encode_transaction",
    "transaction_id",
    "verify_transaction",
]
