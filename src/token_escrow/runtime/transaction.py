"""Signed transactions and instruction data.

The wire types are solders' legacy `Transaction`, `Message` and
`Instruction`. A client compiles its instructions into a message against a
recent blockhash, every required signer signs the message bytes, and the
bincode encoding of the signed transaction travels base64-encoded.

Compiling a message merges account roles: an account that is a signer (or
writable) in one instruction is a signer (or writable) for the whole
transaction. The runtime re-expands compiled instructions with those roles
before dispatching them.

Instruction data is little-endian: a program-specific tag followed by
fixed-width arguments. `InstructionData` reads it back and rejects truncated
or over-long payloads.

The first signature is the transaction id. The runtime refuses an id it has
already committed, and a fresh blockhash per transaction keeps otherwise
identical transactions distinct.
"""

from __future__ import annotations

import base64
import binascii
import secrets
import struct
from collections.abc import Sequence
from dataclasses import dataclass

from solders.errors import BincodeError
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import SanitizeError, Transaction

from token_escrow.domain.exceptions import (
    InvalidInstructionError,
    MissingRequiredSignatureError,
)

U64_MAX = 2**64 - 1

_U8 = struct.Struct("<B")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


# ---------------------------------------------------------------------------
# Instruction data
# ---------------------------------------------------------------------------


def _pack(layout: struct.Struct, value: int, bits: int) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInstructionError(f"{value!r} is not an integer")
    if not 0 <= value < 2**bits:
        raise InvalidInstructionError(f"{value} is outside the u{bits} range")
    return layout.pack(value)


def pack_u8(value: int) -> bytes:
    return _pack(_U8, value, 8)


def pack_u32(value: int) -> bytes:
    return _pack(_U32, value, 32)


def pack_u64(value: int) -> bytes:
    return _pack(_U64, value, 64)


class InstructionData:
    """Sequential little-endian reader over one instruction's data."""

    def __init__(self, data: bytes, program: str) -> None:
        self._data = bytes(data)
        self._offset = 0
        self._program = program

    def read(self, size: int) -> bytes:
        end = self._offset + size
        if end > len(self._data):
            raise InvalidInstructionError(
                f"{self._program}: instruction data is truncated "
                f"(need {end} bytes, got {len(self._data)})"
            )
        chunk = self._data[self._offset : end]
        self._offset = end
        return chunk

    def u8(self) -> int:
        return _U8.unpack(self.read(_U8.size))[0]

    def u32(self) -> int:
        return _U32.unpack(self.read(_U32.size))[0]

    def u64(self) -> int:
        return _U64.unpack(self.read(_U64.size))[0]

    def finish(self) -> None:
        """Reject bytes left over after the last argument."""
        extra = len(self._data) - self._offset
        if extra:
            raise InvalidInstructionError(f"{self._program}: {extra} unexpected trailing bytes")


def expect_accounts(ix: Instruction, count: int, name: str) -> list[AccountMeta]:
    accounts = ix.accounts
    if len(accounts) != count:
        raise InvalidInstructionError(f"{name}: expected {count} accounts, got {len(accounts)}")
    return accounts


# ---------------------------------------------------------------------------
# Building and wire encoding
# ---------------------------------------------------------------------------


def fresh_blockhash() -> Hash:
    return Hash(secrets.token_bytes(Hash.LENGTH))


def build_transaction(
    instructions: Sequence[Instruction],
    signers: Sequence[Keypair],
    fee_payer: Keypair | None = None,
    recent_blockhash: Hash | None = None,
) -> Transaction:
    """Compile and sign; the fee payer defaults to the first signer.

    Every keypair must be a required signer of the compiled message, and
    every required signer must be among the keypairs (solders raises
    `SignerError` otherwise).
    """
    payer = fee_payer or signers[0]
    unique = {kp.pubkey(): kp for kp in (payer, *signers)}
    return Transaction.new_signed_with_payer(
        list(instructions),
        payer.pubkey(),
        list(unique.values()),
        recent_blockhash or fresh_blockhash(),
    )


def encode_transaction(tx: Transaction) -> str:
    return base64.b64encode(bytes(tx)).decode("ascii")


def decode_transaction(encoded: str) -> Transaction:
    """Parse a base64 wire transaction; malformed input is an InvalidInstruction."""
    try:
        raw = base64.b64decode(encoded, validate=True)
    except binascii.Error as err:
        raise InvalidInstructionError("Transaction is not valid base64") from err
    try:
        return Transaction.from_bytes(raw)
    except (BincodeError, ValueError) as err:
        raise InvalidInstructionError(f"Transaction bytes do not decode: {err}") from err


# ---------------------------------------------------------------------------
# Verification and account roles
# ---------------------------------------------------------------------------


def transaction_id(tx: Transaction) -> str:
    """The fee payer's signature, base58."""
    if not tx.signatures:
        raise InvalidInstructionError("Transaction carries no signatures")
    return str(tx.signatures[0])


def fee_payer(message: Message) -> Pubkey:
    return message.account_keys[0]


def verify_transaction(tx: Transaction) -> frozenset[Pubkey]:
    """Check structure and every required signature; return the signer keys."""
    try:
        tx.sanitize()
    except SanitizeError as err:
        raise InvalidInstructionError(f"Malformed transaction: {err}") from err

    message = tx.message
    required = message.header.num_required_signatures
    if len(tx.signatures) != required:
        raise InvalidInstructionError(
            f"Expected {required} signatures, got {len(tx.signatures)}"
        )
    if not message.instructions:
        raise InvalidInstructionError("Transaction has no instructions")

    for key, valid in zip(message.account_keys, tx.verify_with_results()):
        if not valid:
            raise MissingRequiredSignatureError(str(key))
    return frozenset(message.account_keys[:required])


def is_writable(message: Message, index: int) -> bool:
    header = message.header
    signed = header.num_required_signatures
    if index < signed:
        writable = index < signed - header.num_readonly_signed_accounts
    else:
        writable = index < len(message.account_keys) - header.num_readonly_unsigned_accounts
    return writable and not message.is_key_called_as_program(index)


def writable_keys(message: Message) -> frozenset[Pubkey]:
    return frozenset(
        key for index, key in enumerate(message.account_keys) if is_writable(message, index)
    )


def decompile_instructions(message: Message) -> list[Instruction]:
    """Expand compiled instructions back to account metas with message-level roles."""
    keys = message.account_keys
    metas = [
        AccountMeta(key, message.is_signer(index), is_writable(message, index))
        for index, key in enumerate(keys)
    ]
    return [
        Instruction(
            keys[compiled.program_id_index],
            compiled.data,
            [metas[index] for index in compiled.accounts],
        )
        for compiled in message.instructions
    ]


@dataclass(frozen=True)
class TransactionReceipt:
    """Result of a committed transaction."""

    signature: str
    logs: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {"signature": self.signature, "logs": list(self.logs)}
