"""Account lists of the escrow instructions.

Each parser checks the account count, the signer and writable flags the
client declared, and that every program slot holds the expected program id.
Data-level checks (ownership, derivations, stored fields) happen in the
handlers, which have ledger access.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from token_escrow.domain.exceptions import (
    AccountNotWritableError,
    MissingRequiredSignatureError,
)
from token_escrow.programs.associated_token import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    check_program_id,
)
from token_escrow.programs.system import SYSTEM_PROGRAM_ID
from token_escrow.programs.token import TOKEN_PROGRAM_ID
from token_escrow.runtime.transaction import expect_accounts

if TYPE_CHECKING:
    from solders.instruction import AccountMeta, Instruction
    from solders.pubkey import Pubkey


def _signer(meta: AccountMeta) -> Pubkey:
    if not meta.is_signer:
        raise MissingRequiredSignatureError(str(meta.pubkey))
    return _writable(meta)


def _writable(meta: AccountMeta) -> Pubkey:
    if not meta.is_writable:
        raise AccountNotWritableError(str(meta.pubkey))
    return meta.pubkey


def _programs(token: AccountMeta, associated_token: AccountMeta, system: AccountMeta) -> None:
    check_program_id(TOKEN_PROGRAM_ID, token.pubkey)
    check_program_id(ASSOCIATED_TOKEN_PROGRAM_ID, associated_token.pubkey)
    check_program_id(SYSTEM_PROGRAM_ID, system.pubkey)


@dataclass(frozen=True)
class MakeOfferAccounts:
    maker: Pubkey
    token_mint_a: Pubkey
    token_mint_b: Pubkey
    maker_token_account_a: Pubkey
    offer: Pubkey
    vault: Pubkey

    @classmethod
    def parse(cls, ix: Instruction) -> MakeOfferAccounts:
        (
            maker,
            mint_a,
            mint_b,
            maker_account_a,
            offer,
            vault,
            token_program,
            associated_token_program,
            system_program,
        ) = expect_accounts(ix, 9, "make_offer")
        _programs(token_program, associated_token_program, system_program)
        return cls(
            maker=_signer(maker),
            token_mint_a=mint_a.pubkey,
            token_mint_b=mint_b.pubkey,
            maker_token_account_a=_writable(maker_account_a),
            offer=_writable(offer),
            vault=_writable(vault),
        )


@dataclass(frozen=True)
class TakeOfferAccounts:
    taker: Pubkey
    maker: Pubkey
    token_mint_a: Pubkey
    token_mint_b: Pubkey
    taker_token_account_a: Pubkey
    taker_token_account_b: Pubkey
    maker_token_account_b: Pubkey
    offer: Pubkey
    vault: Pubkey

    @classmethod
    def parse(cls, ix: Instruction) -> TakeOfferAccounts:
        (
            taker,
            maker,
            mint_a,
            mint_b,
            taker_account_a,
            taker_account_b,
            maker_account_b,
            offer,
            vault,
            token_program,
            associated_token_program,
            system_program,
        ) = expect_accounts(ix, 12, "take_offer")
        _programs(token_program, associated_token_program, system_program)
        return cls(
            taker=_signer(taker),
            maker=_writable(maker),
            token_mint_a=mint_a.pubkey,
            token_mint_b=mint_b.pubkey,
            taker_token_account_a=_writable(taker_account_a),
            taker_token_account_b=_writable(taker_account_b),
            maker_token_account_b=_writable(maker_account_b),
            offer=_writable(offer),
            vault=_writable(vault),
        )


@dataclass(frozen=True)
class CancelOfferAccounts:
    maker: Pubkey
    token_mint_a: Pubkey
    maker_token_account_a: Pubkey
    offer: Pubkey
    vault: Pubkey

    @classmethod
    def parse(cls, ix: Instruction) -> CancelOfferAccounts:
        (
            maker,
            mint_a,
            maker_account_a,
            offer,
            vault,
            token_program,
            associated_token_program,
            system_program,
        ) = expect_accounts(ix, 8, "cancel_offer")
        _programs(token_program, associated_token_program, system_program)
        return cls(
            maker=_signer(maker),
            token_mint_a=mint_a.pubkey,
            maker_token_account_a=_writable(maker_account_a),
            offer=_writable(offer),
            vault=_writable(vault),
        )
