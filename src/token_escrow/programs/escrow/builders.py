"""Client-side builders for escrow instructions.

Every derived account (offer, vault, associated token accounts) is computed
here from the inputs, so callers only supply wallets, mints and the id.
"""

from __future__ import annotations

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from token_escrow.programs.associated_token import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    get_associated_token_address,
)
from token_escrow.programs.escrow.state import (
    CANCEL_OFFER,
    MAKE_OFFER,
    TAKE_OFFER,
    offer_seeds,
)
from token_escrow.programs.system import SYSTEM_PROGRAM_ID
from token_escrow.programs.token import TOKEN_PROGRAM_ID
from token_escrow.runtime.transaction import pack_u64


def _readonly(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=False, is_writable=False)


def _writable(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=False, is_writable=True)


def _signer(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=True, is_writable=True)


def _program_accounts() -> list[AccountMeta]:
    return [
        _readonly(TOKEN_PROGRAM_ID),
        _readonly(ASSOCIATED_TOKEN_PROGRAM_ID),
        _readonly(SYSTEM_PROGRAM_ID),
    ]


def find_offer_address(program_id: Pubkey, maker: Pubkey, offer_id: int) -> tuple[Pubkey, int]:
    return Pubkey.find_program_address(offer_seeds(maker, offer_id), program_id)


def find_vault_address(program_id: Pubkey, maker: Pubkey, offer_id: int, mint_a: Pubkey) -> Pubkey:
    offer, _ = find_offer_address(program_id, maker, offer_id)
    return get_associated_token_address(offer, mint_a)


def make_offer_instruction(
    program_id: Pubkey,
    maker: Pubkey,
    token_mint_a: Pubkey,
    token_mint_b: Pubkey,
    offer_id: int,
    token_a_offered_amount: int,
    token_b_amount_wanted: int,
) -> Instruction:
    offer, _ = find_offer_address(program_id, maker, offer_id)
    data = (
        MAKE_OFFER
        + pack_u64(offer_id)
        + pack_u64(token_a_offered_amount)
        + pack_u64(token_b_amount_wanted)
    )
    return Instruction(
        program_id,
        data,
        [
            _signer(maker),
            _readonly(token_mint_a),
            _readonly(token_mint_b),
            _writable(get_associated_token_address(maker, token_mint_a)),
            _writable(offer),
            _writable(get_associated_token_address(offer, token_mint_a)),
            *_program_accounts(),
        ],
    )


def take_offer_instruction(
    program_id: Pubkey,
    taker: Pubkey,
    maker: Pubkey,
    token_mint_a: Pubkey,
    token_mint_b: Pubkey,
    offer_id: int,
) -> Instruction:
    offer, _ = find_offer_address(program_id, maker, offer_id)
    return Instruction(
        program_id,
        TAKE_OFFER,
        [
            _signer(taker),
            _writable(maker),
            _readonly(token_mint_a),
            _readonly(token_mint_b),
            _writable(get_associated_token_address(taker, token_mint_a)),
            _writable(get_associated_token_address(taker, token_mint_b)),
            _writable(get_associated_token_address(maker, token_mint_b)),
            _writable(offer),
            _writable(get_associated_token_address(offer, token_mint_a)),
            *_program_accounts(),
        ],
    )


def cancel_offer_instruction(
    program_id: Pubkey,
    maker: Pubkey,
    token_mint_a: Pubkey,
    offer_id: int,
) -> Instruction:
    offer, _ = find_offer_address(program_id, maker, offer_id)
    return Instruction(
        program_id,
        CANCEL_OFFER,
        [
            _signer(maker),
            _readonly(token_mint_a),
            _writable(get_associated_token_address(maker, token_mint_a)),
            _writable(offer),
            _writable(get_associated_token_address(offer, token_mint_a)),
            *_program_accounts(),
        ],
    )
