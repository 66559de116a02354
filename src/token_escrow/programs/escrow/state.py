"""Persistent escrow state: the Offer record and its derivation seeds."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import TYPE_CHECKING

from solders.pubkey import Pubkey

from token_escrow.runtime.transaction import pack_u64

if TYPE_CHECKING:
    from token_escrow.infrastructure.database.orm_models import OfferAccount

OFFER_SEED = b"offer"

# Account layout: 8-byte discriminator, id u64, maker, mint_a, mint_b
# (32 bytes each), token_b_amount_wanted u64, bump u8.
DISCRIMINATOR_SIZE = 8
OFFER_SPACE = DISCRIMINATOR_SIZE + 8 + 32 + 32 + 32 + 8 + 1


def instruction_discriminator(name: str) -> bytes:
    """First 8 bytes of sha256("global:<name>"), prefixed to instruction data."""
    return hashlib.sha256(f"global:{name}".encode()).digest()[:DISCRIMINATOR_SIZE]


MAKE_OFFER = instruction_discriminator("make_offer")
TAKE_OFFER = instruction_discriminator("take_offer")
CANCEL_OFFER = instruction_discriminator("cancel_offer")


def offer_seeds(maker: Pubkey, offer_id: int) -> list[bytes]:
    """Seeds of an offer address, without the bump."""
    return [OFFER_SEED, bytes(maker), pack_u64(offer_id)]


@dataclass(frozen=True)
class Offer:
    """Immutable view of an open offer."""

    address: Pubkey
    id: int
    maker: Pubkey
    token_mint_a: Pubkey
    token_mint_b: Pubkey
    token_b_amount_wanted: int
    bump: int

    @classmethod
    def from_row(cls, row: OfferAccount) -> Offer:
        return cls(
            address=Pubkey.from_string(row.address),
            id=row.offer_id,
            maker=Pubkey.from_string(row.maker),
            token_mint_a=Pubkey.from_string(row.token_mint_a),
            token_mint_b=Pubkey.from_string(row.token_mint_b),
            token_b_amount_wanted=row.token_b_amount_wanted,
            bump=row.bump,
        )

    def signer_seeds(self) -> list[bytes]:
        """Seeds, bump included, with which the program signs for the vault."""
        return [*offer_seeds(self.maker, self.id), bytes([self.bump])]

    def to_dict(self) -> dict:
        return {
            "address": str(self.address),
            "id": self.id,
            "maker": str(self.maker),
            "token_mint_a": str(self.token_mint_a),
            "token_mint_b": str(self.token_mint_b),
            "token_b_amount_wanted": self.token_b_amount_wanted,
            "bump": self.bump,
        }
