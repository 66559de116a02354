"""Escrow program — offers, vault custody and the three instructions."""

from token_escrow.programs.escrow.builders import (
    cancel_offer_instruction,
    find_offer_address,
    find_vault_address,
    make_offer_instruction,
    take_offer_instruction,
)
from token_escrow.programs.escrow.custody import VaultCustodian
from token_escrow.programs.escrow.program import EscrowProgram
from token_escrow.programs.escrow.registry import OfferRegistry
from token_escrow.programs.escrow.state import OFFER_SEED, OFFER_SPACE, Offer

__all__ = [
    "OFFER_SEED",
    "OFFER_SPACE",
    "EscrowProgram",
    "Offer",
    "OfferRegistry",
    "VaultCustodian",
    "cancel_offer_instruction",
    "find_offer_address",
    "find_vault_address",
    "make_offer_instruction",
    "take_offer_instruction",
]
