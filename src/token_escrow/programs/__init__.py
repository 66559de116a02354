"""On-ledger programs: system, token, associated token and escrow."""

from token_escrow.programs.associated_token import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    AssociatedTokenProgram,
    get_associated_token_address,
)
from token_escrow.programs.escrow import EscrowProgram
from token_escrow.programs.system import SYSTEM_PROGRAM_ID, SystemProgram, rent_exempt_minimum
from token_escrow.programs.token import TOKEN_PROGRAM_ID, TokenProgram

__all__ = [
    "ASSOCIATED_TOKEN_PROGRAM_ID",
    "SYSTEM_PROGRAM_ID",
    "TOKEN_PROGRAM_ID",
    "AssociatedTokenProgram",
    "EscrowProgram",
    "SystemProgram",
    "TokenProgram",
    "get_associated_token_address",
    "rent_exempt_minimum",
]
