"""Application services — use case orchestration."""

from token_escrow.services.escrow_service import EscrowService
from token_escrow.services.token_service import TokenService

__all__ = ["EscrowService", "TokenService"]
