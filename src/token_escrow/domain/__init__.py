"""Domain layer — offer lifecycle rules and the error taxonomy."""

from token_escrow.domain.enums import (
    ErrorCategory,
    EventType,
    OfferStatus,
)
from token_escrow.domain.exceptions import (
    AccountNotInitializedError,
    EscrowError,
    TakerShouldNotBeMakerError,
)
from token_escrow.domain.state_machine import (
    OfferStateMachine,
    validate_transition,
)

__all__ = [
    "ErrorCategory",
    "EventType",
    "OfferStatus",
    "AccountNotInitializedError",
    "EscrowError",
    "TakerShouldNotBeMakerError",
    "OfferStateMachine",
    "validate_transition",
]
