"""Database infrastructure — engine, ORM models, and repositories."""

from token_escrow.infrastructure.database.engine import (
    close_db,
    init_db,
)
from token_escrow.infrastructure.database.orm_models import (
    Base,
    LedgerEvent,
    MintAccount,
    OfferAccount,
    ProcessedTransaction,
    SystemAccount,
    TokenAccount,
)
from token_escrow.infrastructure.database.repositories import (
    EventRepository,
    LedgerStore,
    MintRepository,
    OfferRepository,
    ProcessedTransactionRepository,
    SystemAccountRepository,
    TokenAccountRepository,
)

__all__ = [
    "Base",
    "LedgerEvent",
    "MintAccount",
    "OfferAccount",
    "ProcessedTransaction",
    "SystemAccount",
    "TokenAccount",
    "EventRepository",
    "LedgerStore",
    "MintRepository",
    "OfferRepository",
    "ProcessedTransactionRepository",
    "SystemAccountRepository",
    "TokenAccountRepository",
    "init_db",
    "close_db",
]
