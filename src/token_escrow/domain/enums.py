"""Domain enumerations for the token escrow.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class OfferStatus(enum.StrEnum):
    """Lifecycle states of an offer.

    Only OPEN is ever persisted (as the existence of the offer record).
    FULFILLED and CANCELLED are terminal and observable only through the
    audit trail, because the record is deleted on the way into them.
    """

    NON_EXISTENT = "NON_EXISTENT"
    OPEN = "OPEN"
    FULFILLED = "FULFILLED"
    CANCELLED = "CANCELLED"


class EventType(enum.StrEnum):
    """Types of audit events recorded in the ledger_events table.

    Every offer transition produces exactly one event.
    """

    OFFER_MADE = "OFFER_MADE"
    OFFER_TAKEN = "OFFER_TAKEN"
    OFFER_CANCELLED = "OFFER_CANCELLED"


class ErrorCategory(enum.StrEnum):
    """Classification of ledger errors, used for API translation and logs."""

    PROTOCOL_VIOLATION = "protocol_violation"
    PRECONDITION = "precondition"
    RESOURCE = "resource"
    DERIVATION = "derivation"
