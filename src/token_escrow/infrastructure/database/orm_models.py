"""SQLAlchemy 2.0 ORM models for the ledger state.

Tables:
    1. system_accounts        — Native lamport balances of wallets.
    2. mints                  — Asset types (decimals, supply, mint authority).
    3. token_accounts         — Asset-holding accounts, including offer vaults.
    4. offers                 — Open escrow offers, one per (maker, id).
    5. ledger_events          — Append-only audit log of offer transitions.
    6. processed_transactions — Signatures of committed transactions.

Design decisions:
    - Addresses are base58 public keys stored as strings (44 chars max).
    - u64 quantities use Numeric(20, 0); BIGINT cannot hold 2**64 - 1.
    - Mutable ledger rows carry a version counter (version_id_col). A writer
      that loses a race updates or deletes zero rows and gets StaleDataError,
      which the runtime surfaces as AccountInUse.
    - An offer is open iff its row exists; there is no status column.
    - ledger_events is append-only and keeps plain address strings, so the
      trail survives the deletion of the offer it describes.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    SmallInteger,
    String,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

ADDRESS_LENGTH = 44
U64_MAX = 2**64 - 1


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class U64(TypeDecorator):
    """Unsigned 64-bit integer stored as an exact decimal.

    SQLite has no exact decimal and binds Numeric through float, so there the
    value is stored as zero-padded text, which also keeps ORDER BY numeric.
    """

    impl = Numeric(20, 0)
    cache_ok = True

    def load_dialect_impl(self, dialect):  # noqa: ANN001
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(20))
        return dialect.type_descriptor(Numeric(20, 0))

    def process_bind_param(self, value, dialect):  # noqa: ANN001
        if value is None:
            return None
        if dialect.name == "sqlite":
            return f"{int(value):020d}"
        return Decimal(int(value))

    def process_result_value(self, value, dialect):  # noqa: ANN001
        if value is None:
            return None
        return int(value)


# ---------------------------------------------------------------------------
# 1. system_accounts
# ---------------------------------------------------------------------------
class SystemAccount(Base):
    """A wallet holding native lamports (pays and receives storage deposits)."""

    __tablename__ = "system_accounts"

    address: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), primary_key=True)
    lamports: Mapped[int] = mapped_column(U64, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<SystemAccount {self.address} lamports={self.lamports}>"


# ---------------------------------------------------------------------------
# 2. mints
# ---------------------------------------------------------------------------
class MintAccount(Base):
    """An asset type. Decimals are fixed at initialization."""

    __tablename__ = "mints"

    address: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), primary_key=True)
    decimals: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    supply: Mapped[int] = mapped_column(U64, nullable=False, default=0)
    mint_authority: Mapped[str] = mapped_column(
        String(ADDRESS_LENGTH),
        nullable=False,
        comment="Only this key may mint new supply",
    )
    lamports: Mapped[int] = mapped_column(U64, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("decimals >= 0 AND decimals <= 255", name="ck_mint_decimals"),
    )

    def __repr__(self) -> str:
        return f"<MintAccount {self.address} decimals={self.decimals} supply={self.supply}>"


# ---------------------------------------------------------------------------
# 3. token_accounts
# ---------------------------------------------------------------------------
class TokenAccount(Base):
    """An account holding a balance of exactly one mint.

    `owner` is the only authority allowed to debit or close the account. For a
    vault the owner is the offer's program-derived address.
    """

    __tablename__ = "token_accounts"

    address: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), primary_key=True)
    mint: Mapped[str] = mapped_column(
        String(ADDRESS_LENGTH),
        ForeignKey("mints.address"),
        nullable=False,
    )
    owner: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)
    amount: Mapped[int] = mapped_column(U64, nullable=False, default=0)
    lamports: Mapped[int] = mapped_column(
        U64,
        nullable=False,
        default=0,
        comment="Storage deposit, returned to the close destination",
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_token_account_owner", "owner"),
        Index("idx_token_account_mint", "mint"),
    )

    def __repr__(self) -> str:
        return (
            f"<TokenAccount {self.address} mint={self.mint} "
            f"owner={self.owner} amount={self.amount}>"
        )


# ---------------------------------------------------------------------------
# 4. offers
# ---------------------------------------------------------------------------
class OfferAccount(Base):
    """An open escrow offer, stored at its program-derived address."""

    __tablename__ = "offers"

    address: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), primary_key=True)
    offer_id: Mapped[int] = mapped_column(U64, nullable=False)
    maker: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)
    token_mint_a: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)
    token_mint_b: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)
    token_b_amount_wanted: Mapped[int] = mapped_column(U64, nullable=False)
    bump: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
        comment="Derivation salt proving the address came from (offer, maker, id)",
    )
    lamports: Mapped[int] = mapped_column(U64, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("maker", "offer_id", name="uq_offer_maker_id"),
        CheckConstraint("bump >= 0 AND bump <= 255", name="ck_offer_bump"),
        Index("idx_offer_maker", "maker"),
    )

    def __repr__(self) -> str:
        return (
            f"<OfferAccount {self.address} maker={self.maker} id={self.offer_id} "
            f"wants={self.token_b_amount_wanted}>"
        )


# ---------------------------------------------------------------------------
# 5. ledger_events (Append-Only Audit Log)
# ---------------------------------------------------------------------------
class LedgerEvent(Base):
    """Immutable audit record of one offer transition.

    This table is APPEND-ONLY. No UPDATE or DELETE operations are permitted
    at the application level.
    """

    __tablename__ = "ledger_events"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    offer_address: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)
    event_type: Mapped[str] = mapped_column(String(40), nullable=False)
    old_status: Mapped[str] = mapped_column(String(20), nullable=False)
    new_status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor: Mapped[str] = mapped_column(
        String(ADDRESS_LENGTH),
        nullable=False,
        comment="Signer that triggered the transition",
    )
    transaction_signature: Mapped[str] = mapped_column(String(100), nullable=False)
    metadata_json: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
        default=None,
        comment="Amounts moved, mints, storage deposits reclaimed",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        Index("idx_event_offer", "offer_address"),
        Index("idx_event_type", "event_type"),
        Index("idx_event_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerEvent {self.event_type} offer={self.offer_address} "
            f"{self.old_status}->{self.new_status}>"
        )


# ---------------------------------------------------------------------------
# 6. processed_transactions
# ---------------------------------------------------------------------------
class ProcessedTransaction(Base):
    """Signature of a committed transaction; the primary key blocks replays."""

    __tablename__ = "processed_transactions"

    signature: Mapped[str] = mapped_column(String(100), primary_key=True)
    fee_payer: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)
    instruction_count: Mapped[int] = mapped_column(Integer, nullable=False)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        return f"<ProcessedTransaction {self.signature}>"
