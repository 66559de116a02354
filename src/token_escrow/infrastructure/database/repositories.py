"""Repository classes for ledger state access.

Repositories encapsulate all SQL queries and provide a clean interface to
the runtime and the programs. They accept an AsyncSession and never manage
their own transactions (that's the runtime's responsibility: one database
transaction per ledger transaction).

Balance checks are NOT done here; the programs validate before mutating.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from token_escrow.infrastructure.database.orm_models import (
    LedgerEvent,
    MintAccount,
    OfferAccount,
    ProcessedTransaction,
    SystemAccount,
    TokenAccount,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from token_escrow.domain.enums import EventType, OfferStatus


class SystemAccountRepository:
    """Data access for native lamport balances."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, address: str) -> SystemAccount | None:
        return await self._session.get(SystemAccount, address)

    async def get_or_create(self, address: str) -> SystemAccount:
        """Fetch a wallet, creating an empty one on first credit."""
        account = await self.get(address)
        if account is None:
            account = SystemAccount(address=address, lamports=0)
            self._session.add(account)
            await self._session.flush()
        return account

    async def set_lamports(self, account: SystemAccount, lamports: int) -> SystemAccount:
        account.lamports = lamports
        await self._session.flush()
        return account


class MintRepository:
    """Data access for mints."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, address: str) -> MintAccount | None:
        return await self._session.get(MintAccount, address)

    async def create(self, mint: MintAccount) -> MintAccount:
        self._session.add(mint)
        await self._session.flush()
        return mint

    async def set_supply(self, mint: MintAccount, supply: int) -> MintAccount:
        mint.supply = supply
        await self._session.flush()
        return mint


class TokenAccountRepository:
    """Data access for token accounts (wallet ATAs and vaults alike)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, address: str) -> TokenAccount | None:
        return await self._session.get(TokenAccount, address)

    async def reload(self, account: TokenAccount) -> TokenAccount:
        """Re-read the row so the caller sees the balance as of now."""
        await self._session.refresh(account)
        return account

    async def create(self, account: TokenAccount) -> TokenAccount:
        self._session.add(account)
        await self._session.flush()
        return account

    async def set_amount(self, account: TokenAccount, amount: int) -> TokenAccount:
        account.amount = amount
        await self._session.flush()
        return account

    async def delete(self, account: TokenAccount) -> None:
        await self._session.delete(account)
        await self._session.flush()


class OfferRepository:
    """Data access for open offers."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, address: str) -> OfferAccount | None:
        return await self._session.get(OfferAccount, address)

    async def get_by_maker(self, maker: str) -> list[OfferAccount]:
        """Fetch all open offers of a maker, lowest id first."""
        result = await self._session.execute(
            select(OfferAccount)
            .where(OfferAccount.maker == maker)
            .order_by(OfferAccount.offer_id.asc())
        )
        return list(result.scalars().all())

    async def create(self, offer: OfferAccount) -> OfferAccount:
        self._session.add(offer)
        await self._session.flush()
        return offer

    async def delete(self, offer: OfferAccount) -> None:
        await self._session.delete(offer)
        await self._session.flush()


class EventRepository:
    """Data access for the append-only audit event log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        offer_address: str,
        event_type: EventType,
        old_status: OfferStatus,
        new_status: OfferStatus,
        actor: str,
        transaction_signature: str,
        metadata: dict | None = None,
    ) -> LedgerEvent:
        """Append a new audit event. This is the ONLY write operation allowed."""
        evt = LedgerEvent(
            offer_address=offer_address,
            event_type=event_type.value,
            old_status=old_status.value,
            new_status=new_status.value,
            actor=actor,
            transaction_signature=transaction_signature,
            metadata_json=metadata,
        )
        self._session.add(evt)
        await self._session.flush()
        return evt

    async def get_by_offer(self, offer_address: str) -> list[LedgerEvent]:
        """Fetch all events for an offer address in chronological order."""
        result = await self._session.execute(
            select(LedgerEvent)
            .where(LedgerEvent.offer_address == offer_address)
            .order_by(LedgerEvent.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_latest(self, offer_address: str) -> LedgerEvent | None:
        result = await self._session.execute(
            select(LedgerEvent)
            .where(LedgerEvent.offer_address == offer_address)
            .order_by(LedgerEvent.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()


class ProcessedTransactionRepository:
    """Data access for committed transaction signatures."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def exists(self, signature: str) -> bool:
        return await self._session.get(ProcessedTransaction, signature) is not None

    async def record(
        self,
        signature: str,
        fee_payer: str,
        instruction_count: int,
    ) -> ProcessedTransaction:
        processed = ProcessedTransaction(
            signature=signature,
            fee_payer=fee_payer,
            instruction_count=instruction_count,
        )
        self._session.add(processed)
        await self._session.flush()
        return processed


class LedgerStore:
    """All repositories bound to one session, handed to programs as a unit."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.system_accounts = SystemAccountRepository(session)
        self.mints = MintRepository(session)
        self.token_accounts = TokenAccountRepository(session)
        self.offers = OfferRepository(session)
        self.events = EventRepository(session)
        self.processed = ProcessedTransactionRepository(session)
