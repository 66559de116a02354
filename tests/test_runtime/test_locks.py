"""Tests for per-account write locks."""

from __future__ import annotations

import asyncio

import pytest
from solders.pubkey import Pubkey

from token_escrow.domain.exceptions import AccountInUseError
from token_escrow.runtime.locks import AccountLocks


class TestAccountLocks:
    @pytest.mark.asyncio
    async def test_hold_marks_accounts_locked(self) -> None:
        locks = AccountLocks()
        a, b = Pubkey.new_unique(), Pubkey.new_unique()
        async with locks.hold([a, b]):
            assert locks.is_locked(a)
            assert locks.is_locked(b)
        assert not locks.is_locked(a)

    @pytest.mark.asyncio
    async def test_overlapping_holders_are_serialized(self) -> None:
        locks = AccountLocks()
        shared = Pubkey.new_unique()
        order: list[str] = []

        async def worker(name: str, other: Pubkey) -> None:
            async with locks.hold([shared, other]):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a", Pubkey.new_unique()), worker("b", Pubkey.new_unique()))
        assert order in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )

    @pytest.mark.asyncio
    async def test_disjoint_holders_run_concurrently(self) -> None:
        locks = AccountLocks()
        a, b = Pubkey.new_unique(), Pubkey.new_unique()
        async with locks.hold([a]):
            async with locks.hold([b]):
                assert locks.is_locked(a) and locks.is_locked(b)

    @pytest.mark.asyncio
    async def test_timeout_raises_account_in_use(self) -> None:
        locks = AccountLocks(timeout_seconds=0.05)
        busy = Pubkey.new_unique()
        async with locks.hold([busy]):
            with pytest.raises(AccountInUseError):
                async with locks.hold([busy]):
                    pass
        # The failed attempt must not leave anything held
        assert not locks.is_locked(busy)

    @pytest.mark.asyncio
    async def test_timeout_releases_locks_taken_earlier(self) -> None:
        locks = AccountLocks(timeout_seconds=0.05)
        first, second = sorted([Pubkey.new_unique(), Pubkey.new_unique()], key=str)
        async with locks.hold([second]):
            with pytest.raises(AccountInUseError) as exc_info:
                async with locks.hold([first, second]):
                    pass
            assert str(second) in exc_info.value.message
            assert not locks.is_locked(first)

    @pytest.mark.asyncio
    async def test_waiter_acquires_after_release(self) -> None:
        locks = AccountLocks(timeout_seconds=1.0)
        account = Pubkey.new_unique()
        entered = asyncio.Event()

        async def holder() -> None:
            async with locks.hold([account]):
                entered.set()
                await asyncio.sleep(0.02)

        task = asyncio.create_task(holder())
        await entered.wait()
        async with locks.hold([account]):
            assert locks.is_locked(account)
        await task

    @pytest.mark.asyncio
    async def test_duplicate_addresses_lock_once(self) -> None:
        locks = AccountLocks(timeout_seconds=0.05)
        a = Pubkey.new_unique()
        async with locks.hold([a, a]):
            assert locks.is_locked(a)
