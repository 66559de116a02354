"""Tests for EscrowService read helpers and transaction plumbing."""

from __future__ import annotations

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from token_escrow.domain.exceptions import AccountNotInitializedError
from token_escrow.programs.escrow import find_offer_address

pytestmark = pytest.mark.integration


class TestAddresses:
    def test_offer_address_matches_builder(self, escrow) -> None:
        maker = Pubkey.new_unique()
        expected, _ = find_offer_address(escrow.program_id, maker, 42)
        assert escrow.offer_address(maker, 42) == expected


class TestReads:
    @pytest.mark.asyncio
    async def test_unknown_offer(self, escrow) -> None:
        with pytest.raises(AccountNotInitializedError, match="offer"):
            await escrow.get_offer(Pubkey.new_unique())

    @pytest.mark.asyncio
    async def test_status_of_unused_address(self, escrow) -> None:
        address = Pubkey.new_unique()
        status = await escrow.get_status(address)
        assert status == {
            "offer_address": str(address),
            "status": "NON_EXISTENT",
            "allowed_events": ["make"],
        }

    @pytest.mark.asyncio
    async def test_no_events_for_unused_address(self, escrow) -> None:
        assert await escrow.get_events(Pubkey.new_unique()) == []

    @pytest.mark.asyncio
    async def test_unknown_token_account(self, escrow) -> None:
        with pytest.raises(AccountNotInitializedError, match="token account"):
            await escrow.token_balance(Pubkey.new_unique())

    @pytest.mark.asyncio
    async def test_list_only_own_offers(
        self, escrow, tokens, market, maker: Keypair, offer: Pubkey
    ) -> None:
        other = Keypair()
        assert [o.address for o in await escrow.list_offers(maker.pubkey())] == [offer]
        assert await escrow.list_offers(other.pubkey()) == []


class TestTransitions:
    @pytest.mark.asyncio
    async def test_receipts_carry_program_logs(
        self, escrow, market, maker: Keypair, taker: Keypair
    ) -> None:
        made = await escrow.make_offer(
            maker,
            token_mint_a=market.mint_a,
            token_mint_b=market.mint_b,
            offer_id=5,
            token_a_offered_amount=10,
            token_b_amount_wanted=8,
        )
        assert "Program log: Instruction: MakeOffer id=5" in made.logs
        assert made.logs[-1] == f"Program {escrow.program_id} success"

        taken = await escrow.take_offer(taker, escrow.offer_address(maker.pubkey(), 5))
        assert "Program log: Instruction: TakeOffer id=5" in taken.logs
        assert taken.signature != made.signature

    @pytest.mark.asyncio
    async def test_event_signatures_match_receipts(
        self, escrow, market, maker: Keypair
    ) -> None:
        receipt = await escrow.make_offer(
            maker,
            token_mint_a=market.mint_a,
            token_mint_b=market.mint_b,
            offer_id=3,
            token_a_offered_amount=1,
            token_b_amount_wanted=1,
        )
        events = await escrow.get_events(escrow.offer_address(maker.pubkey(), 3))
        assert events[0].transaction_signature == receipt.signature
