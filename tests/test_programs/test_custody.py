"""Tests for vault custody: derivation, seeds checks and exclusive authority.

Nobody holds a key for the offer address, so the vault can only be moved by
the escrow program signing with the offer's seeds.
"""

from __future__ import annotations

import pytest
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from token_escrow.domain.exceptions import (
    ConstraintSeedsError,
    MissingRequiredSignatureError,
    NonNativeHasBalanceError,
    OwnerMismatchError,
)
from token_escrow.infrastructure.database.repositories import LedgerStore
from token_escrow.programs.associated_token import get_associated_token_address
from token_escrow.programs.escrow import find_offer_address, find_vault_address
from token_escrow.programs.token import TOKEN_PROGRAM_ID, transfer_checked_instruction
from token_escrow.runtime.context import InvokeContext
from token_escrow.runtime.transaction import build_transaction


class TestDerivation:
    def test_matches_client_derivation(self, runtime) -> None:
        maker = Pubkey.new_unique()
        custodian = runtime.escrow.custodian
        assert custodian.derive_authority(maker, 7) == find_offer_address(
            runtime.escrow.program_id, maker, 7
        )

    def test_authority_is_off_curve(self, runtime) -> None:
        address, _ = runtime.escrow.custodian.derive_authority(Pubkey.new_unique(), 1)
        assert not address.is_on_curve()

    def test_distinct_ids_give_distinct_authorities(self, runtime) -> None:
        custodian = runtime.escrow.custodian
        maker = Pubkey.new_unique()
        assert custodian.derive_authority(maker, 1)[0] != custodian.derive_authority(maker, 2)[0]

    def test_verify_returns_canonical_bump(self, runtime) -> None:
        custodian = runtime.escrow.custodian
        maker = Pubkey.new_unique()
        address, bump = custodian.derive_authority(maker, 3)
        assert custodian.verify_authority(address, maker, 3) == bump

    def test_wrong_address_rejected(self, runtime) -> None:
        custodian = runtime.escrow.custodian
        maker = Pubkey.new_unique()
        with pytest.raises(ConstraintSeedsError):
            custodian.verify_authority(Pubkey.new_unique(), maker, 3)

    def test_other_makers_address_rejected(self, runtime) -> None:
        custodian = runtime.escrow.custodian
        someone_else, _ = custodian.derive_authority(Pubkey.new_unique(), 3)
        with pytest.raises(ConstraintSeedsError):
            custodian.verify_authority(someone_else, Pubkey.new_unique(), 3)

    def test_non_canonical_bump_rejected(self, runtime) -> None:
        custodian = runtime.escrow.custodian
        maker = Pubkey.new_unique()
        address, bump = custodian.derive_authority(maker, 3)
        with pytest.raises(ConstraintSeedsError):
            custodian.verify_authority(address, maker, 3, bump=(bump - 1) % 256)


class TestSignerSeeds:
    def test_seeds_grant_signer_status_to_offer_address(self, runtime) -> None:
        program_id = runtime.escrow.program_id
        maker = Pubkey.new_unique()
        offer, bump = find_offer_address(program_id, maker, 1)
        ctx = InvokeContext(
            store=None,
            program_id=program_id,
            signers=frozenset(),
            writable=frozenset(),
            transaction_signature="test",
        )
        seeds = [b"offer", bytes(maker), (1).to_bytes(8, "little"), bytes([bump])]
        assert not ctx.is_signer(offer)
        assert ctx.with_signer_seeds(seeds).is_signer(offer)
        # The parent context is unchanged
        assert not ctx.is_signer(offer)


@pytest.mark.integration
class TestExclusivity:
    @pytest.mark.asyncio
    async def test_maker_cannot_withdraw_directly(
        self, runtime, market, maker: Keypair, offer: Pubkey, balance
    ) -> None:
        vault = find_vault_address(runtime.escrow.program_id, maker.pubkey(), 1, market.mint_a)
        ix = transfer_checked_instruction(
            source=vault,
            mint=market.mint_a,
            destination=vault,
            authority=maker.pubkey(),
            amount=100,
            decimals=6,
        )
        with pytest.raises(OwnerMismatchError):
            await runtime.process_transaction(build_transaction([ix], [maker]))
        assert await balance(offer, market.mint_a) == 100

    @pytest.mark.asyncio
    async def test_offer_address_without_program_signature(
        self, runtime, market, maker: Keypair, offer: Pubkey, balance
    ) -> None:
        """Naming the offer as authority without the program's seeds does nothing."""
        vault = find_vault_address(runtime.escrow.program_id, maker.pubkey(), 1, market.mint_a)
        maker_a = get_associated_token_address(maker.pubkey(), market.mint_a)
        signed = transfer_checked_instruction(vault, market.mint_a, maker_a, offer, 100, 6)
        accounts = list(signed.accounts)
        accounts[3] = AccountMeta(offer, is_signer=False, is_writable=False)
        ix = Instruction(TOKEN_PROGRAM_ID, signed.data, accounts)
        with pytest.raises(MissingRequiredSignatureError):
            await runtime.process_transaction(build_transaction([ix], [maker]))
        assert await balance(offer, market.mint_a) == 100

    @pytest.mark.asyncio
    async def test_close_refuses_funded_vault(
        self, runtime, session_factory, escrow, market, maker: Keypair, offer: Pubkey
    ) -> None:
        state = await escrow.get_offer(offer)
        vault = find_vault_address(runtime.escrow.program_id, maker.pubkey(), 1, market.mint_a)
        async with session_factory() as session, session.begin():
            ctx = InvokeContext(
                store=LedgerStore(session),
                program_id=runtime.escrow.program_id,
                signers=frozenset(),
                writable=frozenset({vault, maker.pubkey()}),
                transaction_signature="test",
            )
            with pytest.raises(NonNativeHasBalanceError):
                await runtime.escrow.custodian.close_and_reclaim(
                    ctx, state, vault, maker.pubkey()
                )
