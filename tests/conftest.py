"""Shared test fixtures for the token escrow test suite.

Provides:
    - A per-test SQLite ledger (aiosqlite file in tmp_path) with all tables
    - A runtime with the system, token, associated token and escrow programs
    - Funded wallets: the maker holds 100 A, the taker holds 80 B
    - Async test support via pytest-asyncio
"""

from __future__ import annotations

from dataclasses import dataclass

import pytest
import pytest_asyncio
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from token_escrow.config import Settings
from token_escrow.domain.exceptions import AccountNotInitializedError
from token_escrow.infrastructure.database.engine import (
    build_engine,
    build_session_factory,
    create_tables,
)
from token_escrow.programs.associated_token import get_associated_token_address
from token_escrow.runtime.processor import Runtime, build_runtime
from token_escrow.services.escrow_service import EscrowService
from token_escrow.services.token_service import TokenService

LAMPORTS = 10_000_000_000
DECIMALS = 6


@dataclass
class Market:
    mint_a: Pubkey
    mint_b: Pubkey
    authority: Keypair


# ---------------------------------------------------------------------------
# Ledger Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        app_env="development",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        account_lock_timeout_seconds=2.0,
        airdrop_enabled=True,
    )


@pytest_asyncio.fixture
async def engine(settings: Settings):
    engine = build_engine(settings.database_url)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def runtime(session_factory, settings: Settings) -> Runtime:
    return build_runtime(session_factory, settings)


@pytest.fixture
def escrow(runtime: Runtime) -> EscrowService:
    return EscrowService(runtime)


@pytest.fixture
def tokens(runtime: Runtime) -> TokenService:
    return TokenService(runtime)


@pytest.fixture
def program_id(runtime: Runtime) -> Pubkey:
    return runtime.escrow.program_id


# ---------------------------------------------------------------------------
# Wallet Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def maker() -> Keypair:
    return Keypair()


@pytest.fixture
def taker() -> Keypair:
    return Keypair()


@pytest.fixture
def mint_authority() -> Keypair:
    return Keypair()


@pytest_asyncio.fixture
async def market(
    tokens: TokenService,
    mint_authority: Keypair,
    maker: Keypair,
    taker: Keypair,
) -> Market:
    """Two mints; the maker holds 100 A and the taker holds 80 B."""
    for wallet in (mint_authority, maker, taker):
        await tokens.airdrop(wallet.pubkey(), LAMPORTS)
    mint_a = await tokens.create_mint(mint_authority, DECIMALS)
    mint_b = await tokens.create_mint(mint_authority, DECIMALS)
    await tokens.mint_to(mint_a, maker.pubkey(), mint_authority, 100)
    await tokens.mint_to(mint_b, taker.pubkey(), mint_authority, 80)
    return Market(mint_a=mint_a, mint_b=mint_b, authority=mint_authority)


@pytest_asyncio.fixture
async def offer(escrow: EscrowService, market: Market, maker: Keypair) -> Pubkey:
    """An open offer: 100 A wanting 80 B, id 1."""
    await escrow.make_offer(
        maker,
        token_mint_a=market.mint_a,
        token_mint_b=market.mint_b,
        offer_id=1,
        token_a_offered_amount=100,
        token_b_amount_wanted=80,
    )
    return escrow.offer_address(maker.pubkey(), 1)


@pytest.fixture
def balance(escrow: EscrowService):
    """Async helper: token balance of owner's associated account, 0 if absent."""

    async def _balance(owner: Pubkey, mint: Pubkey) -> int:
        try:
            account = await escrow.token_balance(get_associated_token_address(owner, mint))
        except AccountNotInitializedError:
            return 0
        return account.amount

    return _balance


@pytest.fixture
def account_exists(escrow: EscrowService):
    """Async helper: whether a token account exists at an address."""

    async def _exists(address: Pubkey) -> bool:
        try:
            await escrow.token_balance(address)
        except AccountNotInitializedError:
            return False
        return True

    return _exists
