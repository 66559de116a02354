#!/usr/bin/env python3
"""Token Escrow — End-to-End Simulation.

Simulates four scenarios with MakerBot and TakerBot wallets:

    Scenario 1: Swap
        - Maker deposits 100 A wanting 80 B (offer id 1)
        - Taker holding 80 B takes the offer -> taker 100 A / 0 B, maker 0 A / 80 B

    Scenario 2: Cancel
        - Maker deposits 100 A wanting 80 B
        - Maker cancels before any take -> maker back at 100 A

    Scenario 3: Self-Trade
        - Maker tries to take its own offer -> TakerShouldNotBeMaker,
          nothing changes

    Scenario 4: Double-Spend Race
        - Take and cancel race for the same offer -> exactly one wins,
          the other finds no offer

Usage:
    # Option A: With Docker (PostgreSQL):
    docker compose up -d
    uv run python simulation.py

    # Option B: Without Docker (SQLite file in a temp directory):
    uv run python simulation.py --sqlite

    # Run a specific scenario:
    uv run python simulation.py --sqlite --scenario 1
"""

from __future__ import annotations

import argparse
import asyncio
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from solders.keypair import Keypair
from solders.pubkey import Pubkey

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from token_escrow.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

from token_escrow.config import get_settings  # noqa: E402
from token_escrow.domain.exceptions import EscrowError  # noqa: E402
from token_escrow.programs.associated_token import get_associated_token_address  # noqa: E402
from token_escrow.runtime.processor import Runtime, build_runtime  # noqa: E402
from token_escrow.services.escrow_service import EscrowService  # noqa: E402
from token_escrow.services.token_service import TokenService  # noqa: E402

LAMPORTS_PER_WALLET = 1_000_000_000
DECIMALS = 6

# Module-level state
_sqlite_engine = None
_sqlite_dir: tempfile.TemporaryDirectory | None = None
_runtime: Runtime | None = None


# ---------------------------------------------------------------------------
# Database lifecycle helpers
# ---------------------------------------------------------------------------
async def init_database(use_sqlite: bool = False) -> Runtime:
    """Initialize the database, create tables and deploy the programs."""
    global _sqlite_engine, _sqlite_dir, _runtime

    settings = get_settings()
    if use_sqlite:
        from token_escrow.infrastructure.database.engine import (
            build_engine,
            build_session_factory,
            create_tables,
        )

        _sqlite_dir = tempfile.TemporaryDirectory(prefix="token-escrow-")
        db_path = Path(_sqlite_dir.name) / "ledger.db"
        _sqlite_engine = build_engine(f"sqlite+aiosqlite:///{db_path}")
        await create_tables(_sqlite_engine)
        session_factory = build_session_factory(_sqlite_engine)
        logger.info("database.sqlite_initialized", path=str(db_path))
    else:
        from token_escrow.infrastructure.database.engine import _get_session_factory, init_db

        await init_db()
        session_factory = _get_session_factory()

    _runtime = build_runtime(session_factory, settings)
    return _runtime


async def shutdown_database() -> None:
    """Close database connections."""
    global _sqlite_engine, _sqlite_dir, _runtime

    if _sqlite_engine is not None:
        await _sqlite_engine.dispose()
        _sqlite_engine = None
        if _sqlite_dir is not None:
            _sqlite_dir.cleanup()
            _sqlite_dir = None
    else:
        from token_escrow.infrastructure.database.engine import close_db

        await close_db()
    _runtime = None


def get_runtime() -> Runtime:
    if _runtime is None:
        raise RuntimeError("Database not initialized; call init_database() first")
    return _runtime


# ---------------------------------------------------------------------------
# Market setup
# ---------------------------------------------------------------------------
@dataclass
class Market:
    """Two freshly minted assets, A and B, with a shared mint authority."""

    authority: Keypair = field(default_factory=Keypair)
    mint_a: Pubkey | None = None
    mint_b: Pubkey | None = None

    async def open(self, tokens: TokenService) -> Market:
        await tokens.airdrop(self.authority.pubkey(), LAMPORTS_PER_WALLET)
        self.mint_a = await tokens.create_mint(self.authority, DECIMALS)
        self.mint_b = await tokens.create_mint(self.authority, DECIMALS)
        logger.info("market.opened", mint_a=str(self.mint_a), mint_b=str(self.mint_b))
        return self


# ---------------------------------------------------------------------------
# Bot Wallets
# ---------------------------------------------------------------------------
@dataclass
class Bot:
    """Simulated wallet with balances of A and B."""

    name: str
    keypair: Keypair = field(default_factory=Keypair)

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()

    async def fund(self, market: Market, tokens: TokenService, a: int = 0, b: int = 0) -> None:
        await tokens.airdrop(self.pubkey, LAMPORTS_PER_WALLET)
        if a:
            await tokens.mint_to(market.mint_a, self.pubkey, market.authority, a)
        if b:
            await tokens.mint_to(market.mint_b, self.pubkey, market.authority, b)

    async def balance(self, escrow: EscrowService, mint: Pubkey) -> int:
        try:
            account = await escrow.token_balance(get_associated_token_address(self.pubkey, mint))
        except EscrowError:
            return 0
        return account.amount

    async def report(self, escrow: EscrowService, market: Market) -> tuple[int, int]:
        a = await self.balance(escrow, market.mint_a)
        b = await self.balance(escrow, market.mint_b)
        print(f"  {self.name:<6} A={a:<5} B={b}")
        return a, b


@dataclass
class MakerBot(Bot):
    """Maker wallet that opens and cancels offers."""

    name: str = "MAKER"

    async def make_offer(
        self,
        escrow: EscrowService,
        market: Market,
        offer_id: int,
        amount_a: int,
        amount_b_wanted: int,
    ) -> Pubkey:
        receipt = await escrow.make_offer(
            self.keypair,
            token_mint_a=market.mint_a,
            token_mint_b=market.mint_b,
            offer_id=offer_id,
            token_a_offered_amount=amount_a,
            token_b_amount_wanted=amount_b_wanted,
        )
        offer_address = escrow.offer_address(self.pubkey, offer_id)
        logger.info(
            "🔵 MAKER: Offer made",
            offer=str(offer_address),
            amount_a=amount_a,
            wants_b=amount_b_wanted,
            signature=receipt.signature[:16] + "...",
        )
        return offer_address

    async def cancel_offer(self, escrow: EscrowService, offer_address: Pubkey) -> None:
        await escrow.cancel_offer(self.keypair, offer_address)
        logger.info("🔵 MAKER: Offer cancelled", offer=str(offer_address))


@dataclass
class TakerBot(Bot):
    """Taker wallet that fills offers."""

    name: str = "TAKER"

    async def take_offer(self, escrow: EscrowService, offer_address: Pubkey) -> None:
        await escrow.take_offer(self.keypair, offer_address)
        logger.info("🟢 TAKER: Offer taken", offer=str(offer_address))


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    """Print a prominent banner."""
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    """Print a section header."""
    print(f"\n--- {text} ---\n")


async def print_audit_trail(escrow: EscrowService, offer_address: Pubkey) -> None:
    """Print the offer's audit trail."""
    section("Audit Trail")
    for evt in await escrow.get_events(offer_address):
        print(f"  {evt.event_type:<16} {evt.old_status} -> {evt.new_status}  by {evt.actor[:8]}...")


async def setup_parties(
    runtime: Runtime,
) -> tuple[EscrowService, Market, MakerBot, TakerBot]:
    tokens = TokenService(runtime)
    escrow = EscrowService(runtime)
    market = await Market().open(tokens)
    maker = MakerBot()
    taker = TakerBot()
    await maker.fund(market, tokens, a=100)
    await taker.fund(market, tokens, b=80)
    return escrow, market, maker, taker


# ===========================================================================
# Scenario 1: Swap
# ===========================================================================
async def scenario_1_swap() -> None:
    """Maker offers 100 A for 80 B; the taker fills it."""
    banner("SCENARIO 1: Swap — 100 A for 80 B")
    escrow, market, maker, taker = await setup_parties(get_runtime())

    section("Step 1: Maker deposits 100 A wanting 80 B")
    offer_address = await maker.make_offer(
        escrow, market, offer_id=1, amount_a=100, amount_b_wanted=80
    )
    offer = await escrow.get_offer(offer_address)
    print(f"  Offer: {offer.to_dict()}")
    await maker.report(escrow, market)

    section("Step 2: Taker takes the offer")
    await taker.take_offer(escrow, offer_address)

    section("Step 3: Final balances")
    assert await maker.report(escrow, market) == (0, 80)
    assert await taker.report(escrow, market) == (100, 0)
    status = await escrow.get_status(offer_address)
    assert status["status"] == "FULFILLED", f"Expected FULFILLED, got {status['status']}"
    print("  ✅ Swap settled atomically; offer and vault are gone")
    await print_audit_trail(escrow, offer_address)


# ===========================================================================
# Scenario 2: Cancel
# ===========================================================================
async def scenario_2_cancel() -> None:
    """Maker offers and then cancels before anyone takes."""
    banner("SCENARIO 2: Cancel — maker recovers the deposit")
    escrow, market, maker, taker = await setup_parties(get_runtime())

    section("Step 1: Maker deposits 100 A wanting 80 B")
    offer_address = await maker.make_offer(
        escrow, market, offer_id=1, amount_a=100, amount_b_wanted=80
    )
    await maker.report(escrow, market)

    section("Step 2: Maker cancels")
    await maker.cancel_offer(escrow, offer_address)

    section("Step 3: Final balances")
    assert await maker.report(escrow, market) == (100, 0)
    assert await taker.report(escrow, market) == (0, 80)
    print("  ✅ Maker back at 100 A; taker untouched")
    await print_audit_trail(escrow, offer_address)


# ===========================================================================
# Scenario 3: Self-Trade
# ===========================================================================
async def scenario_3_self_trade() -> None:
    """Maker tries to take its own offer."""
    banner("SCENARIO 3: Self-Trade — rejected")
    escrow, market, maker, _ = await setup_parties(get_runtime())
    tokens = TokenService(get_runtime())
    await tokens.mint_to(market.mint_b, maker.pubkey, market.authority, 80)

    offer_address = await maker.make_offer(
        escrow, market, offer_id=7, amount_a=100, amount_b_wanted=80
    )

    section("Maker calls TakeOffer on its own offer")
    try:
        await escrow.take_offer(maker.keypair, offer_address)
    except EscrowError as exc:
        print(f"  🛡️  Rejected: {exc.code} ({exc.message})")
    else:
        raise AssertionError("self-trade was accepted")

    assert await maker.report(escrow, market) == (0, 80)
    status = await escrow.get_status(offer_address)
    assert status["status"] == "OPEN"
    print("  ✅ Offer still open, balances unchanged")


# ===========================================================================
# Scenario 4: Double-Spend Race
# ===========================================================================
async def scenario_4_race() -> None:
    """Take and cancel are submitted concurrently for the same offer."""
    banner("SCENARIO 4: Double-Spend Race — take vs cancel")
    escrow, market, maker, taker = await setup_parties(get_runtime())
    offer_address = await maker.make_offer(
        escrow, market, offer_id=42, amount_a=100, amount_b_wanted=80
    )
    offer = await escrow.get_offer(offer_address)

    from token_escrow.programs.escrow.builders import (
        cancel_offer_instruction,
        take_offer_instruction,
    )
    from token_escrow.runtime.transaction import build_transaction

    take_tx = build_transaction(
        [
            take_offer_instruction(
                escrow.program_id,
                taker=taker.pubkey,
                maker=maker.pubkey,
                token_mint_a=offer.token_mint_a,
                token_mint_b=offer.token_mint_b,
                offer_id=offer.id,
            )
        ],
        [taker.keypair],
    )
    cancel_tx = build_transaction(
        [cancel_offer_instruction(escrow.program_id, maker.pubkey, offer.token_mint_a, offer.id)],
        [maker.keypair],
    )

    section("Submitting both transactions at once")
    results = await asyncio.gather(
        escrow.submit(take_tx),
        escrow.submit(cancel_tx),
        return_exceptions=True,
    )
    for label, result in zip(("take", "cancel"), results, strict=True):
        if isinstance(result, EscrowError):
            print(f"  ❌ {label:<6} failed: {result.code}")
        else:
            print(f"  ✅ {label:<6} committed: {result.signature[:16]}...")

    winners = [r for r in results if not isinstance(r, BaseException)]
    assert len(winners) == 1, "exactly one transition must win"

    maker_a, maker_b = await maker.report(escrow, market)
    taker_a, taker_b = await taker.report(escrow, market)
    assert maker_a + taker_a == 100 and maker_b + taker_b == 80
    print("  🛡️  Exactly one transition happened; nothing was spent twice")
    await print_audit_trail(escrow, offer_address)


# ===========================================================================
# Main
# ===========================================================================
SCENARIOS = {
    1: scenario_1_swap,
    2: scenario_2_cancel,
    3: scenario_3_self_trade,
    4: scenario_4_race,
}


async def run_all(use_sqlite: bool = False) -> None:
    """Run all scenarios sequentially."""
    await init_database(use_sqlite=use_sqlite)
    try:
        print("\n" + "🚀" * 35)
        print("  TOKEN ESCROW — SIMULATION")
        db_type = "SQLite (temp file)" if use_sqlite else "PostgreSQL"
        print(f"  Database: {db_type}")
        print("🚀" * 35 + "\n")

        for scenario in SCENARIOS.values():
            await scenario()

        print("\n" + "=" * 70)
        print("  ✅ ALL SCENARIOS COMPLETED SUCCESSFULLY")
        print("=" * 70 + "\n")
    finally:
        await shutdown_database()


async def run_scenario(num: int, use_sqlite: bool = False) -> None:
    """Run a specific scenario."""
    await init_database(use_sqlite=use_sqlite)
    try:
        if num not in SCENARIOS:
            print(f"Unknown scenario {num}. Available: {', '.join(map(str, SCENARIOS))}")
            return
        await SCENARIOS[num]()
    finally:
        await shutdown_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Token Escrow Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        help="Run a specific scenario (1-4). Default: run all.",
    )
    parser.add_argument(
        "--sqlite",
        action="store_true",
        help="Use a temporary SQLite file instead of PostgreSQL (no Docker needed).",
    )
    args = parser.parse_args()

    if args.scenario == 0:
        asyncio.run(run_all(use_sqlite=args.sqlite))
    else:
        asyncio.run(run_scenario(args.scenario, use_sqlite=args.sqlite))
