"""End-to-end tests for the REST API.

Clients sign transactions locally and POST them; the server only verifies
and executes. The app's lifespan does not run under ASGITransport, so the
runtime and the health check engine are injected from the test fixtures.
"""

from __future__ import annotations

import base64

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from token_escrow.api.deps import get_runtime
from token_escrow.main import create_app
from token_escrow.programs.associated_token import get_associated_token_address
from token_escrow.programs.escrow import (
    find_vault_address,
    make_offer_instruction,
    take_offer_instruction,
)
from token_escrow.runtime.transaction import (
    build_transaction,
    encode_transaction,
    transaction_id,
)

pytestmark = pytest.mark.integration


@pytest_asyncio.fixture
async def client(runtime, engine, monkeypatch):
    app = create_app()
    app.dependency_overrides[get_runtime] = lambda: runtime
    monkeypatch.setattr("token_escrow.api.routes.health._get_engine", lambda: engine)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def _make_ix(program_id: Pubkey, market, maker: Keypair, **overrides: int):
    args = {"offer_id": 1, "token_a_offered_amount": 100, "token_b_amount_wanted": 80}
    args.update(overrides)
    return make_offer_instruction(
        program_id,
        maker=maker.pubkey(),
        token_mint_a=market.mint_a,
        token_mint_b=market.mint_b,
        **args,
    )


def _make_tx(
    program_id: Pubkey, market, maker: Keypair, recent_blockhash: Hash | None = None
) -> Transaction:
    ix = _make_ix(program_id, market, maker)
    return build_transaction([ix], [maker], recent_blockhash=recent_blockhash)


def _take_tx(program_id: Pubkey, market, taker: Keypair, maker: Keypair) -> Transaction:
    ix = take_offer_instruction(
        program_id,
        taker=taker.pubkey(),
        maker=maker.pubkey(),
        token_mint_a=market.mint_a,
        token_mint_b=market.mint_b,
        offer_id=1,
    )
    return build_transaction([ix], [taker])


async def _submit(client: AsyncClient, tx: Transaction):
    return await client.post("/api/v1/transactions", json={"transaction": encode_transaction(tx)})


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient) -> None:
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["database"] == "healthy"

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client: AsyncClient) -> None:
        response = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestOfferLifecycle:
    @pytest.mark.asyncio
    async def test_make_then_query(
        self, client: AsyncClient, program_id, market, maker: Keypair
    ) -> None:
        tx = _make_tx(program_id, market, maker)
        response = await _submit(client, tx)
        assert response.status_code == 201
        assert response.json()["signature"] == transaction_id(tx)
        assert f"Program {program_id} success" in response.json()["logs"]

        offers = (await client.get("/api/v1/offers", params={"maker": str(maker.pubkey())})).json()
        assert len(offers) == 1
        offer = offers[0]
        assert offer["id"] == 1
        assert offer["maker"] == str(maker.pubkey())
        assert offer["token_b_amount_wanted"] == 80
        vault = find_vault_address(program_id, maker.pubkey(), 1, market.mint_a)
        assert offer["vault"] == str(vault)

        detail = await client.get(f"/api/v1/offers/{offer['address']}")
        assert detail.status_code == 200
        assert detail.json() == offer

        status = (await client.get(f"/api/v1/offers/{offer['address']}/status")).json()
        assert status["status"] == "OPEN"

        events = (await client.get(f"/api/v1/offers/{offer['address']}/events")).json()
        assert [e["event_type"] for e in events] == ["OFFER_MADE"]
        assert events[0]["metadata"]["token_a_offered_amount"] == 100
        assert events[0]["transaction_signature"] == transaction_id(tx)

        account = (await client.get(f"/api/v1/accounts/{vault}")).json()
        assert account["amount"] == 100
        assert account["owner"] == offer["address"]

    @pytest.mark.asyncio
    async def test_take_over_api(
        self, client: AsyncClient, escrow, program_id, market, maker: Keypair, taker: Keypair
    ) -> None:
        await _submit(client, _make_tx(program_id, market, maker))
        response = await _submit(client, _take_tx(program_id, market, taker, maker))
        assert response.status_code == 201

        offer = escrow.offer_address(maker.pubkey(), 1)
        taker_a = get_associated_token_address(taker.pubkey(), market.mint_a)
        assert (await client.get(f"/api/v1/accounts/{taker_a}")).json()["amount"] == 100
        assert (await client.get(f"/api/v1/offers/{offer}")).status_code == 404
        status = (await client.get(f"/api/v1/offers/{offer}/status")).json()
        assert status["status"] == "FULFILLED"


class TestErrors:
    @pytest.mark.asyncio
    async def test_self_take(
        self, client: AsyncClient, program_id, market, maker: Keypair
    ) -> None:
        await _submit(client, _make_tx(program_id, market, maker))
        response = await _submit(client, _take_tx(program_id, market, maker, maker))
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "TakerShouldNotBeMaker"
        assert body["category"] == "protocol_violation"
        assert body["instruction_index"] == 0

    @pytest.mark.asyncio
    async def test_unknown_offer(self, client: AsyncClient) -> None:
        response = await client.get(f"/api/v1/offers/{Pubkey.new_unique()}")
        assert response.status_code == 404
        assert response.json()["error"] == "AccountNotInitialized"

    @pytest.mark.asyncio
    async def test_replay(self, client: AsyncClient, program_id, market, maker: Keypair) -> None:
        tx = _make_tx(program_id, market, maker)
        assert (await _submit(client, tx)).status_code == 201
        response = await _submit(client, tx)
        assert response.status_code == 409
        assert response.json()["error"] == "AlreadyProcessed"

    @pytest.mark.asyncio
    async def test_invalid_address(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/accounts/not-a-key")
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidAddress"


class TestMalformedTransactions:
    """Bad transaction input is a 400 with a structured body, never a 500."""

    @pytest.mark.asyncio
    async def test_tampered_amount(
        self, client: AsyncClient, program_id, market, maker: Keypair, balance
    ) -> None:
        blockhash = Hash.new_unique()
        signed = _make_tx(program_id, market, maker, recent_blockhash=blockhash)
        forged = Message.new_with_blockhash(
            [_make_ix(program_id, market, maker, token_b_amount_wanted=1)],
            maker.pubkey(),
            blockhash,
        )
        response = await _submit(client, Transaction.populate(forged, signed.signatures))
        assert response.status_code == 400
        assert response.json()["error"] == "MissingRequiredSignature"
        assert await balance(maker.pubkey(), market.mint_a) == 100

    @pytest.mark.asyncio
    async def test_default_signature(
        self, client: AsyncClient, program_id, market, maker: Keypair
    ) -> None:
        tx = _make_tx(program_id, market, maker)
        tx.signatures = [Signature.default()]
        response = await _submit(client, tx)
        assert response.status_code == 400
        assert response.json()["error"] == "MissingRequiredSignature"

    @pytest.mark.asyncio
    async def test_extra_signature(
        self, client: AsyncClient, program_id, market, maker: Keypair, balance
    ) -> None:
        tx = _make_tx(program_id, market, maker)
        padded = Transaction.populate(tx.message, [*tx.signatures, Keypair().sign_message(b"x")])
        response = await _submit(client, padded)
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInstruction"
        assert await balance(maker.pubkey(), market.mint_a) == 100

    @pytest.mark.asyncio
    async def test_missing_signature_slot(
        self, client: AsyncClient, program_id, market, maker: Keypair
    ) -> None:
        tx = _make_tx(program_id, market, maker)
        response = await _submit(client, Transaction.populate(tx.message, []))
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInstruction"

    @pytest.mark.asyncio
    async def test_not_base64(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/transactions", json={"transaction": "not-a-transaction!"}
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "InvalidInstruction"
        assert "base64" in body["message"]

    @pytest.mark.asyncio
    async def test_garbage_bytes(self, client: AsyncClient) -> None:
        payload = {"transaction": base64.b64encode(b"\x01" + bytes(10)).decode()}
        response = await client.post("/api/v1/transactions", json=payload)
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInstruction"

    @pytest.mark.asyncio
    async def test_truncated_transaction(
        self, client: AsyncClient, program_id, market, maker: Keypair
    ) -> None:
        raw = bytes(_make_tx(program_id, market, maker))
        payload = {"transaction": base64.b64encode(raw[:-8]).decode()}
        response = await client.post("/api/v1/transactions", json=payload)
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInstruction"

    @pytest.mark.asyncio
    async def test_empty_transaction(self, client: AsyncClient, maker: Keypair) -> None:
        response = await _submit(client, build_transaction([], [maker]))
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInstruction"

    @pytest.mark.asyncio
    async def test_missing_body_field(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/transactions", json={})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unsupported_encoding(
        self, client: AsyncClient, program_id, market, maker: Keypair
    ) -> None:
        payload = {
            "transaction": encode_transaction(_make_tx(program_id, market, maker)),
            "encoding": "base58",
        }
        response = await client.post("/api/v1/transactions", json=payload)
        assert response.status_code == 422
