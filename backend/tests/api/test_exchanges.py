"""Exchanges API — creation fans out validation requests; lookup exposes slots."""

import json
import uuid

from httpx import ASGITransport, AsyncClient

from bookswap.core.domain_types import ExchangeId, ExchangeState, ValidationStatus
from bookswap.main import app

from tests.fakes import seed_exchange

BODY = {"book_id": "book-1", "borrower_id": "user-1", "lender_id": "user-2"}


async def test_create_returns_pending_exchange(client, bus):
    response = await client.post("/api/v1/exchanges", json=BODY)

    assert response.status_code == 201
    data = response.json()
    assert data["state"] == ExchangeState.PENDING_VALIDATION.value
    assert data["validation_status_user"] == ValidationStatus.PENDING.value
    assert data["validation_status_book"] == ValidationStatus.PENDING.value
    assert data["book_id"] == "book-1"


async def test_create_publishes_one_request_per_fact(client, bus):
    response = await client.post("/api/v1/exchanges", json=BODY)
    exchange_id = response.json()["id"]

    [user_request] = bus.payloads("validate-user")
    [book_request] = bus.payloads("validate-book")
    assert json.loads(user_request) == {
        "correlation_key": exchange_id, "subject_id": "user-1",
    }
    assert json.loads(book_request) == {
        "correlation_key": exchange_id, "subject_id": "book-1",
    }


async def test_create_strips_identifiers(client, bus):
    body = {**BODY, "book_id": "  book-1  "}
    response = await client.post("/api/v1/exchanges", json=body)
    assert response.json()["book_id"] == "book-1"


async def test_create_rejects_blank_identifier(client, bus):
    response = await client.post(
        "/api/v1/exchanges", json={**BODY, "borrower_id": "   "},
    )
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert any("borrower_id" in d["field"] for d in error["details"])
    assert bus.published == []


async def test_create_with_broker_down_returns_503(client, bus, store):
    bus.fail = True
    response = await client.post("/api/v1/exchanges", json=BODY)

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "5"
    error = response.json()["error"]
    assert error["code"] == "EVENT_BUS_ERROR"
    assert error["category"] == "transport"
    # The exchange was committed before publishing; its key is reported back
    exchange_id = error["context"]["correlation_key"]
    snap = await store.read_state(ExchangeId(uuid.UUID(exchange_id)))
    assert snap.state is ExchangeState.PENDING_VALIDATION


async def test_get_exchange(client, test_db):
    exchange = await seed_exchange(
        test_db,
        state=ExchangeState.REJECTED.value,
        validation_status_user=ValidationStatus.VALID.value,
        validation_status_book=ValidationStatus.INVALID.value,
    )

    response = await client.get(f"/api/v1/exchanges/{exchange.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == str(exchange.id)
    assert data["state"] == "rejected"
    assert data["validation_status_user"] == "valid"
    assert data["validation_status_book"] == "invalid"


async def test_get_unknown_exchange_is_404(client):
    missing = uuid.uuid4()
    response = await client.get(f"/api/v1/exchanges/{missing}")
    assert response.status_code == 404
    error = response.json()["error"]
    assert error["code"] == "RESOURCE_NOT_FOUND"
    assert error["category"] == "resource_not_found"
    assert error["context"]["correlation_key"] == str(missing)


async def test_get_with_malformed_id_is_400(client):
    response = await client.get("/api/v1/exchanges/not-a-uuid")
    assert response.status_code == 400


async def test_unexpected_error_hides_internals(client, monkeypatch):
    async def explode(self, *args, **kwargs):
        raise RuntimeError("secret dsn in traceback")

    monkeypatch.setattr(
        "bookswap.services.exchange_initiator.ExchangeInitiator.create", explode,
    )
    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://test",
    ) as c:
        response = await c.post("/api/v1/exchanges", json=BODY)

    assert response.status_code == 500
    error = response.json()["error"]
    assert error["code"] == "INTERNAL_ERROR"
    assert "secret" not in response.text
