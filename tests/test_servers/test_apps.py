"""
Tests for the FastAPI integration.
"""
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient

from fastx402.adapters.evm import sign_payment_challenge
from fastx402.engine.events import AuthorizationSuccessEvent, BreakEvent
from fastx402.engine.exceptions import ConfigurationError
from fastx402.schemas.payments import PaymentChallenge
from fastx402.servers.apps import Http402Server, payment_required
from fastx402.servers.verification import VerificationEngine

from conftest import MERCHANT_ADDRESS, PAYER_ADDRESS, PAYER_KEY


@pytest.fixture
def app(payment_config):
    app = Http402Server(payment_config, title="test")

    @app.get("/data")
    @app.payment_required(price="0.01", description="Premium data")
    async def data(verification):
        return {"payer": verification.signer}

    @app.get("/text")
    @app.payment_required({"price": "0.02"})
    def text(verification, request: Request):
        return PlainTextResponse(f"hello {request.state.x402_challenge.price}")

    @app.get("/free")
    async def free():
        return {"ok": True}

    return app


def pay(client, path, key=PAYER_KEY):
    challenge = client.get(path).json()["challenge"]
    assertion = sign_payment_challenge(PaymentChallenge.model_validate(challenge), key)
    return client.get(path, headers={"X-PAYMENT": assertion.to_header()})


def test_unpaid_request_gets_402(app):
    response = TestClient(app).get("/data")

    assert response.status_code == 402
    assert response.headers["x-payment-required"] == "true"
    body = response.json()
    assert body["error"] == "Payment Required"
    assert body["challenge"]["price"] == "0.01"
    assert body["challenge"]["currency"] == "USDC"
    assert body["challenge"]["merchant"] == MERCHANT_ADDRESS
    assert body["challenge"]["description"] == "Premium data"


def test_paid_request_reaches_handler(app):
    response = pay(TestClient(app), "/data")

    assert response.status_code == 200
    assert response.headers["x-payment-response"] == "verified"
    assert response.json() == {"payer": PAYER_ADDRESS}


def test_response_results_get_verified_header(app):
    response = pay(TestClient(app), "/text")

    assert response.status_code == 200
    assert response.text == "hello 0.02"
    assert response.headers["x-payment-response"] == "verified"


def test_payment_for_another_route_is_rejected(app):
    client = TestClient(app)
    challenge = client.get("/text").json()["challenge"]
    assertion = sign_payment_challenge(PaymentChallenge.model_validate(challenge), PAYER_KEY)

    response = client.get("/data", headers={"X-PAYMENT": assertion.to_header()})

    assert response.status_code == 402
    assert response.json()["verificationError"] == "Challenge mismatch: price"


def test_malformed_header_is_402(app):
    response = TestClient(app).get("/data", headers={"X-PAYMENT": "{oops"})
    assert response.status_code == 402
    assert response.json()["verificationError"] == "Invalid payment header format"


def test_unprotected_routes_untouched(app):
    response = TestClient(app).get("/free")
    assert response.status_code == 200
    assert "x-payment-response" not in response.headers


def test_guard_fault_hides_details(app):
    app.verification_engine.verify = AsyncMock(side_effect=RuntimeError("secret"))
    client = TestClient(app)
    challenge = client.get("/data").json()["challenge"]
    assertion = sign_payment_challenge(PaymentChallenge.model_validate(challenge), PAYER_KEY)

    response = client.get("/data", headers={"X-PAYMENT": assertion.to_header()})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_hook_decorator(app):
    granted = []

    @app.hook(AuthorizationSuccessEvent)
    async def on_grant(event, deps):
        granted.append(event.verification.signer)

    pay(TestClient(app), "/data")
    assert granted == [PAYER_ADDRESS]


def test_module_level_decorator_on_plain_fastapi(payment_config):
    app = FastAPI()
    engine = VerificationEngine(payment_config)

    @app.get("/report")
    @payment_required({"price": "1.5", "currency": "EURC"}, engine)
    async def report(verification):
        return {"ok": True}

    response = TestClient(app).get("/report")
    assert response.status_code == 402
    assert response.json()["challenge"]["currency"] == "EURC"


def test_route_without_price_is_rejected(payment_config):
    app = Http402Server(payment_config)
    with pytest.raises(ConfigurationError):
        app.payment_required(currency="USDC")


def test_server_loads_config_from_env(monkeypatch):
    monkeypatch.setenv("X402_RECEIVER_ADDRESS", MERCHANT_ADDRESS)
    monkeypatch.setenv("X402_CHAIN_ID", "84532")
    app = Http402Server()
    assert app.payment_config.chain_id == 84532


def test_subscribed_handler_can_end_the_chain(app):
    calls = []

    async def audit(event, deps):
        calls.append(event.verification.signer)
        return BreakEvent(break_reason="audited")

    app.subscribe(AuthorizationSuccessEvent, audit)
    response = pay(TestClient(app), "/data")

    assert response.status_code == 200
    assert calls == [PAYER_ADDRESS]
