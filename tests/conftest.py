"""Shared fixtures for the bill relay test suite."""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from billrelay.config import Settings
from billrelay.main import create_app
from billrelay.stores import BillStore, PendingTokenRegistry

WEBHOOK_SECRET = "whsec-test"
API_KEY = "printer-key"
ADMIN_TOKEN = "admin-token"


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    """Hex HMAC-SHA256, as the gateway sends it."""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def capture_body(
    payment_id: str = "pay_1",
    amount: int = 12000,
    notes: dict[str, Any] | list | None = None,
    event: str = "payment.captured",
    **entity: Any,
) -> bytes:
    payment = {
        "id": payment_id,
        "order_id": "order_" + payment_id,
        "amount": amount,
        "currency": "INR",
        "method": "upi",
        "email": "guest@example.com",
        "contact": "+919900000000",
        "notes": {} if notes is None else notes,
    }
    payment.update(entity)
    return json.dumps({"event": event, "payload": {"payment": {"entity": payment}}}).encode()


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "webhook_secret": WEBHOOK_SECRET,
        "api_key": API_KEY,
        "admin_token": ADMIN_TOKEN,
        "reaper_interval_seconds": 0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest.fixture()
def app(settings: Settings):
    return create_app(settings)


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def relay(app):
    """The app's stores and pipeline components."""
    return app.state.relay


@pytest.fixture()
def auth() -> dict[str, str]:
    return {"X-API-Key": API_KEY}


@pytest.fixture()
def post_webhook(client: TestClient) -> Callable[..., Any]:
    def _post(body: bytes, signature: str | None = None, **headers: str):
        hdrs = {"Content-Type": "application/json", **headers}
        hdrs["X-Razorpay-Signature"] = sign(body) if signature is None else signature
        return client.post("/razorpay-webhook", content=body, headers=hdrs)

    return _post


@pytest.fixture()
def bills() -> BillStore:
    return BillStore()


@pytest.fixture()
def tokens() -> PendingTokenRegistry:
    return PendingTokenRegistry()
