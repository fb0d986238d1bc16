"""
Pytest configuration for the payment API tests.
Points the app at an in-memory database and fixed gateway credentials
before any application module is imported.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["SSLCOMMERZ_STORE_ID"] = "teststore"
os.environ["SSLCOMMERZ_STORE_PASSWORD"] = "teststore@ssl"
os.environ["SSLCOMMERZ_IS_LIVE"] = "false"
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["API_BASE_URL"] = "http://api.test"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["REQUIRE_AUTH"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["PENDING_EXPIRY_ENABLED"] = "false"

import hashlib
import hmac
import json
import time
from urllib.parse import parse_qs

import httpx
import pytest
import stripe
from fastapi.testclient import TestClient

from core.sslcommerz import SESSION_PATH, VALIDATION_PATH, SSLCommerzGateway, get_sslcommerz_gateway
from db.session import SessionLocal, create_tables, drop_tables
from main import app
from models.payment import Payment
from models.user_plan import UserPlan

WEBHOOK_SECRET = "whsec_test_secret"
GATEWAY_PAGE_URL = "https://sandbox.sslcommerz.com/EasyCheckOut/testcde8f1d2"


@pytest.fixture(autouse=True)
def fresh_db():
    create_tables()
    yield
    drop_tables()


@pytest.fixture
def client():
    c = TestClient(app)
    yield c
    app.dependency_overrides.clear()


class FakeStripe:
    """Stands in for stripe.PaymentIntent.create and records its calls"""

    def __init__(self):
        self.calls = []
        self.error = None

    def create(self, **params):
        if self.error:
            raise self.error
        self.calls.append(params)
        n = len(self.calls)
        return {"id": f"pi_test_{n}", "client_secret": f"pi_test_{n}_secret_abc"}

    @property
    def last_metadata(self):
        return self.calls[-1]["metadata"]


@pytest.fixture
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    monkeypatch.setattr(stripe.PaymentIntent, "create", fake.create)
    return fake


class FakeSSLCommerz:
    """httpx.MockTransport handler playing the SSLCommerz session and validator APIs"""

    def __init__(self):
        self.session_requests = []
        self.validation_requests = []
        self.session_response = {
            "status": "SUCCESS",
            "GatewayPageURL": GATEWAY_PAGE_URL,
            "sessionkey": "SESSIONKEY123",
        }
        self.validations = {}
        self.validator_down = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == SESSION_PATH:
            form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            self.session_requests.append(form)
            return httpx.Response(200, json=self.session_response)
        if request.url.path == VALIDATION_PATH:
            if self.validator_down:
                raise httpx.ConnectError("validator unreachable", request=request)
            val_id = request.url.params.get("val_id")
            self.validation_requests.append(val_id)
            return httpx.Response(200, json=self.validations.get(val_id, {"status": "INVALID_TRANSACTION"}))
        return httpx.Response(404, json={})

    def confirm(self, val_id, tran_id, amount, status="VALID", **extra):
        self.validations[val_id] = {
            "status": status,
            "tran_id": tran_id,
            "val_id": val_id,
            "amount": str(amount),
            "currency_type": "USD",
            "currency_amount": str(amount),
            **extra,
        }

    @property
    def last_tran_id(self):
        return self.session_requests[-1]["tran_id"]


@pytest.fixture
def fake_sslcommerz():
    fake = FakeSSLCommerz()
    gateway = SSLCommerzGateway(
        store_id="teststore",
        store_password="teststore@ssl",
        base_url="https://sandbox.sslcommerz.com",
        api_base_url="http://api.test",
        transport=httpx.MockTransport(fake.handler),
    )
    app.dependency_overrides[get_sslcommerz_gateway] = lambda: gateway
    return fake


def sign_stripe_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    timestamp = timestamp or int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_type: str, metadata: dict, intent_id: str = "pi_test_1") -> str:
    return json.dumps({
        "id": f"evt_{intent_id}_{event_type}",
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": intent_id, "object": "payment_intent", "metadata": metadata}},
    })


def fetch_payment(tran_id: str):
    with SessionLocal() as db:
        return db.query(Payment).filter(Payment.tran_id == tran_id).first()


def fetch_user_plan(user_id: str):
    with SessionLocal() as db:
        return db.query(UserPlan).filter(UserPlan.user_id == user_id).first()


def count_rows(model) -> int:
    with SessionLocal() as db:
        return db.query(model).count()
