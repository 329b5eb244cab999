"""
Pytest configuration and fixtures for testing
"""
import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from mindplan.core.app_factory import create_application
from mindplan.core.config import Settings
from mindplan.infrastructure.repositories.budget_repository import BudgetRepository
from mindplan.infrastructure.repositories.goal_repository import GoalRepository
from mindplan.infrastructure.repositories.subscription_repository import SubscriptionRepository
from mindplan.infrastructure.repositories.transaction_repository import TransactionRepository
from mindplan.infrastructure.repositories.user_repository import UserRepository
from mindplan.services.finance_service import FinanceService
from mindplan.services.stripe_service import StripeService
from mindplan.services.subscription_service import SubscriptionService

WEBHOOK_SECRET = "whsec_test_secret"
JWT_SECRET = "test-jwt-secret-that-is-long-enough-for-hs256"
ADMIN_EMAIL = "admin@mindplan.io"


class FrozenClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeStripeService(StripeService):
    """StripeService that records calls instead of talking to Stripe.

    Webhook signature verification is inherited, so signed payloads go through
    the real SDK check.
    """

    def __init__(self, webhook_secret: Optional[str] = WEBHOOK_SECRET):
        super().__init__(secret_key=None, webhook_secret=webhook_secret)
        self.subscriptions: Dict[str, Dict[str, Any]] = {}
        self.customers_created: List[Dict[str, Any]] = []
        self.checkout_sessions: List[Dict[str, Any]] = []
        self.portal_sessions: List[Dict[str, Any]] = []

    @property
    def is_configured(self) -> bool:
        return True

    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return self.subscriptions[subscription_id]

    def ensure_customer(self, email: str, user_id: int, customer_id: Optional[str] = None) -> str:
        if customer_id:
            return customer_id
        new_id = f"cus_{user_id}"
        self.customers_created.append({"email": email, "user_id": user_id, "id": new_id})
        return new_id

    def create_checkout_session(self, customer_id, price_id, user_id, success_url, cancel_url, trial_days=None):
        self.checkout_sessions.append(
            {
                "customer_id": customer_id,
                "price_id": price_id,
                "user_id": user_id,
                "success_url": success_url,
                "cancel_url": cancel_url,
                "trial_days": trial_days,
            }
        )
        return {"session_id": "cs_test_1", "checkout_url": "https://checkout.stripe.test/cs_test_1"}

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        self.portal_sessions.append({"customer_id": customer_id, "return_url": return_url})
        return "https://billing.stripe.test/session"


def sign_webhook(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a ``Stripe-Signature`` header the SDK will accept for ``payload``."""
    timestamp = timestamp if timestamp is not None else int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def webhook_payload(event_type: str, data_object: Dict[str, Any]) -> bytes:
    return json.dumps(
        {
            "id": "evt_test",
            "object": "event",
            "type": event_type,
            "data": {"object": data_object},
        }
    ).encode("utf-8")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "mindplan.db")


@pytest.fixture
def user_repository(db_path) -> UserRepository:
    return UserRepository(db_path)


@pytest.fixture
def subscription_repository(db_path) -> SubscriptionRepository:
    return SubscriptionRepository(db_path)


@pytest.fixture
def fake_stripe() -> FakeStripeService:
    return FakeStripeService()


@pytest.fixture
def subscription_service(subscription_repository, user_repository, fake_stripe, clock) -> SubscriptionService:
    return SubscriptionService(
        subscription_repository,
        user_repository,
        stripe_service=fake_stripe,
        clock=clock,
    )


@pytest.fixture
def finance_service(db_path, subscription_service, clock) -> FinanceService:
    return FinanceService(
        TransactionRepository(db_path),
        BudgetRepository(db_path),
        GoalRepository(db_path),
        subscription_service,
        clock=clock,
    )


@pytest.fixture
def user(user_repository):
    return user_repository.create(email="ana@mindplan.io", password_hash="not-a-real-hash")


@pytest.fixture
def settings(db_path, monkeypatch) -> Settings:
    monkeypatch.setenv("DATABASE_PATH", db_path)
    monkeypatch.setenv("JWT_SECRET", JWT_SECRET)
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setenv("STRIPE_PRICE_PREMIUM_MONTHLY", "price_premium_monthly")
    monkeypatch.setenv("FRONTEND_BASE_URL", "https://app.mindplan.test/")
    monkeypatch.setenv("ADMIN_EMAILS", ADMIN_EMAIL.upper())
    monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)
    return Settings()


@pytest.fixture
def client(settings, fake_stripe, clock):
    app = create_application(settings, stripe_service=fake_stripe, clock=clock)
    with TestClient(app) as test_client:
        yield test_client


def register(client: TestClient, email: str = "user@mindplan.io", password: str = "s3cret-pass") -> Dict[str, Any]:
    """Register through the API and return the login payload plus auth headers."""
    response = client.post(
        "/api/users/register",
        json={"email": email, "password": password, "full_name": "Test User"},
    )
    assert response.status_code == 201, response.text
    body = response.json()
    body["headers"] = {"Authorization": f"Bearer {body['access_token']}"}
    return body


@pytest.fixture
def auth(client) -> Dict[str, Any]:
    return register(client)


@pytest.fixture
def admin_auth(client) -> Dict[str, Any]:
    return register(client, email=ADMIN_EMAIL)
