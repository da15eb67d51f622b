import os
from datetime import timedelta
from types import SimpleNamespace
from typing import Dict

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-casaora")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("PAYPAL_WEBHOOK_ID", "WH-TEST")
os.environ.setdefault("CHECKR_WEBHOOK_SECRET", "checkr-test-secret")
os.environ.setdefault("TRUORA_WEBHOOK_SECRET", "truora-test-secret")
os.environ.setdefault("CRON_SECRET", "cron-test-secret")
os.environ.setdefault("SANITY_PROJECT_ID", "testproj")
os.environ.setdefault("SANITY_PREVIEW_SECRET", "preview-test-secret")

from app.core.security import create_access_token, get_password_hash  # noqa: E402
from app.db.models import (  # noqa: E402
    Booking, BookingStatus, CountryCode, CurrencyCode, CustomerProfile, PaymentProcessor,
    ProfessionalProfile, Profile, UserRole, utcnow
)
from app.db.session import Base, get_db  # noqa: E402
from app.main import app as casaora_app  # noqa: E402
from app.services.paypal_client import paypal_client  # noqa: E402
from app.services.stripe_gateway import stripe_gateway  # noqa: E402


@pytest.fixture()
def engine():
    """
    In-memory SQLite shared by the test and the app through a single connection.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture()
def client(db):
    """
    TestClient whose requests run on the test session, with the same
    commit-or-rollback behaviour as app.db.session.get_db.
    """
    def override_get_db():
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    casaora_app.dependency_overrides[get_db] = override_get_db
    yield TestClient(casaora_app)
    casaora_app.dependency_overrides.clear()


def _make_user(db, email: str, role: UserRole, country: CountryCode = CountryCode.CO, **profile_fields) -> Profile:
    user = Profile(
        email=email,
        full_name=email.split("@")[0].title(),
        hashed_password=get_password_hash("password123"),
        role=role,
        country=country,
        is_active=True,
    )
    db.add(user)
    db.flush()
    if role == UserRole.PROFESSIONAL:
        db.add(ProfessionalProfile(profile_id=user.id, **profile_fields))
    elif role == UserRole.CUSTOMER:
        db.add(CustomerProfile(profile_id=user.id))
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def make_user(db):
    def factory(email: str, role: UserRole = UserRole.CUSTOMER, country: CountryCode = CountryCode.CO, **fields):
        return _make_user(db, email, role, country, **fields)
    return factory


@pytest.fixture()
def customer(make_user) -> Profile:
    return make_user("maria@example.com", UserRole.CUSTOMER)


@pytest.fixture()
def other_customer(make_user) -> Profile:
    return make_user("jorge@example.com", UserRole.CUSTOMER)


@pytest.fixture()
def professional(make_user) -> Profile:
    return make_user(
        "lucia@example.com",
        UserRole.PROFESSIONAL,
        city="Bogota",
        primary_services=["cleaning", "laundry"],
        stripe_account_id="acct_test_123",
        instant_payout_enabled=True,
    )


@pytest.fixture()
def admin(make_user) -> Profile:
    return make_user("admin@casaora.co", UserRole.ADMIN)


def auth_headers(user: Profile) -> Dict[str, str]:
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def headers_for():
    return auth_headers


@pytest.fixture()
def make_booking(db, customer, professional):
    """
    Insert a booking directly in the given status with a Stripe authorization.
    """
    def factory(
        status: BookingStatus = BookingStatus.CONFIRMED,
        hours_ahead: float = 48,
        amount: int = 10_000_000,
        **fields
    ) -> Booking:
        start = utcnow() + timedelta(hours=hours_ahead)
        values = dict(
            customer_id=customer.id,
            professional_id=professional.id,
            service_name="Deep cleaning",
            status=status,
            scheduled_start=start,
            duration_minutes=120,
            scheduled_end=start + timedelta(minutes=120),
            address={"street": "Calle 93 #11-27", "city": "Bogota", "latitude": 4.676, "longitude": -74.048},
            country=CountryCode.CO,
            currency=CurrencyCode.COP,
            payment_processor=PaymentProcessor.STRIPE,
            amount_estimated=amount,
            service_fee=amount * 15 // 100,
            amount_authorized=amount + amount * 15 // 100,
            stripe_payment_intent_id="pi_test_123",
        )
        values.update(fields)
        booking = Booking(**values)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking
    return factory


class FakeStripe:
    """Records gateway calls and returns Stripe-like objects"""

    def __init__(self):
        self.calls = []
        self.fail_on = set()

    def _record(self, name, **kwargs):
        self.calls.append((name, kwargs))
        if name in self.fail_on:
            from app.core.exceptions import PaymentProcessorError
            raise PaymentProcessorError(f"Payment processor error during {name}", {"processor": "stripe"})

    def count(self, name: str) -> int:
        return len([c for c in self.calls if c[0] == name])

    def create_customer(self, email, name, profile_id):
        self._record("create_customer", email=email)
        return SimpleNamespace(id=f"cus_{profile_id}")

    def create_payment_intent(self, amount, currency, customer_id, booking_id, metadata=None):
        self._record("create_payment_intent", amount=amount, currency=currency, booking_id=booking_id)
        return SimpleNamespace(
            id=f"pi_booking_{booking_id}", object="payment_intent", status="requires_payment_method",
            amount=amount, client_secret=f"pi_booking_{booking_id}_secret_abc"
        )

    def capture_payment_intent(self, payment_intent_id, amount_to_capture, idempotency_key):
        self._record("capture", payment_intent_id=payment_intent_id, amount=amount_to_capture, key=idempotency_key)
        return SimpleNamespace(id=payment_intent_id, object="payment_intent", status="succeeded", amount=amount_to_capture)

    def cancel_payment_intent(self, payment_intent_id, idempotency_key, reason="requested_by_customer"):
        self._record("void", payment_intent_id=payment_intent_id, key=idempotency_key)
        return SimpleNamespace(id=payment_intent_id, object="payment_intent", status="canceled", amount=None)

    def create_refund(self, payment_intent_id, amount, idempotency_key, reason="requested_by_customer"):
        self._record("refund", payment_intent_id=payment_intent_id, amount=amount, key=idempotency_key)
        return SimpleNamespace(id=f"re_{len(self.calls)}", object="refund", status="succeeded", amount=amount)

    def list_payment_methods(self, customer_id):
        self._record("list_payment_methods", customer_id=customer_id)
        return [{"id": "pm_1", "brand": "visa", "last4": "4242", "exp_month": 12, "exp_year": 2030}]

    def create_instant_payout(self, stripe_account_id, amount, currency, idempotency_key, metadata):
        self._record("instant_payout", account=stripe_account_id, amount=amount, key=idempotency_key)
        return SimpleNamespace(id=f"po_{metadata['transfer_id']}", status="pending")

    def create_transfer(self, destination_account_id, amount, currency, idempotency_key, metadata):
        self._record("transfer", account=destination_account_id, amount=amount, currency=currency, key=idempotency_key)
        return SimpleNamespace(id=f"tr_{metadata['transfer_id']}", object="transfer", amount=amount)


@pytest.fixture()
def fake_stripe(monkeypatch) -> FakeStripe:
    fake = FakeStripe()
    for name in (
        "create_customer", "create_payment_intent", "capture_payment_intent", "cancel_payment_intent",
        "create_refund", "list_payment_methods", "create_instant_payout", "create_transfer",
    ):
        monkeypatch.setattr(stripe_gateway, name, getattr(fake, name))
    return fake


@pytest.fixture()
def fake_paypal(monkeypatch):
    calls = []

    def create_order(booking_id, amount, currency, description):
        calls.append(("create_order", amount))
        return {"id": f"ORDER-{booking_id}", "status": "CREATED",
                "links": [{"rel": "approve", "href": f"https://paypal.test/approve/{booking_id}"}]}

    def authorize_order(order_id, booking_id):
        calls.append(("authorize_order", order_id))
        return {"id": order_id, "status": "COMPLETED",
                "purchase_units": [{"payments": {"authorizations": [{"id": f"AUTH-{booking_id}"}]}}]}

    def verify_webhook_signature(headers, event):
        calls.append(("verify", event.get("id")))

    def create_payout(sender_batch_id, sender_item_id, receiver_email, amount, currency, note):
        calls.append(("create_payout", sender_batch_id, sender_item_id, receiver_email, amount))
        return {"batch_header": {"payout_batch_id": f"BATCH-{sender_item_id}", "batch_status": "PENDING"}}

    monkeypatch.setattr(paypal_client, "create_order", create_order)
    monkeypatch.setattr(paypal_client, "authorize_order", authorize_order)
    monkeypatch.setattr(paypal_client, "verify_webhook_signature", verify_webhook_signature)
    monkeypatch.setattr(paypal_client, "create_payout", create_payout)
    return calls
