import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
import stripe

from app import create_app
from config import TestConfig
from models import db
from models.booking import Booking, BookingStatus
from models.listing import Listing
from models.provider_account import ProviderAccount
from models.user import User
from security.session import create_session

WEBHOOK_SECRET = TestConfig.STRIPE_WEBHOOK_SECRET


class FakeStripe:
    """Stands in for the Stripe HTTP API, honouring idempotency keys like Stripe does."""

    def __init__(self):
        self.sessions_by_key = {}
        self.session_calls = []
        self.accounts = {}
        self.account_links = []
        self.checkout_error = None

    def create_checkout_session(self, **params):
        self.session_calls.append(params)
        if self.checkout_error is not None:
            raise self.checkout_error
        key = params.get("idempotency_key")
        if key and key in self.sessions_by_key:
            return self.sessions_by_key[key]
        n = len(self.sessions_by_key) + 1
        session = SimpleNamespace(id=f"cs_test_{n}", url=f"https://checkout.stripe.test/c/pay/cs_test_{n}")
        if key:
            self.sessions_by_key[key] = session
        return session

    def add_account(self, account_id, charges_enabled=False, payouts_enabled=False, details_submitted=False):
        acct = SimpleNamespace(
            id=account_id,
            charges_enabled=charges_enabled,
            payouts_enabled=payouts_enabled,
            details_submitted=details_submitted,
        )
        self.accounts[account_id] = acct
        return acct

    def create_account(self, **params):
        return self.add_account(f"acct_new{len(self.accounts) + 1}")

    def retrieve_account(self, account_id, **params):
        if account_id not in self.accounts:
            raise stripe.InvalidRequestError(f"No such account: '{account_id}'", "account")
        return self.accounts[account_id]

    def create_account_link(self, **params):
        self.account_links.append(params)
        return SimpleNamespace(url=f"https://connect.stripe.test/setup/{params['account']}")


@pytest.fixture
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    monkeypatch.setattr(stripe.checkout.Session, "create", fake.create_checkout_session)
    monkeypatch.setattr(stripe.Account, "create", fake.create_account)
    monkeypatch.setattr(stripe.Account, "retrieve", fake.retrieve_account)
    monkeypatch.setattr(stripe.AccountLink, "create", fake.create_account_link)
    return fake


@pytest.fixture
def app(fake_stripe):
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(email, role="customer"):
    user = User(email=email, role=role)
    db.session.add(user)
    db.session.commit()
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {create_session(user.id)}"}


def reload(model, pk):
    db.session.expire_all()
    return db.session.get(model, pk)


@pytest.fixture
def provider(app):
    user = make_user("provider@example.com", role="provider")
    db.session.add(ProviderAccount(
        provider_id=user.id,
        connect_account_id="acct_X",
        charges_enabled=True,
        payouts_enabled=True,
        details_submitted=True,
    ))
    db.session.commit()
    return user


@pytest.fixture
def customer(app):
    return make_user("customer@example.com")


@pytest.fixture
def listing(provider):
    row = Listing(provider_id=provider.id, title="Studio hour", price_cents=5000, currency="cad")
    db.session.add(row)
    db.session.commit()
    return row


@pytest.fixture
def booking(listing, customer):
    start = datetime.utcnow().replace(microsecond=0) + timedelta(days=3)
    row = Booking(
        id="b1",
        listing_id=listing.id,
        customer_id=customer.id,
        provider_id=listing.provider_id,
        start_at=start,
        end_at=start + timedelta(hours=1),
        amount_cents=5000,
        currency="cad",
        status=BookingStatus.PENDING,
    )
    db.session.add(row)
    db.session.commit()
    return row


def sign_payload(payload: bytes, secret=WEBHOOK_SECRET, timestamp=None) -> str:
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.".encode("utf-8") + payload
    sig = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def completion_event(event_id, booking_id, payment_intent="pi_123", event_type="checkout.session.completed",
                     payment_status="paid"):
    session = {
        "id": "cs_test_1",
        "object": "checkout.session",
        "client_reference_id": booking_id,
        "metadata": {"booking_id": booking_id} if booking_id else {},
        "payment_intent": payment_intent,
        "payment_status": payment_status,
    }
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": session},
    }).encode("utf-8")
