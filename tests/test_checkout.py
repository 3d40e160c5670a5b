from decimal import Decimal

import pytest
import stripe

from conftest import auth_headers, make_user, reload
from models import db
from models.booking import Booking, BookingStatus
from models.provider_account import ProviderAccount
from services.checkout import compute_platform_fee, initiate_checkout
from services.errors import ProviderNotReady
from services.gateway import get_gateway


def _checkout_body(**overrides):
    body = {
        "amount_cents": 5000,
        "currency": "cad",
        "provider_connect_id": "acct_X",
        "booking_id": "b1",
        "success_url": "https://market.example.com/bookings/b1/success",
        "cancel_url": "https://market.example.com/listing/l1",
    }
    body.update(overrides)
    return body


def test_checkout_uses_stored_amount_and_fee_split(client, booking, customer, fake_stripe):
    resp = client.post("/payments/checkout", json=_checkout_body(), headers=auth_headers(customer))

    assert resp.status_code == 200
    assert resp.get_json()["url"] == "https://checkout.stripe.test/c/pay/cs_test_1"

    params = fake_stripe.session_calls[0]
    assert params["line_items"][0]["price_data"]["unit_amount"] == 5000
    assert params["payment_intent_data"]["application_fee_amount"] == 500
    assert params["payment_intent_data"]["transfer_data"] == {"destination": "acct_X"}
    assert params["client_reference_id"] == "b1"
    assert params["idempotency_key"] == "b1"
    assert params["api_key"] == "sk_test_dummy"


def test_checkout_leaves_booking_pending(client, booking, customer):
    client.post("/payments/checkout", json=_checkout_body(), headers=auth_headers(customer))

    assert reload(Booking, "b1").status == BookingStatus.PENDING


def test_checkout_ignores_client_amount(client, booking, customer, fake_stripe):
    resp = client.post("/payments/checkout", json=_checkout_body(amount_cents=1, currency="usd"),
                       headers=auth_headers(customer))

    assert resp.status_code == 200
    price = fake_stripe.session_calls[0]["line_items"][0]["price_data"]
    assert price["unit_amount"] == 5000
    assert price["currency"] == "cad"


def test_wrong_destination_is_rejected(client, booking, customer, fake_stripe):
    resp = client.post("/payments/checkout", json=_checkout_body(provider_connect_id="acct_Y"),
                       headers=auth_headers(customer))

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "DestinationMismatch"
    assert fake_stripe.session_calls == []


def test_provider_without_charges_is_rejected(client, booking, customer, provider, fake_stripe):
    account = db.session.get(ProviderAccount, provider.id)
    account.charges_enabled = False
    db.session.commit()

    resp = client.post("/payments/checkout", json=_checkout_body(), headers=auth_headers(customer))

    assert resp.status_code == 409
    assert resp.get_json()["error"] == "ProviderNotReady"
    assert fake_stripe.session_calls == []


def test_provider_without_connect_account_is_rejected(client, booking, customer, provider, fake_stripe):
    account = db.session.get(ProviderAccount, provider.id)
    account.connect_account_id = None
    db.session.commit()

    resp = client.post("/payments/checkout", json=_checkout_body(), headers=auth_headers(customer))

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "ProviderNotConnected"
    assert fake_stripe.session_calls == []


@pytest.mark.parametrize("status", [BookingStatus.PAID, BookingStatus.FAILED, BookingStatus.CANCELLED])
def test_non_pending_booking_is_rejected(client, booking, customer, fake_stripe, status):
    booking.status = status
    db.session.commit()

    resp = client.post("/payments/checkout", json=_checkout_body(), headers=auth_headers(customer))

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "InvalidBooking"
    assert fake_stripe.session_calls == []


def test_unknown_booking_is_rejected(client, customer):
    resp = client.post("/payments/checkout", json=_checkout_body(booking_id="nope"), headers=auth_headers(customer))

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "InvalidBooking"


def test_repeated_checkout_returns_same_session(client, booking, customer, fake_stripe):
    headers = auth_headers(customer)
    urls = {
        client.post("/payments/checkout", json=_checkout_body(), headers=headers).get_json()["url"]
        for _ in range(3)
    }

    assert len(urls) == 1
    assert len(fake_stripe.session_calls) == 3
    assert {c["idempotency_key"] for c in fake_stripe.session_calls} == {"b1"}
    assert len(fake_stripe.sessions_by_key) == 1


def test_processor_failure_is_generic_502(client, booking, customer, fake_stripe):
    fake_stripe.checkout_error = stripe.APIConnectionError("network down")

    resp = client.post("/payments/checkout", json=_checkout_body(), headers=auth_headers(customer))

    assert resp.status_code == 502
    assert resp.get_json()["error"] == "PaymentInitiationFailed"


def test_other_customer_cannot_pay_booking(client, booking, fake_stripe):
    stranger = make_user("stranger@example.com")

    resp = client.post("/payments/checkout", json=_checkout_body(), headers=auth_headers(stranger))

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "InvalidBooking"
    assert fake_stripe.session_calls == []


def test_checkout_requires_login(client, booking):
    resp = client.post("/payments/checkout", json=_checkout_body())
    assert resp.status_code == 401


def test_checkout_rejects_missing_fields(client, booking, customer):
    resp = client.post("/payments/checkout", json=_checkout_body(success_url="javascript:alert(1)"),
                       headers=auth_headers(customer))
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "InvalidRequest"

    resp = client.post("/payments/checkout", json=_checkout_body(provider_connect_id=None),
                       headers=auth_headers(customer))
    assert resp.status_code == 400


def test_initiate_checkout_reports_transfer_amount(app, booking):
    result = initiate_checkout(get_gateway(), "b1", "acct_X", "https://a.test/ok", "https://a.test/cancel")

    assert result.amount_cents == 5000
    assert result.application_fee_cents == 500
    assert result.transfer_cents == 4500
    assert result.destination_account_id == "acct_X"


def test_initiate_checkout_accepts_injected_gateway(app, booking):
    class RefusingGateway:
        def create_checkout_session(self, **kwargs):
            raise AssertionError("must not be called")

    account = db.session.get(ProviderAccount, booking.provider_id)
    account.charges_enabled = False
    db.session.commit()

    with pytest.raises(ProviderNotReady):
        initiate_checkout(RefusingGateway(), "b1", "acct_X", "https://a.test/ok", "https://a.test/cancel")


@pytest.mark.parametrize("amount, fee", [(5000, 500), (999, 99), (1, 0), (10, 1), (12345, 1234)])
def test_platform_fee_is_floored(amount, fee):
    assert compute_platform_fee(amount) == fee
    assert compute_platform_fee(amount, Decimal("0.10")) == fee
