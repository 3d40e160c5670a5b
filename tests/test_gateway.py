import pytest

from conftest import sign_payload
from services.errors import ConfigurationError, InvalidRequest, InvalidSignature
from services.gateway import StripeGateway


def test_gateway_without_key_refuses_to_call_stripe(fake_stripe):
    gateway = StripeGateway(api_key=None)

    with pytest.raises(ConfigurationError):
        gateway.create_account()
    assert fake_stripe.accounts == {}


def test_gateway_pins_api_version(fake_stripe):
    gateway = StripeGateway(api_key="sk_test_x", api_version="2024-06-20")

    gateway.create_checkout_session(
        booking_id="b9", amount_cents=100, currency="CAD", description="Booking",
        application_fee_cents=10, destination_account_id="acct_X",
        success_url="https://a.test/ok", cancel_url="https://a.test/no",
    )

    params = fake_stripe.session_calls[0]
    assert params["stripe_version"] == "2024-06-20"
    assert params["line_items"][0]["price_data"]["currency"] == "cad"


def test_retrieve_unknown_account_is_client_error(fake_stripe):
    with pytest.raises(InvalidRequest):
        StripeGateway(api_key="sk_test_x").retrieve_account("acct_missing")


def test_verify_event_returns_parsed_event():
    payload = b'{"id": "evt_1", "type": "checkout.session.completed", "data": {"object": {"id": "cs_1"}}}'
    gateway = StripeGateway(webhook_secret="whsec_test_secret")

    event = gateway.verify_event(payload, sign_payload(payload))

    assert event.id == "evt_1"
    assert event.type == "checkout.session.completed"
    assert event.data_object == {"id": "cs_1"}


def test_verify_event_rejects_signed_payload_without_id():
    payload = b'{"type": "ping"}'
    gateway = StripeGateway(webhook_secret="whsec_test_secret")

    with pytest.raises(InvalidSignature):
        gateway.verify_event(payload, sign_payload(payload))
