"""Stripe Connect boundary.

A ``StripeGateway`` is built once per app from config and stored on
``app.extensions["payment_gateway"]``. Services receive it as an argument, so
tests can hand them a different gateway without touching process-wide Stripe
state (``stripe.api_key`` is never set).
"""
import json
from dataclasses import dataclass

import stripe
from flask import current_app

from services.errors import (
    ConfigurationError,
    InvalidRequest,
    InvalidSignature,
    PaymentInitiationFailed,
    ProcessorUnavailable,
)

EXTENSION_KEY = "payment_gateway"


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


@dataclass(frozen=True)
class ConnectAccount:
    id: str
    charges_enabled: bool
    payouts_enabled: bool
    details_submitted: bool


@dataclass(frozen=True)
class VerifiedEvent:
    """A webhook event whose signature has been checked."""
    id: str
    type: str
    data_object: dict
    payload: str


def _to_account(acct) -> ConnectAccount:
    return ConnectAccount(
        id=acct.id,
        charges_enabled=bool(getattr(acct, "charges_enabled", False)),
        payouts_enabled=bool(getattr(acct, "payouts_enabled", False)),
        details_submitted=bool(getattr(acct, "details_submitted", False)),
    )


class StripeGateway:
    def __init__(self, api_key=None, api_version=None, webhook_secret=None, webhook_tolerance=300):
        self.api_key = api_key
        self.api_version = api_version
        self.webhook_secret = webhook_secret
        self.webhook_tolerance = webhook_tolerance

    def _options(self) -> dict:
        if not self.api_key:
            raise ConfigurationError("Stripe secret key missing (STRIPE_SECRET_KEY)")
        opts = {"api_key": self.api_key}
        if self.api_version:
            opts["stripe_version"] = self.api_version
        return opts

    # ---------- checkout ----------
    def create_checkout_session(
        self,
        *,
        booking_id: str,
        amount_cents: int,
        currency: str,
        description: str,
        application_fee_cents: int,
        destination_account_id: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """Open a destination-charge Checkout session, idempotently keyed on the booking id."""
        opts = self._options()
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                client_reference_id=booking_id,
                line_items=[{
                    "price_data": {
                        "currency": currency.lower(),
                        "product_data": {"name": description},
                        "unit_amount": amount_cents,
                    },
                    "quantity": 1,
                }],
                payment_intent_data={
                    "application_fee_amount": application_fee_cents,
                    "transfer_data": {"destination": destination_account_id},
                },
                success_url=success_url,
                cancel_url=cancel_url,
                metadata={"booking_id": booking_id},
                idempotency_key=booking_id,
                **opts,
            )
        except stripe.StripeError as exc:
            raise PaymentInitiationFailed(f"Could not open checkout session: {exc.user_message or exc}") from exc

        return CheckoutSession(id=session.id, url=session.url)

    # ---------- connect accounts ----------
    def create_account(self) -> ConnectAccount:
        opts = self._options()
        try:
            acct = stripe.Account.create(type="express", **opts)
        except stripe.StripeError as exc:
            raise ProcessorUnavailable(f"Could not create connect account: {exc.user_message or exc}") from exc
        return _to_account(acct)

    def retrieve_account(self, account_id: str) -> ConnectAccount:
        opts = self._options()
        try:
            acct = stripe.Account.retrieve(account_id, **opts)
        except stripe.InvalidRequestError as exc:
            raise InvalidRequest(f"Unknown connect account {account_id}") from exc
        except stripe.StripeError as exc:
            raise ProcessorUnavailable(f"Could not retrieve connect account: {exc.user_message or exc}") from exc
        return _to_account(acct)

    def create_account_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        opts = self._options()
        try:
            link = stripe.AccountLink.create(
                account=account_id,
                refresh_url=refresh_url,
                return_url=return_url,
                type="account_onboarding",
                **opts,
            )
        except stripe.StripeError as exc:
            raise ProcessorUnavailable(f"Could not create onboarding link: {exc.user_message or exc}") from exc
        return link.url

    # ---------- webhooks ----------
    def verify_event(self, payload: bytes, signature) -> VerifiedEvent:
        if not self.webhook_secret:
            raise ConfigurationError("Webhook secret not configured")
        if not signature:
            raise InvalidSignature("Missing Stripe-Signature header")

        try:
            text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as exc:
            raise InvalidSignature("Payload is not valid UTF-8") from exc

        try:
            stripe.WebhookSignature.verify_header(text, signature, self.webhook_secret, self.webhook_tolerance)
        except stripe.SignatureVerificationError as exc:
            raise InvalidSignature("Invalid webhook signature") from exc

        try:
            data = json.loads(text)
        except ValueError as exc:
            raise InvalidSignature("Malformed webhook payload") from exc

        event_id = data.get("id") if isinstance(data, dict) else None
        if not event_id:
            raise InvalidSignature("Webhook payload has no event id")

        obj = (data.get("data") or {}).get("object") or {}
        return VerifiedEvent(id=event_id, type=data.get("type") or "", data_object=obj, payload=text)


def init_gateway(app, gateway=None):
    if gateway is None:
        gateway = StripeGateway(
            api_key=app.config.get("STRIPE_SECRET_KEY"),
            api_version=app.config.get("STRIPE_API_VERSION"),
            webhook_secret=app.config.get("STRIPE_WEBHOOK_SECRET"),
            webhook_tolerance=app.config.get("STRIPE_WEBHOOK_TOLERANCE_SECONDS", 300),
        )
    app.extensions[EXTENSION_KEY] = gateway
    return gateway


def get_gateway() -> StripeGateway:
    return current_app.extensions[EXTENSION_KEY]
