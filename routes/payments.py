from decimal import Decimal

from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.booking import Booking
from services.checkout import initiate_checkout
from services.errors import InvalidBooking, InvalidRequest, PaymentError
from services.gateway import get_gateway
from utils.auth_context import login_required
from utils.audit import log_event
from utils.urls import is_http_url

payments_bp = Blueprint("payments", __name__, url_prefix="/payments")


@payments_bp.post("/checkout")
@login_required
def start_checkout():
    data = request.get_json(silent=True) or {}
    booking_id = data.get("booking_id")
    provider_connect_id = data.get("provider_connect_id")
    success_url = data.get("success_url")
    cancel_url = data.get("cancel_url")

    if not booking_id or not provider_connect_id:
        raise InvalidRequest("booking_id and provider_connect_id are required")
    if not is_http_url(success_url) or not is_http_url(cancel_url):
        raise InvalidRequest("success_url and cancel_url must be absolute http(s) URLs")

    booking_id = str(booking_id)
    booking = db.session.get(Booking, booking_id)
    if booking is not None and booking.customer_id != g.user.id:
        raise InvalidBooking("Booking not found")

    # amount_cents/currency from the client are informational only
    client_amount = data.get("amount_cents")

    try:
        result = initiate_checkout(
            get_gateway(),
            booking_id,
            str(provider_connect_id),
            success_url,
            cancel_url,
            fee_rate=Decimal(str(current_app.config.get("PLATFORM_FEE_RATE", "0.10"))),
        )
    except PaymentError as exc:
        log_event("CHECKOUT_REJECTED", user_id=g.user.id, entity="booking", entity_id=booking_id,
                  metadata={"reason": exc.code})
        raise

    if client_amount is not None and client_amount != result.amount_cents:
        current_app.logger.info(
            "booking %s: client amount %r ignored, charging stored %s", booking_id, client_amount, result.amount_cents,
        )

    log_event("CHECKOUT_SESSION_CREATED", user_id=g.user.id, entity="booking", entity_id=booking_id,
              metadata={
                  "stripe_session_id": result.session_id,
                  "amount_cents": result.amount_cents,
                  "application_fee_cents": result.application_fee_cents,
                  "destination": result.destination_account_id,
              })
    return jsonify(url=result.url), 200
