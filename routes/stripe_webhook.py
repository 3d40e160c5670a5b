from flask import Blueprint, request, jsonify

from services.errors import InvalidSignature
from services.gateway import get_gateway
from services.reconciler import reconcile_event
from utils.audit import log_event

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")


@webhook_bp.post("/stripe")
def stripe_webhook():
    sig_header = request.headers.get("Stripe-Signature")
    payload = request.get_data()

    try:
        outcome = reconcile_event(get_gateway(), payload, sig_header)
    except InvalidSignature as exc:
        log_event("WEBHOOK_SIGNATURE_INVALID", entity="webhook", metadata={"reason": exc.message})
        raise

    if outcome.duplicate:
        return jsonify(received=True, duplicate=True), 200
    return jsonify(received=True), 200
