from flask import Blueprint, jsonify

from .booking import booking_bp
from .payments import payments_bp
from .providers import providers_bp
from .stripe_webhook import webhook_bp

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    return jsonify(status="ok"), 200
