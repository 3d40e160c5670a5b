from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.booking import Booking
from models.listing import Listing
from models.user import ROLE_PROVIDER
from security.rbac import require_roles
from services.bookings import create_booking, parse_timestamp
from services.errors import InvalidRequest, SlotUnavailable
from utils.auth_context import login_required
from utils.audit import log_event

booking_bp = Blueprint("booking", __name__)


def _listing_json(listing: Listing) -> dict:
    return {
        "id": listing.id,
        "provider_id": listing.provider_id,
        "title": listing.title,
        "price_cents": listing.price_cents,
        "currency": listing.currency,
        "is_active": listing.is_active,
    }


def _booking_json(b: Booking) -> dict:
    return {
        "id": b.id,
        "listing_id": b.listing_id,
        "customer_id": b.customer_id,
        "provider_id": b.provider_id,
        "start_at": b.start_at.isoformat(),
        "end_at": b.end_at.isoformat(),
        "amount_cents": b.amount_cents,
        "currency": b.currency,
        "status": b.status,
        "payment_reference": b.payment_reference,
    }


# ---------- PROVIDERS: publish a listing ----------
@booking_bp.post("/listings")
@require_roles(ROLE_PROVIDER)
def create_listing():
    data = request.get_json(silent=True) or {}
    title = (data.get("title") or "").strip()
    price_cents = data.get("price_cents")
    currency = (data.get("currency") or current_app.config.get("DEFAULT_CURRENCY", "cad")).strip().lower()

    if not title:
        raise InvalidRequest("title required")
    if not isinstance(price_cents, int) or isinstance(price_cents, bool) or price_cents <= 0:
        raise InvalidRequest("price_cents must be a positive integer")
    if len(currency) != 3 or not currency.isalpha():
        raise InvalidRequest("currency must be a 3-letter ISO code")

    listing = Listing(provider_id=g.user.id, title=title, price_cents=price_cents, currency=currency)
    db.session.add(listing)
    db.session.commit()

    log_event("LISTING_CREATE", user_id=g.user.id, entity="listing", entity_id=listing.id)
    return jsonify(_listing_json(listing)), 201


@booking_bp.get("/listings/<listing_id>")
def get_listing(listing_id: str):
    listing = db.session.get(Listing, listing_id)
    if not listing or not listing.is_active:
        return jsonify(error="Listing not found"), 404
    return jsonify(_listing_json(listing)), 200


# ---------- CUSTOMERS: reserve a slot (DOUBLE-BOOKING SAFE) ----------
@booking_bp.post("/bookings")
@login_required
def reserve_slot():
    data = request.get_json(silent=True) or {}
    listing_id = data.get("listing_id")
    if not listing_id:
        raise InvalidRequest("listing_id required")

    start_at = parse_timestamp(data.get("start_at"))
    end_at = parse_timestamp(data.get("end_at"))

    try:
        booking = create_booking(g.user, str(listing_id), start_at, end_at)
    except SlotUnavailable:
        log_event("BOOKING_FAIL_SLOT_TAKEN", user_id=g.user.id, entity="listing", entity_id=listing_id,
                  metadata={"start_at": start_at.isoformat()})
        raise

    log_event("BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={"listing_id": booking.listing_id, "start_at": booking.start_at.isoformat()})
    return jsonify(_booking_json(booking)), 201


# ---------- CUSTOMER / PROVIDER: booking status ----------
@booking_bp.get("/bookings/<booking_id>")
@login_required
def get_booking(booking_id: str):
    booking = db.session.get(Booking, booking_id)
    if not booking or g.user.id not in (booking.customer_id, booking.provider_id):
        return jsonify(error="Booking not found"), 404
    return jsonify(_booking_json(booking)), 200
