from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking, BookingStatus
from models.listing import Listing
from services.errors import InvalidRequest, NotFound, SlotUnavailable


def parse_timestamp(value) -> datetime:
    """ISO-8601 -> naive UTC, so the (listing, start) key compares consistently."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest("Timestamp required")
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise InvalidRequest(f"Invalid datetime {value!r}. Use ISO e.g. 2026-01-20T18:00:00Z") from exc
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def create_booking(customer, listing_id: str, start_at: datetime, end_at: datetime) -> Booking:
    """Insert a pending booking; the store's unique key decides races for the slot."""
    listing = db.session.get(Listing, listing_id) if listing_id else None
    if listing is None or not listing.is_active:
        raise NotFound("Listing not found")
    if listing.provider_id == customer.id:
        raise InvalidRequest("Providers cannot book their own listing")
    if end_at <= start_at:
        raise InvalidRequest("end_at must be after start_at")
    if start_at <= datetime.utcnow():
        raise InvalidRequest("Cannot book past/started slots")

    booking = Booking(
        listing_id=listing.id,
        customer_id=customer.id,
        provider_id=listing.provider_id,
        start_at=start_at,
        end_at=end_at,
        amount_cents=listing.price_cents,
        currency=listing.currency,
        status=BookingStatus.PENDING,
    )
    db.session.add(booking)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        # Unique constraint uq_booking_listing_start triggers here
        raise SlotUnavailable("Slot already booked") from exc
    return booking
