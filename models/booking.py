import uuid
from datetime import datetime
from models.db import db

class BookingStatus:
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"

    ALL = (PENDING, PAID, FAILED, CANCELLED)


class Booking(db.Model):
    __tablename__ = "bookings"

    # Also the correlation id and the checkout idempotency key
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    listing_id = db.Column(db.String(36), db.ForeignKey("listings.id"), nullable=False, index=True)
    customer_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    provider_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)

    # half-open interval [start_at, end_at), naive UTC
    start_at = db.Column(db.DateTime, nullable=False)
    end_at = db.Column(db.DateTime, nullable=False)

    # fixed at creation, never taken from client input afterwards
    amount_cents = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(10), nullable=False, default="cad")

    status = db.Column(db.String(20), nullable=False, default=BookingStatus.PENDING)
    payment_reference = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        # Hard business-rule: one booking per listing start time (prevents double booking)
        db.UniqueConstraint("listing_id", "start_at", name="uq_booking_listing_start"),
        db.CheckConstraint("status IN ('pending', 'paid', 'failed', 'cancelled')", name="ck_booking_status"),
    )
