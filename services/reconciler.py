"""Applies Stripe payment notifications to bookings exactly once.

Order of operations per delivery:

1. signature check (nothing happens before it succeeds)
2. insert-if-absent of the event id into ``payment_events``; a primary-key
   conflict means the event was already handled
3. for a completed payment, a single conditional UPDATE moves the booking
   from ``pending`` to ``paid``

Failures after step 2 are logged and swallowed: the sender gets an
acknowledgement once the event is verified and recorded.
"""
from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import db
from models.booking import Booking, BookingStatus
from models.payment_event import PaymentEvent
from utils.audit import log_event

SESSION_COMPLETED = "checkout.session.completed"
ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"

# checkout.session.completed with payment_status "unpaid" is a delayed
# payment method; async_payment_succeeded follows once funds arrive.
SETTLED_PAYMENT_STATUSES = ("paid", "no_payment_required")


@dataclass(frozen=True)
class ReconcileOutcome:
    event_id: str
    event_type: str
    duplicate: bool = False
    booking_id: str = None
    applied: bool = False


def record_event(event) -> bool:
    """Insert the dedup row. False means the event id was already stored."""
    db.session.add(PaymentEvent(event_id=event.id, type=event.type, payload=event.payload))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return False
    return True


def is_payment_completion(event) -> bool:
    if event.type == ASYNC_PAYMENT_SUCCEEDED:
        return True
    if event.type == SESSION_COMPLETED:
        status = event.data_object.get("payment_status")
        return status is None or status in SETTLED_PAYMENT_STATUSES
    return False


def correlation_id(session: dict):
    meta = session.get("metadata") or {}
    return session.get("client_reference_id") or meta.get("booking_id")


def payment_reference(session: dict):
    intent = session.get("payment_intent")
    if isinstance(intent, dict):
        intent = intent.get("id")
    return intent or session.get("id")


def mark_booking_paid(booking_id: str, reference: str) -> bool:
    """Conditional pending -> paid transition. True if this call applied it."""
    updated = (
        Booking.query
        .filter_by(id=booking_id, status=BookingStatus.PENDING)
        .update(
            {
                Booking.status: BookingStatus.PAID,
                Booking.payment_reference: reference,
                Booking.paid_at: datetime.utcnow(),
            },
            synchronize_session=False,
        )
    )
    db.session.commit()
    return updated == 1


def _apply_completion(event, booking_id):
    reference = payment_reference(event.data_object)
    if mark_booking_paid(booking_id, reference):
        current_app.logger.info("booking %s paid (event %s, reference %s)", booking_id, event.id, reference)
        log_event("BOOKING_PAID", entity="booking", entity_id=booking_id,
                  metadata={"event_id": event.id, "payment_reference": reference})
        return True

    booking = db.session.get(Booking, booking_id)
    if booking is None:
        current_app.logger.warning("event %s references unknown booking %s", event.id, booking_id)
        log_event("BOOKING_PAID_UNMATCHED", entity="payment_event", entity_id=event.id,
                  metadata={"booking_id": booking_id, "payment_reference": reference})
    else:
        current_app.logger.warning(
            "event %s for booking %s ignored: booking is %s", event.id, booking_id, booking.status,
        )
    return False


def reconcile_event(gateway, payload: bytes, signature) -> ReconcileOutcome:
    event = gateway.verify_event(payload, signature)

    if not record_event(event):
        current_app.logger.info("duplicate delivery of event %s ignored", event.id)
        log_event("WEBHOOK_DUPLICATE", entity="payment_event", entity_id=event.id)
        return ReconcileOutcome(event_id=event.id, event_type=event.type, duplicate=True)

    if not is_payment_completion(event):
        return ReconcileOutcome(event_id=event.id, event_type=event.type)

    booking_id = correlation_id(event.data_object)
    if not booking_id:
        current_app.logger.info("event %s carries no booking correlation id", event.id)
        return ReconcileOutcome(event_id=event.id, event_type=event.type)

    try:
        applied = _apply_completion(event, booking_id)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("failed to apply event %s to booking %s", event.id, booking_id)
        applied = False

    return ReconcileOutcome(event_id=event.id, event_type=event.type, booking_id=booking_id, applied=applied)
