from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR

from flask import current_app

from models import db
from models.booking import Booking, BookingStatus
from services.capabilities import require_charge_capability
from services.errors import DestinationMismatch, InvalidBooking

DEFAULT_FEE_RATE = Decimal("0.10")


@dataclass(frozen=True)
class CheckoutResult:
    session_id: str
    url: str
    amount_cents: int
    currency: str
    application_fee_cents: int
    transfer_cents: int
    destination_account_id: str


def compute_platform_fee(amount_cents: int, fee_rate=DEFAULT_FEE_RATE) -> int:
    """floor(amount_cents * fee_rate), computed in Decimal so 0.10 stays exact."""
    fee = (Decimal(int(amount_cents)) * Decimal(str(fee_rate))).to_integral_value(rounding=ROUND_FLOOR)
    return int(fee)


def initiate_checkout(
    gateway,
    booking_id: str,
    provider_connect_id: str,
    success_url: str,
    cancel_url: str,
    fee_rate=DEFAULT_FEE_RATE,
) -> CheckoutResult:
    # Amount and currency always come from the stored booking
    booking = db.session.get(Booking, booking_id) if booking_id else None
    if booking is None:
        raise InvalidBooking("Booking not found")
    if booking.status != BookingStatus.PENDING:
        raise InvalidBooking(f"Booking is {booking.status}, not pending")

    account = require_charge_capability(booking.provider_id)

    if provider_connect_id != account.connect_account_id:
        raise DestinationMismatch("Destination account does not match the provider's connect account")

    fee = compute_platform_fee(booking.amount_cents, fee_rate)

    session = gateway.create_checkout_session(
        booking_id=booking.id,
        amount_cents=booking.amount_cents,
        currency=booking.currency,
        description="Booking",
        application_fee_cents=fee,
        destination_account_id=account.connect_account_id,
        success_url=success_url,
        cancel_url=cancel_url,
    )

    current_app.logger.info(
        "checkout session %s for booking %s: amount=%s fee=%s destination=%s",
        session.id, booking.id, booking.amount_cents, fee, account.connect_account_id,
    )
    return CheckoutResult(
        session_id=session.id,
        url=session.url,
        amount_cents=booking.amount_cents,
        currency=booking.currency,
        application_fee_cents=fee,
        transfer_cents=booking.amount_cents - fee,
        destination_account_id=account.connect_account_id,
    )
