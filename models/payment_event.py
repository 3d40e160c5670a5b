from datetime import datetime
from models.db import db

class PaymentEvent(db.Model):
    """One row per distinct Stripe webhook event; the primary key is the dedup boundary."""
    __tablename__ = "payment_events"

    event_id = db.Column(db.String(255), primary_key=True)  # e.g. evt_1Abc...
    type = db.Column(db.String(120), nullable=False)       # e.g. checkout.session.completed
    payload = db.Column(db.Text, nullable=False)
    received_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
