from datetime import datetime
from models.db import db

class ProviderAccount(db.Model):
    __tablename__ = "provider_accounts"

    provider_id = db.Column(db.String(36), db.ForeignKey("users.id"), primary_key=True)

    # Stripe Connect account, null until onboarding starts
    connect_account_id = db.Column(db.String(255), nullable=True, unique=True, index=True)

    charges_enabled = db.Column(db.Boolean, default=False, nullable=False)
    payouts_enabled = db.Column(db.Boolean, default=False, nullable=False)
    details_submitted = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
