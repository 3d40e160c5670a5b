import uuid
from datetime import datetime
from models.db import db

ROLE_CUSTOMER = "customer"
ROLE_PROVIDER = "provider"
ROLES = (ROLE_CUSTOMER, ROLE_PROVIDER)

class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(120), nullable=True)

    # customer or provider; a provider can still book other providers' listings
    role = db.Column(db.String(20), nullable=False, default=ROLE_CUSTOMER)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
