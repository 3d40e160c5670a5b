from .db import db
from .user import User
from .session import Session
from .audit_log import AuditLog
from .listing import Listing
from .booking import Booking, BookingStatus
from .provider_account import ProviderAccount
from .payment_event import PaymentEvent
