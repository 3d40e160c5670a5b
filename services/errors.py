"""Error taxonomy for the booking/payment protocol.

Every error carries a reason ``code`` (returned to the caller as ``error``)
and the HTTP ``status`` it maps to.
"""


class PaymentError(Exception):
    code = "PaymentError"
    status = 400

    def __init__(self, message=None):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self):
        return {"error": self.code, "message": self.message}


class InvalidRequest(PaymentError):
    code = "InvalidRequest"


class NotFound(PaymentError):
    code = "NotFound"
    status = 404


class InvalidBooking(PaymentError):
    code = "InvalidBooking"


class ProviderNotConnected(PaymentError):
    code = "ProviderNotConnected"


class ProviderNotReady(PaymentError):
    code = "ProviderNotReady"
    status = 409


class DestinationMismatch(PaymentError):
    code = "DestinationMismatch"


class AccountMismatch(PaymentError):
    code = "AccountMismatch"
    status = 409


class SlotUnavailable(PaymentError):
    code = "SlotUnavailable"
    status = 409


class InvalidSignature(PaymentError):
    code = "InvalidSignature"


class PaymentInitiationFailed(PaymentError):
    code = "PaymentInitiationFailed"
    status = 502


class ProcessorUnavailable(PaymentError):
    code = "ProcessorUnavailable"
    status = 502


class ConfigurationError(PaymentError):
    code = "ConfigurationError"
    status = 500
