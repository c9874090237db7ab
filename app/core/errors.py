from typing import Any, Dict


class BookingError(Exception):
    """Base class for errors surfaced to API callers as ErrorResponse payloads."""

    status_code = 400
    kind = "booking_error"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.message, **self.extra}


# Malformed cart item or request (missing id for its item_type, bad slot ref, ...)
class ValidationError(BookingError):
    status_code = 400
    kind = "validation_error"


# Referenced attraction / combo / offer / slot / order does not exist
class NotFoundError(BookingError):
    status_code = 404
    kind = "not_found"


class CapacityConflict(BookingError):
    status_code = 409
    kind = "capacity_conflict"

    def __init__(self, message: str, available: int = 0, requested: int = 0):
        super().__init__(message, available=available, requested=requested)
        self.available = available
        self.requested = requested


# Illegal payment_status transition (e.g. cancelling a Completed order)
class OrderStateError(BookingError):
    status_code = 409
    kind = "invalid_state"


class PaymentGatewayError(BookingError):
    status_code = 502
    kind = "payment_gateway_error"


class NotificationError(BookingError):
    status_code = 502
    kind = "notification_error"
