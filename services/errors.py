class BookingError(Exception):
    """Base for every failure a service reports back to its caller.

    ``kind`` is the stable tag the API returns next to the message so clients
    can branch on it without parsing text.
    """

    kind = "error"
    status_code = 400

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict:
        out = {"error": self.message, "kind": self.kind}
        if self.details:
            out["details"] = self.details
        return out


class ValidationError(BookingError):
    kind = "validation_error"
    status_code = 400


class Unauthorized(BookingError):
    kind = "unauthorized"
    status_code = 403


class FieldNotFound(BookingError):
    kind = "field_not_found"
    status_code = 404


class SlotNotFound(BookingError):
    kind = "slot_not_found"
    status_code = 404


class ReservationNotFound(BookingError):
    kind = "reservation_not_found"
    status_code = 404


class SlotAlreadyReserved(BookingError):
    kind = "slot_already_reserved"
    status_code = 409


class StoreUnavailable(BookingError):
    kind = "store_unavailable"
    status_code = 503
