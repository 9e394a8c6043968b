

class CinemaBookingError(Exception):
    """
    Base exception for all domain-level errors
    inside the Cinema Booking Engine.
    """


class NotFoundError(CinemaBookingError):
    """Raised when a referenced record does not exist."""


class ValidationError(CinemaBookingError):
    """Raised for malformed or missing input."""


class ConflictError(CinemaBookingError):
    """Raised when a request collides with existing state."""


class BusinessRuleError(CinemaBookingError):
    """Raised when a well-formed request is disallowed by current state."""


class InvalidStateTransitionError(BusinessRuleError):
    """
    Raised when an illegal booking state transition is attempted.
    """

    def __init__(self, from_state: str, to_state: str, message: str | None = None):
        self.from_state = from_state
        self.to_state = to_state

        if message is None:
            message = (
                f"Illegal state transition attempted: "
                f"{from_state} -> {to_state}"
            )
        super().__init__(message)


class PastShowtimeError(BusinessRuleError):
    """Raised when a showtime has already started."""


class SeatAlreadyBookedError(ConflictError):
    """Raised when requested seats are held by a completed booking."""

    def __init__(self, seat_ids: list[int]):
        self.seat_ids = seat_ids
        super().__init__("Some seats are already booked")


class DuplicatePaymentError(ConflictError):
    """Raised when a booking already has a payment."""


class PaymentProcessingError(BusinessRuleError):
    """Raised when the payment processor declines a payment."""


class InsufficientPointsError(BusinessRuleError):
    """Raised when a user redeems more points than they hold."""


class VoidWindowExpiredError(BusinessRuleError):
    """Raised when a points transaction is too old to be voided."""
