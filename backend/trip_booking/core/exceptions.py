"""
Error taxonomy for the booking core.

Every error carries a machine-readable `code` and the HTTP status the API
layer renders it with. Services raise these; only the FastAPI exception
handler in main.py turns them into responses.
"""

from typing import Optional

from fastapi import status


class BookingError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "BOOKING_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code


class ValidationError(BookingError):
    """Malformed input, rejected before any hold is acquired."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_ERROR"


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ConflictError(BookingError):
    """Insufficient seats, or a state transition whose precondition is unmet."""

    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class InternalError(BookingError):
    """Storage or transport failure inside an atomic unit."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"


def insufficient_seats(requested: int, available: int) -> ConflictError:
    return ConflictError(
        f"Not enough seats. Requested: {requested}, Available: {available}",
        code="INSUFFICIENT_SEATS",
    )


def not_published(trip_id: int) -> ConflictError:
    return ConflictError(
        f"Trip {trip_id} is not available for booking",
        code="NOT_PUBLISHED",
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def already_terminal(booking_id: int, state: str) -> ConflictError:
    return ConflictError(
        f"Cannot cancel booking {booking_id}: already {state}",
        code="ALREADY_TERMINAL",
    )
