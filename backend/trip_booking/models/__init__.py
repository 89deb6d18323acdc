from trip_booking.models.trip import Trip, TripStatus
from trip_booking.models.booking import Booking, BookingState, TERMINAL_STATES

__all__ = ["Trip", "TripStatus", "Booking", "BookingState", "TERMINAL_STATES"]
