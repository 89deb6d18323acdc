from trip_booking.schemas.booking import (
    BookingCreate, BookingResponse, BookingCreatedResponse,
    BookingDetailResponse, BookingCancelResponse, RefundResponse,
)
from trip_booking.schemas.payment import PaymentOutcome, PaymentWebhook, WebhookAck
from trip_booking.schemas.trip import TripAvailabilityResponse

__all__ = [
    "BookingCreate", "BookingResponse", "BookingCreatedResponse",
    "BookingDetailResponse", "BookingCancelResponse", "RefundResponse",
    "PaymentOutcome", "PaymentWebhook", "WebhookAck",
    "TripAvailabilityResponse",
]
