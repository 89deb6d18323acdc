"""
Trip endpoints: booking creation and seat availability.
"""

from fastapi import APIRouter, Depends, status

from trip_booking.core.config import get_settings
from trip_booking.schemas.booking import BookingCreate, BookingCreatedResponse, BookingResponse
from trip_booking.schemas.trip import TripAvailabilityResponse
from trip_booking.services.booking_service import create_booking
from trip_booking.services.coordinator import TransactionCoordinator, get_coordinator
from trip_booking.services.inventory_service import get_availability

router = APIRouter(prefix="/trips", tags=["Trips"])


@router.post(
    "/{trip_id}/book",
    response_model=BookingCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def book_trip(
    trip_id: int,
    booking_data: BookingCreate,
    coordinator: TransactionCoordinator = Depends(get_coordinator),
):
    """
    Reserve seats on a published trip.

    The booking starts in PENDING_PAYMENT and holds its seats until the
    payment webhook confirms it or the hold time runs out.
    Returns 404 (unknown trip), 400 (not published) or 409 (not enough seats).
    """
    booking = await create_booking(
        coordinator, trip_id, booking_data.user_id, booking_data.num_seats
    )
    return BookingCreatedResponse(
        booking=BookingResponse.model_validate(booking),
        payment_url=f"{get_settings().PAYMENT_URL_BASE}/{booking.id}",
    )


@router.get("/{trip_id}/availability", response_model=TripAvailabilityResponse)
async def trip_availability(
    trip_id: int,
    coordinator: TransactionCoordinator = Depends(get_coordinator),
):
    """Current seat counters. Not cached (needs real-time seat counts)."""
    async with coordinator.read() as session:
        trip = await get_availability(session, trip_id)
    return TripAvailabilityResponse(
        trip_id=trip.id,
        status=trip.status,
        max_capacity=trip.max_capacity,
        available_seats=trip.available_seats,
    )
