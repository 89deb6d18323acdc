"""
Booking endpoints: lookup and cancellation with refund.
"""

from fastapi import APIRouter, Depends

from trip_booking.schemas.booking import (
    BookingCancelResponse,
    BookingDetailResponse,
    BookingResponse,
    RefundResponse,
)
from trip_booking.services.booking_service import cancel_booking, get_booking
from trip_booking.services.coordinator import TransactionCoordinator, get_coordinator

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking_endpoint(
    booking_id: int,
    coordinator: TransactionCoordinator = Depends(get_coordinator),
):
    booking = await get_booking(coordinator, booking_id)
    return BookingDetailResponse(
        **BookingResponse.model_validate(booking).model_dump(),
        trip_start_date=booking.trip.start_date,
        refundable_until_days_before=booking.trip.refundable_until_days_before,
        cancellation_fee_percent=booking.trip.cancellation_fee_percent,
    )


@router.post("/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    coordinator: TransactionCoordinator = Depends(get_coordinator),
):
    """
    Cancel a pending or confirmed booking.

    Before the trip's refund cutoff the price minus the cancellation fee is
    refunded and the seats go back on sale; after it nothing is refunded and
    the seats stay allocated. Returns 409 if the booking already ended.
    """
    result = await cancel_booking(coordinator, booking_id)
    return BookingCancelResponse(
        booking=BookingResponse.model_validate(result.booking),
        refund=RefundResponse(
            amount=result.refund_amount,
            is_refundable=result.is_refundable,
            days_until_trip=result.days_until_trip,
            cutoff_days=result.cutoff_days,
            cancellation_fee_percent=result.cancellation_fee_percent,
        ),
    )
