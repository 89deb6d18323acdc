"""
Pydantic schemas for trip seat inventory.
"""

from pydantic import BaseModel


class TripAvailabilityResponse(BaseModel):
    trip_id: int
    status: str
    max_capacity: int
    available_seats: int

    model_config = {"from_attributes": True}
