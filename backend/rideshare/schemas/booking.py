"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from pydantic import BaseModel, ConfigDict

from rideshare.models.enums import BookingStatus
from rideshare.schemas.trip import TripResponse


class BookingCreate(BaseModel):
    trip_id: int
    # Range is checked by validate_booking_request
    seats_booked: int = 1

    model_config = ConfigDict(extra="forbid")


class BookingResponse(BaseModel):
    id: int
    trip_id: int
    passenger_id: int
    seats_booked: int
    status: BookingStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingWithTripResponse(BookingResponse):
    trip: TripResponse
