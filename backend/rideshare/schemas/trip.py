"""
Pydantic schemas for trip requests and responses.

Request models only enforce shape (types, unknown fields, lengths). Business
rules such as the seat range or a future departure belong to
`rideshare.services.validation` so that every entry point applies them.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from rideshare.models.enums import GenderPreference


class TripCreate(BaseModel):
    from_location: str = Field(..., max_length=255)
    to_location: str = Field(..., max_length=255)
    departure_time: datetime
    total_seats: int
    price_per_seat: Decimal = Field(..., max_digits=10, decimal_places=2)
    car_model: Optional[str] = Field(None, max_length=255)
    car_plate: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=1000)
    gender_preference: GenderPreference = GenderPreference.ANY

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class TripUpdate(BaseModel):
    """Owner edits. Route and driver are fixed once published."""

    departure_time: Optional[datetime] = None
    total_seats: Optional[int] = None
    price_per_seat: Optional[Decimal] = Field(None, max_digits=10, decimal_places=2)
    car_model: Optional[str] = Field(None, max_length=255)
    car_plate: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=1000)
    gender_preference: Optional[GenderPreference] = None

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class TripResponse(BaseModel):
    id: int
    driver_id: int
    from_location: str
    to_location: str
    departure_time: datetime
    total_seats: int
    available_seats: int
    price_per_seat: Decimal
    car_model: Optional[str]
    car_plate: Optional[str]
    notes: Optional[str]
    gender_preference: GenderPreference
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TripListResponse(BaseModel):
    trips: list[TripResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False
