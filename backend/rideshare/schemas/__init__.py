from rideshare.schemas.user import Actor, UserCreate, UserResponse, PublicUserResponse
from rideshare.schemas.trip import TripCreate, TripUpdate, TripResponse, TripListResponse
from rideshare.schemas.booking import BookingCreate, BookingResponse, BookingWithTripResponse

__all__ = [
    "Actor", "UserCreate", "UserResponse", "PublicUserResponse",
    "TripCreate", "TripUpdate", "TripResponse", "TripListResponse",
    "BookingCreate", "BookingResponse", "BookingWithTripResponse",
]
