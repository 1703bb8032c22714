from rideshare.models.user import User
from rideshare.models.trip import Trip
from rideshare.models.booking import Booking

__all__ = ["User", "Trip", "Booking"]
