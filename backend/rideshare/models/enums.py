"""
Closed value sets stored as strings, plus the booking state machine.
"""

import enum


class UserType(str, enum.Enum):
    DRIVER = "driver"
    PASSENGER = "passenger"


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"


class GenderPreference(str, enum.Enum):
    ANY = "any"
    MALE_ONLY = "male_only"
    FEMALE_ONLY = "female_only"

    def admits(self, gender: "Gender | None") -> bool:
        """Unknown gender is never rejected."""
        if self is GenderPreference.ANY or gender is None:
            return True
        if self is GenderPreference.MALE_ONLY:
            return gender is Gender.MALE
        return gender is Gender.FEMALE


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in BOOKING_TRANSITIONS.get(current, set())
