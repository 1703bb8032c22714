"""
Tests for role and ownership guards, using unsaved model instances.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from rideshare.core.exceptions import (
    AuthorizationError,
    GenderPreferenceMismatchError,
    SelfBookingError,
)
from rideshare.models.booking import Booking
from rideshare.models.enums import Gender, GenderPreference, UserType
from rideshare.models.trip import Trip
from rideshare.schemas.user import Actor
from rideshare.services.access_control import (
    forbid_self_booking,
    require_booking_owner_or_trip_owner,
    require_driver,
    require_gender_match,
    require_trip_owner,
)

DRIVER = Actor(id=1, user_type=UserType.DRIVER, gender=Gender.MALE)
PASSENGER = Actor(id=2, user_type=UserType.PASSENGER, gender=Gender.FEMALE)
STRANGER = Actor(id=3, user_type=UserType.PASSENGER)


def _trip(preference=GenderPreference.ANY) -> Trip:
    return Trip(id=10, driver_id=DRIVER.id, gender_preference=preference)


def test_require_driver():
    require_driver(DRIVER)
    with pytest.raises(AuthorizationError):
        require_driver(PASSENGER)


def test_require_trip_owner():
    require_trip_owner(DRIVER, _trip())
    with pytest.raises(AuthorizationError):
        require_trip_owner(PASSENGER, _trip())


def test_booking_owner_or_trip_owner():
    booking = Booking(id=5, trip_id=10, passenger_id=PASSENGER.id)
    require_booking_owner_or_trip_owner(PASSENGER, booking, _trip())
    require_booking_owner_or_trip_owner(DRIVER, booking, _trip())
    with pytest.raises(AuthorizationError):
        require_booking_owner_or_trip_owner(STRANGER, booking, _trip())


def test_driver_cannot_book_own_trip():
    with pytest.raises(SelfBookingError):
        forbid_self_booking(DRIVER, _trip())
    forbid_self_booking(PASSENGER, _trip())


def test_driver_may_book_someone_elses_trip():
    other_trip = Trip(id=11, driver_id=99, gender_preference=GenderPreference.ANY)
    forbid_self_booking(DRIVER, other_trip)


@pytest.mark.parametrize(
    "preference, gender, allowed",
    [
        (GenderPreference.ANY, Gender.MALE, True),
        (GenderPreference.ANY, Gender.FEMALE, True),
        (GenderPreference.FEMALE_ONLY, Gender.FEMALE, True),
        (GenderPreference.FEMALE_ONLY, Gender.MALE, False),
        (GenderPreference.MALE_ONLY, Gender.MALE, True),
        (GenderPreference.MALE_ONLY, Gender.FEMALE, False),
        (GenderPreference.MALE_ONLY, None, True),
        (GenderPreference.FEMALE_ONLY, None, True),
    ],
)
def test_gender_preference(preference, gender, allowed):
    passenger = Actor(id=2, user_type=UserType.PASSENGER, gender=gender)
    if allowed:
        require_gender_match(passenger, _trip(preference))
    else:
        with pytest.raises(GenderPreferenceMismatchError):
            require_gender_match(passenger, _trip(preference))


def test_actor_is_immutable():
    with pytest.raises(PydanticValidationError):
        PASSENGER.id = 42
