"""
Pure input validation for trips and booking requests.

Nothing here touches the database or the clock beyond the `now` it is given,
so the same rules run in tests, in the API and in any future importer.
All problems are collected and reported together in one ValidationError.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from rideshare.core.clock import as_utc, utcnow
from rideshare.core.config import get_settings
from rideshare.core.exceptions import ValidationError
from rideshare.models.enums import GenderPreference
from rideshare.schemas.trip import TripCreate, TripUpdate


def _parse(model, data):
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]) or "body", "message": err["msg"]}
            for err in exc.errors()
        ]
        raise ValidationError("Invalid trip data", errors) from exc


def _check_departure(errors: list, departure_time: datetime, now: datetime) -> None:
    if as_utc(departure_time) <= now:
        errors.append({"field": "departure_time", "message": "Departure time must be in the future"})


def _check_seats(errors: list, total_seats: Any) -> None:
    max_seats = get_settings().MAX_SEATS_PER_TRIP
    if isinstance(total_seats, bool) or not isinstance(total_seats, int) \
            or not 1 <= total_seats <= max_seats:
        errors.append({"field": "total_seats", "message": f"Total seats must be between 1 and {max_seats}"})


def _check_price(errors: list, price: Decimal) -> None:
    if price < 0:
        errors.append({"field": "price_per_seat", "message": "Price per seat cannot be negative"})


def _check_gender_preference(errors: list, value: Any) -> None:
    try:
        GenderPreference(value)
    except ValueError:
        errors.append({
            "field": "gender_preference",
            "message": "Gender preference must be one of: any, male_only, female_only",
        })


def same_location(a: str, b: str) -> bool:
    return a.strip().casefold() == b.strip().casefold()


def validate_trip_creation(
    data: Union[TripCreate, Mapping[str, Any]],
    now: Optional[datetime] = None,
) -> TripCreate:
    """Return the parsed trip or raise ValidationError listing every problem."""
    trip = _parse(TripCreate, data)
    now = as_utc(now) if now else utcnow()
    errors: list[dict] = []

    if not trip.from_location:
        errors.append({"field": "from_location", "message": "Origin is required"})
    if not trip.to_location:
        errors.append({"field": "to_location", "message": "Destination is required"})
    if trip.from_location and trip.to_location and same_location(trip.from_location, trip.to_location):
        errors.append({"field": "to_location", "message": "Origin and destination must differ"})

    _check_departure(errors, trip.departure_time, now)
    _check_seats(errors, trip.total_seats)
    _check_price(errors, trip.price_per_seat)
    _check_gender_preference(errors, trip.gender_preference)

    if errors:
        raise ValidationError("Invalid trip data", errors)
    return trip


def validate_trip_update(
    data: Union[TripUpdate, Mapping[str, Any]],
    now: Optional[datetime] = None,
) -> TripUpdate:
    """Same rules as creation, applied only to the fields being changed."""
    update = _parse(TripUpdate, data)
    now = as_utc(now) if now else utcnow()
    errors: list[dict] = []
    fields = update.model_fields_set

    if "departure_time" in fields:
        if update.departure_time is None:
            errors.append({"field": "departure_time", "message": "Departure time cannot be cleared"})
        else:
            _check_departure(errors, update.departure_time, now)
    if "total_seats" in fields:
        _check_seats(errors, update.total_seats)
    if "price_per_seat" in fields:
        if update.price_per_seat is None:
            errors.append({"field": "price_per_seat", "message": "Price per seat cannot be cleared"})
        else:
            _check_price(errors, update.price_per_seat)
    if "gender_preference" in fields:
        _check_gender_preference(errors, update.gender_preference)

    if errors:
        raise ValidationError("Invalid trip update", errors)
    return update


def validate_booking_request(seats_requested: Any) -> int:
    if isinstance(seats_requested, bool) or not isinstance(seats_requested, int) \
            or seats_requested < 1:
        raise ValidationError(
            "At least one seat must be requested",
            [{"field": "seats_booked", "message": "Must be an integer of at least 1"}],
        )
    return seats_requested
