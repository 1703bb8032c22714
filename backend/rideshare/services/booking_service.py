"""
Booking coordinator: owns the seat-inventory invariant.

    trips.available_seats == trips.total_seats
                             - SUM(bookings.seats_booked WHERE status IN (pending, confirmed))

CONCURRENCY STRATEGY: per-trip lock + optimistic versioned write
================================================================

Problem:
  Two passengers try to take the last seat at the same time.
  Both read available_seats=1, both decrement, both succeed: overbooking.
  A cancellation racing a reservation can likewise lose an update.

Solution:
  1. Every mutating operation on a trip (reserve, confirm, cancel) runs while
     holding that trip's asyncio lock (see trip_locks). Within one process the
     read-check-write sequences for a trip never interleave, and operations on
     other trips are untouched.
  2. The seat write itself is a compare-and-swap on `trips.version`:

       UPDATE trips SET available_seats = available_seats - :n, version = version + 1
       WHERE id = :trip_id AND version = :seen_version AND available_seats >= :n

     If another process sharing the database changed the row in between,
     rows_affected == 0: roll back, re-read and retry, up to
     MAX_RETRY_ATTEMPTS. The CHECK constraints on trips are the final net.
  3. The seat write and the booking row are committed in one transaction
     before the lock is released.

Domain errors (InsufficientSeatsError, TripExpiredError, ...) are never
retried here; whether to try another trip is the caller's decision.
"""

import time
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from rideshare.core.clock import as_utc, utcnow
from rideshare.core.config import get_settings
from rideshare.core.exceptions import (
    ConflictError,
    NotFoundError,
    RideshareError,
    TripBusyError,
    TripExpiredError,
    InsufficientSeatsError,
)
from rideshare.core.logging import get_logger
from rideshare.core.metrics import (
    record_reservation,
    record_transition,
    reservation_latency,
    trip_cas_retries,
)
from rideshare.models.booking import Booking
from rideshare.models.enums import ACTIVE_BOOKING_STATUSES, BookingStatus, can_transition
from rideshare.models.trip import Trip
from rideshare.schemas.user import Actor
from rideshare.services.access_control import (
    forbid_self_booking,
    require_booking_owner_or_trip_owner,
    require_gender_match,
    require_trip_owner,
)
from rideshare.services.trip_locks import trip_locks
from rideshare.services.trip_service import active_seats, end_read_snapshot, get_trip
from rideshare.services.validation import validate_booking_request

logger = get_logger(__name__)


def assert_transition(booking: Booking, target: BookingStatus) -> None:
    current = BookingStatus(booking.status)
    if not can_transition(current, target):
        raise ConflictError(
            f"Booking {booking.id} cannot go from {current.value} to {target.value}"
        )


async def get_booking(db: AsyncSession, booking_id: int, fresh: bool = False) -> Booking:
    query = select(Booking).where(Booking.id == booking_id)
    if fresh:
        query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    booking = result.scalar_one_or_none()

    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


async def _booking_trip_id(db: AsyncSession, booking_id: int) -> int:
    result = await db.execute(select(Booking.trip_id).where(Booking.id == booking_id))
    trip_id = result.scalar_one_or_none()
    if trip_id is None:
        raise NotFoundError(f"Booking {booking_id} not found")
    return trip_id


async def _conditional_seat_write(db: AsyncSession, trip: Trip, delta: int) -> bool:
    """Apply `delta` to available_seats only if nobody wrote the trip since we read it."""
    guard = [Trip.id == trip.id, Trip.version == trip.version]
    if delta < 0:
        guard.append(Trip.available_seats >= -delta)
    else:
        guard.append(Trip.available_seats + delta <= Trip.total_seats)

    result = await db.execute(
        update(Trip)
        .where(*guard)
        .values(
            available_seats=Trip.available_seats + delta,
            version=Trip.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        trip_cas_retries.inc()
        return False
    return True


async def reserve_seats(
    db: AsyncSession,
    trip_id: int,
    passenger: Actor,
    seats_requested: int,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Take `seats_requested` seats on a trip and create a pending booking.
    Either both happen or neither does.
    """
    seats_requested = validate_booking_request(seats_requested)
    started = time.perf_counter()

    await end_read_snapshot(db)
    try:
        async with trip_locks.hold(trip_id):
            try:
                booking = await _reserve_locked(db, trip_id, passenger, seats_requested, now)
            except Exception:
                await db.rollback()
                raise
    except RideshareError as exc:
        record_reservation(exc.code)
        logger.info(
            "reservation_rejected",
            trip_id=trip_id,
            passenger_id=passenger.id,
            requested=seats_requested,
            reason=exc.code,
        )
        raise

    record_reservation("reserved")
    reservation_latency.observe(time.perf_counter() - started)
    return booking


async def _reserve_locked(
    db: AsyncSession,
    trip_id: int,
    passenger: Actor,
    seats_requested: int,
    now: Optional[datetime],
) -> Booking:
    max_attempts = get_settings().MAX_RETRY_ATTEMPTS

    for attempt in range(1, max_attempts + 1):
        trip = await get_trip(db, trip_id, fresh=True)

        if as_utc(trip.departure_time) <= (as_utc(now) if now else utcnow()):
            raise TripExpiredError(f"Trip {trip_id} has already departed")
        forbid_self_booking(passenger, trip)
        require_gender_match(passenger, trip)

        if trip.available_seats < seats_requested:
            raise InsufficientSeatsError(seats_requested, trip.available_seats)
        seats_left = trip.available_seats - seats_requested

        if not await _conditional_seat_write(db, trip, -seats_requested):
            logger.info("trip_cas_retry", trip_id=trip_id, attempt=attempt, operation="reserve")
            await db.rollback()
            continue

        booking = Booking(
            trip_id=trip_id,
            passenger_id=passenger.id,
            seats_booked=seats_requested,
            status=BookingStatus.PENDING,
        )
        db.add(booking)
        await db.commit()
        await db.refresh(booking)
        await db.refresh(trip)

        logger.info(
            "seats_reserved",
            booking_id=booking.id,
            trip_id=trip_id,
            passenger_id=passenger.id,
            seats=seats_requested,
            seats_left=seats_left,
            attempt=attempt,
        )
        return booking

    raise TripBusyError(trip_id)


async def confirm_booking(db: AsyncSession, booking_id: int, actor: Actor) -> Booking:
    """Driver accepts a pending booking. Seats were already taken at reservation."""
    trip_id = await _booking_trip_id(db, booking_id)

    await end_read_snapshot(db)
    async with trip_locks.hold(trip_id):
        try:
            booking = await get_booking(db, booking_id, fresh=True)
            trip = await get_trip(db, trip_id, fresh=True)
            require_trip_owner(actor, trip)
            assert_transition(booking, BookingStatus.CONFIRMED)

            result = await db.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.status == BookingStatus.PENDING)
                .values(status=BookingStatus.CONFIRMED)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise ConflictError(f"Booking {booking_id} changed concurrently")

            await db.commit()
        except Exception:
            await db.rollback()
            raise

    await db.refresh(booking)
    record_transition(BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)
    logger.info("booking_confirmed", booking_id=booking_id, trip_id=trip_id, driver_id=actor.id)
    return booking


async def cancel_booking(db: AsyncSession, booking_id: int, actor: Actor) -> Booking:
    """
    Cancel a booking and return its seats to the trip, atomically.
    Cancelling an already cancelled booking succeeds without changing anything.
    """
    trip_id = await _booking_trip_id(db, booking_id)
    max_attempts = get_settings().MAX_RETRY_ATTEMPTS

    await end_read_snapshot(db)
    async with trip_locks.hold(trip_id):
        try:
            for attempt in range(1, max_attempts + 1):
                booking = await get_booking(db, booking_id, fresh=True)
                trip = await get_trip(db, trip_id, fresh=True)
                require_booking_owner_or_trip_owner(actor, booking, trip)

                if booking.status == BookingStatus.CANCELLED:
                    await db.commit()
                    logger.info("booking_cancel_noop", booking_id=booking_id, trip_id=trip_id)
                    return booking

                previous = BookingStatus(booking.status)
                assert_transition(booking, BookingStatus.CANCELLED)

                if not await _conditional_seat_write(db, trip, booking.seats_booked):
                    logger.info("trip_cas_retry", trip_id=trip_id, attempt=attempt, operation="cancel")
                    await db.rollback()
                    continue

                result = await db.execute(
                    update(Booking)
                    .where(Booking.id == booking_id, Booking.status.in_(ACTIVE_BOOKING_STATUSES))
                    .values(status=BookingStatus.CANCELLED)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    # Cancelled elsewhere after our read; the next pass sees it
                    await db.rollback()
                    continue

                await db.commit()
                break
            else:
                raise TripBusyError(trip_id)
        except Exception:
            await db.rollback()
            raise

    await db.refresh(booking)
    await db.refresh(trip)
    record_transition(previous.value, BookingStatus.CANCELLED.value)
    logger.info(
        "booking_cancelled",
        booking_id=booking_id,
        trip_id=trip_id,
        cancelled_by=actor.id,
        seats_restored=booking.seats_booked,
    )
    return booking


async def list_passenger_bookings(db: AsyncSession, passenger_id: int) -> list[Booking]:
    """All bookings made by a passenger, newest first, with their trips."""
    result = await db.execute(
        select(Booking)
        .options(joinedload(Booking.trip, innerjoin=True))
        .where(Booking.passenger_id == passenger_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_trip_bookings(db: AsyncSession, trip_id: int, actor: Actor) -> list[Booking]:
    """Bookings on one trip, for its driver."""
    trip = await get_trip(db, trip_id)
    require_trip_owner(actor, trip)

    result = await db.execute(
        select(Booking)
        .where(Booking.trip_id == trip_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def seat_inventory_consistent(db: AsyncSession, trip_id: int) -> bool:
    """Reconciliation check: does available_seats match the active bookings?"""
    trip = await get_trip(db, trip_id, fresh=True)
    held = await active_seats(db, trip_id)
    consistent = trip.available_seats == trip.total_seats - held
    if not consistent:
        logger.error(
            "seat_inventory_mismatch",
            trip_id=trip_id,
            available=trip.available_seats,
            total=trip.total_seats,
            held=held,
        )
    return consistent
