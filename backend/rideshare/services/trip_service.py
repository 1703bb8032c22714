"""
Trip repository: publishing, listing, search, owner edits and deletion.

Seat counts are only ever changed under the trip lock (here for edits and
deletes, in booking_service for reservations), and every such write bumps
`version` so concurrent writers in other processes detect each other.
"""

from datetime import datetime
from typing import Any, Mapping, Optional, Union

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.core.clock import as_utc, utcnow
from rideshare.core.exceptions import ConflictError, NotFoundError, TripBusyError
from rideshare.core.logging import get_logger
from rideshare.models.booking import Booking
from rideshare.models.enums import ACTIVE_BOOKING_STATUSES
from rideshare.models.trip import Trip
from rideshare.schemas.trip import TripCreate, TripUpdate
from rideshare.schemas.user import Actor
from rideshare.services.access_control import require_driver, require_trip_owner
from rideshare.services.trip_locks import trip_locks
from rideshare.services.validation import validate_trip_creation, validate_trip_update

logger = get_logger(__name__)


async def end_read_snapshot(db: AsyncSession) -> None:
    """
    Close any transaction the session has open before queuing on a trip lock.
    A waiter holding a read snapshot could otherwise stall the lock holder's
    commit on databases with table-level locking.
    """
    if db.in_transaction():
        await db.commit()


async def get_trip(db: AsyncSession, trip_id: int, fresh: bool = False) -> Trip:
    """Get a single trip by ID. `fresh` bypasses the session's identity map."""
    query = select(Trip).where(Trip.id == trip_id)
    if fresh:
        query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    trip = result.scalar_one_or_none()

    if not trip:
        raise NotFoundError(f"Trip {trip_id} not found")
    return trip


async def active_seats(db: AsyncSession, trip_id: int) -> int:
    """Seats held by pending and confirmed bookings on the trip."""
    result = await db.execute(
        select(func.coalesce(func.sum(Booking.seats_booked), 0)).where(
            Booking.trip_id == trip_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
    )
    return int(result.scalar_one())


async def create_trip(
    db: AsyncSession,
    trip_data: Union[TripCreate, Mapping[str, Any]],
    actor: Actor,
    now: Optional[datetime] = None,
) -> Trip:
    """Publish a new trip with every seat available."""
    trip_data = validate_trip_creation(trip_data, now)
    require_driver(actor)

    trip = Trip(
        driver_id=actor.id,
        from_location=trip_data.from_location,
        to_location=trip_data.to_location,
        departure_time=as_utc(trip_data.departure_time),
        total_seats=trip_data.total_seats,
        available_seats=trip_data.total_seats,  # All seats available initially
        price_per_seat=trip_data.price_per_seat,
        car_model=trip_data.car_model or None,
        car_plate=trip_data.car_plate or None,
        notes=trip_data.notes or None,
        gender_preference=trip_data.gender_preference,
        version=1,
    )
    db.add(trip)
    await db.commit()
    await db.refresh(trip)

    logger.info(
        "trip_created",
        trip_id=trip.id,
        driver_id=actor.id,
        origin=trip.from_location,
        destination=trip.to_location,
        seats=trip.total_seats,
    )
    return trip


async def list_trips_by_owner(db: AsyncSession, driver_id: int) -> list[Trip]:
    """A driver's trips, most recently created first."""
    result = await db.execute(
        select(Trip)
        .where(Trip.driver_id == driver_id)
        .order_by(Trip.created_at.desc(), Trip.id.desc())
    )
    return list(result.scalars().all())


async def search_trips(
    db: AsyncSession,
    origin: Optional[str] = None,
    destination: Optional[str] = None,
    now: Optional[datetime] = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Trip], int]:
    """
    Bookable trips: departing after `now` with at least one free seat,
    optionally filtered by case-insensitive substring on origin/destination.
    Ordered by departure time, then id, so pages are stable.
    Uses the ix_trips_available_departure composite index.
    """
    now = as_utc(now) if now else utcnow()
    query = select(Trip).where(Trip.departure_time > now, Trip.available_seats > 0)

    origin = (origin or "").strip()
    destination = (destination or "").strip()
    if origin:
        query = query.where(Trip.from_location.icontains(origin, autoescape=True))
    if destination:
        query = query.where(Trip.to_location.icontains(destination, autoescape=True))

    # Total comes from the same statement as the page, so the two agree
    trips_query = (
        query
        .add_columns(func.count().over().label("total"))
        .order_by(Trip.departure_time.asc(), Trip.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    rows = (await db.execute(trips_query)).all()
    if rows:
        return [row[0] for row in rows], rows[0].total
    if page == 1:
        return [], 0

    # Past the last page there are no rows to carry the window count
    count_query = select(func.count()).select_from(query.subquery())
    return [], (await db.execute(count_query)).scalar()


async def update_trip(
    db: AsyncSession,
    trip_id: int,
    trip_data: Union[TripUpdate, Mapping[str, Any]],
    actor: Actor,
    now: Optional[datetime] = None,
) -> Trip:
    """
    Owner edits. Changing total_seats recomputes available_seats from the
    active bookings and may not drop below the seats already held.
    """
    changes = validate_trip_update(trip_data, now).model_dump(exclude_unset=True)

    await end_read_snapshot(db)
    async with trip_locks.hold(trip_id):
        try:
            trip = await get_trip(db, trip_id, fresh=True)
            require_trip_owner(actor, trip)

            if "departure_time" in changes:
                changes["departure_time"] = as_utc(changes["departure_time"])
            if "total_seats" in changes:
                held = await active_seats(db, trip_id)
                if changes["total_seats"] < held:
                    raise ConflictError(
                        f"Cannot reduce seats to {changes['total_seats']}: "
                        f"{held} seat(s) are already booked"
                    )
                changes["available_seats"] = changes["total_seats"] - held

            if changes:
                result = await db.execute(
                    update(Trip)
                    .where(Trip.id == trip_id, Trip.version == trip.version)
                    .values(**changes, version=Trip.version + 1)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise TripBusyError(trip_id)

            await db.commit()
        except Exception:
            await db.rollback()
            raise

    logger.info("trip_updated", trip_id=trip_id, fields=sorted(changes))
    return await get_trip(db, trip_id, fresh=True)


async def delete_trip(db: AsyncSession, trip_id: int, actor: Actor) -> None:
    """
    Remove a trip that has no pending or confirmed bookings. Its cancelled
    bookings go with it.
    """
    await end_read_snapshot(db)
    async with trip_locks.hold(trip_id):
        try:
            trip = await get_trip(db, trip_id, fresh=True)
            require_trip_owner(actor, trip)

            active = await db.execute(
                select(func.count()).select_from(Booking).where(
                    Booking.trip_id == trip_id,
                    Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                )
            )
            active_count = active.scalar_one()
            if active_count:
                logger.warning("trip_delete_blocked", trip_id=trip_id, active_bookings=active_count)
                raise ConflictError(
                    f"Trip {trip_id} has {active_count} active booking(s); cancel them first"
                )

            await db.execute(
                delete(Booking)
                .where(Booking.trip_id == trip_id)
                .execution_options(synchronize_session=False)
            )
            result = await db.execute(
                delete(Trip)
                .where(Trip.id == trip_id, Trip.version == trip.version)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise TripBusyError(trip_id)

            await db.commit()
        except Exception:
            await db.rollback()
            raise

    logger.info("trip_deleted", trip_id=trip_id, driver_id=actor.id)
