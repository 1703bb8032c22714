"""
Trip endpoints: publish, search (cached), owner listing, edit, delete.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.deps import get_current_actor
from rideshare.core.clock import as_utc, utcnow
from rideshare.core.config import get_settings
from rideshare.core.logging import get_logger
from rideshare.db.session import get_db
from rideshare.schemas.booking import BookingResponse
from rideshare.schemas.trip import TripCreate, TripUpdate, TripResponse, TripListResponse
from rideshare.schemas.user import Actor
from rideshare.services.booking_service import list_trip_bookings
from rideshare.services.cache_service import (
    get_cached_search,
    get_search_generation,
    set_cached_search,
    invalidate_search_cache,
)
from rideshare.services.trip_service import (
    create_trip,
    delete_trip,
    get_trip,
    list_trips_by_owner,
    search_trips,
    update_trip,
)

logger = get_logger(__name__)
settings = get_settings()
router = APIRouter(prefix="/trips", tags=["Trips"])


@router.post("/", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip_endpoint(
    trip_data: TripCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Publish a trip. Drivers only."""
    trip = await create_trip(db, trip_data, actor)
    await invalidate_search_cache()
    return trip


@router.get("/", response_model=TripListResponse)
async def search_trips_endpoint(
    origin: Optional[str] = Query(None, max_length=255),
    destination: Optional[str] = Query(None, max_length=255),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=settings.SEARCH_PAGE_SIZE_MAX),
    db: AsyncSession = Depends(get_db),
):
    """
    Upcoming trips with free seats, soonest first.
    Pages are cached in Redis briefly and invalidated on every trip or booking change.
    """
    # Read before the query so a page computed across a mutation is stored dead
    generation = await get_search_generation()
    cached = await get_cached_search(generation, origin, destination, page, page_size)
    if cached:
        now = utcnow()
        response = TripListResponse(**cached)
        bookable = [
            t for t in response.trips
            if t.available_seats > 0 and as_utc(t.departure_time) > now
        ]
        response.total = max(response.total - (len(response.trips) - len(bookable)), 0)
        response.trips = bookable
        response.cached = True
        logger.info("trip_search_cache_hit", page=page, generation=generation)
        return response

    trips, total = await search_trips(db, origin, destination, page=page, page_size=page_size)
    response = TripListResponse(
        trips=[TripResponse.model_validate(t) for t in trips],
        total=total,
        page=page,
        page_size=page_size,
    )

    await set_cached_search(
        generation, origin, destination, page, page_size, response.model_dump(mode="json")
    )
    return response


@router.get("/mine", response_model=list[TripResponse])
async def list_my_trips(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Trips published by the caller, newest first."""
    return await list_trips_by_owner(db, actor.id)


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip_endpoint(trip_id: int, db: AsyncSession = Depends(get_db)):
    """Single trip. Not cached (needs real-time seat counts)."""
    return await get_trip(db, trip_id)


@router.patch("/{trip_id}", response_model=TripResponse)
async def update_trip_endpoint(
    trip_id: int,
    trip_data: TripUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    trip = await update_trip(db, trip_id, trip_data, actor)
    await invalidate_search_cache()
    return trip


@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip_endpoint(
    trip_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Delete a trip. Refused while any booking on it is pending or confirmed."""
    await delete_trip(db, trip_id, actor)
    await invalidate_search_cache()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{trip_id}/bookings", response_model=list[BookingResponse])
async def list_trip_bookings_endpoint(
    trip_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Bookings on one of the caller's trips."""
    return await list_trip_bookings(db, trip_id, actor)
