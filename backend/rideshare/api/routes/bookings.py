"""
Booking endpoints with concurrency-safe seat reservation.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.deps import get_current_actor
from rideshare.db.session import get_db
from rideshare.schemas.booking import BookingCreate, BookingResponse, BookingWithTripResponse
from rideshare.schemas.user import Actor
from rideshare.services.booking_service import (
    reserve_seats,
    confirm_booking,
    cancel_booking,
    list_passenger_bookings,
)
from rideshare.services.cache_service import invalidate_search_cache

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Reserve seats on a trip. The booking starts as pending.

    Reservations on the same trip are serialized, so two passengers racing
    for the last seat get one 201 and one 409 (insufficient_seats).
    """
    booking = await reserve_seats(db, booking_data.trip_id, actor, booking_data.seats_booked)
    # Search results show available_seats, which just changed
    await invalidate_search_cache()
    return booking


@router.get("/", response_model=list[BookingWithTripResponse])
async def list_my_bookings(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """All bookings made by the caller, newest first."""
    return await list_passenger_bookings(db, actor.id)


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking_endpoint(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Driver confirms a pending booking on their trip."""
    return await confirm_booking(db, booking_id, actor)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking (passenger or driver) and release its seats. Safe to retry."""
    booking = await cancel_booking(db, booking_id, actor)
    await invalidate_search_cache()
    return booking
