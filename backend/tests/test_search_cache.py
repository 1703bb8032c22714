"""
Tests for the Redis search cache: read-through, invalidation on every
mutation, and re-filtering of cached pages. Redis is fakeredis.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import api_payload
from rideshare.api.routes import trips as trips_routes
from rideshare.core.clock import utcnow
from rideshare.services.booking_service import reserve_seats
from rideshare.services.cache_service import (
    SEARCH_GENERATION_KEY,
    SEARCH_KEY_PREFIX,
    get_search_generation,
    invalidate_search_cache,
    make_search_key,
)


async def _search(client: AsyncClient, **params) -> dict:
    response = await client.get("/api/v1/trips/", params=params)
    assert response.status_code == 200
    return response.json()


async def _publish(client: AsyncClient, headers: dict, **overrides) -> int:
    response = await client.post("/api/v1/trips/", json=api_payload(**overrides), headers=headers)
    assert response.status_code == 201
    return response.json()["id"]


async def _warm(client: AsyncClient) -> dict:
    await _search(client)
    body = await _search(client)
    assert body["cached"] is True
    return body


def test_search_key_hashes_filters():
    assert make_search_key(0, "x&destination=y", None, 1, 20) != make_search_key(
        0, "x", "y&destination=", 1, 20
    )
    assert make_search_key(0, " الرباط ", None, 1, 20) == make_search_key(0, "الرباط", "", 1, 20)
    assert make_search_key(0, "CASA", None, 1, 20) == make_search_key(0, "casa", None, 1, 20)
    assert make_search_key(0, "casa", None, 1, 20) != make_search_key(1, "casa", None, 1, 20)
    assert make_search_key(0, None, None, 1, 20) != make_search_key(0, None, None, 2, 20)
    assert make_search_key(3, None, None, 1, 20).startswith(f"{SEARCH_KEY_PREFIX}3:")
    assert not SEARCH_GENERATION_KEY.startswith(SEARCH_KEY_PREFIX)


@pytest.mark.asyncio
async def test_cache_disabled_means_no_generation():
    assert await get_search_generation() is None


@pytest.mark.asyncio
async def test_second_search_is_served_from_cache(client: AsyncClient, redis_cache, driver_headers):
    trip_id = await _publish(client, driver_headers)

    first = await _search(client)
    assert first["cached"] is False
    assert [t["id"] for t in first["trips"]] == [trip_id]

    second = await _search(client)
    assert second["cached"] is True
    assert second["trips"] == first["trips"]
    assert second["total"] == first["total"] == 1

    keys = await redis_cache.keys(f"{SEARCH_KEY_PREFIX}*")
    assert len(keys) == 1
    assert keys[0].startswith(f"{SEARCH_KEY_PREFIX}1:")

    other_filters = await _search(client, origin="Fes")
    assert other_filters["cached"] is False
    assert other_filters["trips"] == []


@pytest.mark.asyncio
async def test_every_mutation_invalidates_search_pages(
    client: AsyncClient, redis_cache, driver_headers, passenger_headers
):
    trip_id = await _publish(client, driver_headers)
    await _warm(client)

    response = await client.patch(
        f"/api/v1/trips/{trip_id}", json={"notes": "No smoking"}, headers=driver_headers
    )
    assert response.status_code == 200
    body = await _search(client)
    assert body["cached"] is False
    assert body["trips"][0]["notes"] == "No smoking"
    await _warm(client)

    response = await client.post(
        "/api/v1/bookings/", json={"trip_id": trip_id, "seats_booked": 3}, headers=passenger_headers
    )
    assert response.status_code == 201
    booking_id = response.json()["id"]
    body = await _search(client)
    assert body["cached"] is False
    assert body["trips"][0]["available_seats"] == 1
    await _warm(client)

    response = await client.post(f"/api/v1/bookings/{booking_id}/cancel", headers=passenger_headers)
    assert response.status_code == 200
    body = await _search(client)
    assert body["cached"] is False
    assert body["trips"][0]["available_seats"] == 4
    await _warm(client)

    response = await client.delete(f"/api/v1/trips/{trip_id}", headers=driver_headers)
    assert response.status_code == 204
    body = await _search(client)
    assert body["cached"] is False
    assert body["trips"] == []
    assert body["total"] == 0

    # publish, update, reserve, cancel, delete
    assert await redis_cache.get(SEARCH_GENERATION_KEY) == "5"


@pytest.mark.asyncio
async def test_publishing_invalidates_search_pages(client: AsyncClient, redis_cache, driver_headers):
    await _publish(client, driver_headers)
    await _warm(client)

    await _publish(client, driver_headers, from_location="Fes", to_location="Ifrane")
    body = await _search(client)
    assert body["cached"] is False
    assert body["total"] == 2


@pytest.mark.asyncio
async def test_departed_trip_dropped_from_cached_page(
    client: AsyncClient, redis_cache, driver_headers, monkeypatch
):
    now = utcnow()
    await _publish(client, driver_headers, departure_time=now + timedelta(hours=2))
    later_id = await _publish(client, driver_headers, departure_time=now + timedelta(days=3))

    warm = await _warm(client)
    assert warm["total"] == 2

    monkeypatch.setattr(trips_routes, "utcnow", lambda: now + timedelta(days=1))
    body = await _search(client)

    assert body["cached"] is True
    assert [t["id"] for t in body["trips"]] == [later_id]
    assert body["total"] == 1


@pytest.mark.asyncio
async def test_page_computed_across_a_reservation_is_not_republished(
    client: AsyncClient, redis_cache, session_factory, driver_headers, passenger, monkeypatch
):
    """A seat sells out between the search query and the cache write."""
    trip_id = await _publish(client, driver_headers, total_seats=1)
    real_search = trips_routes.search_trips
    sold = []

    async def search_then_sell_out(db, *args, **kwargs):
        result = await real_search(db, *args, **kwargs)
        if not sold:
            async with session_factory() as session:
                sold.append(await reserve_seats(session, trip_id, passenger, 1))
            await invalidate_search_cache()
        return result

    monkeypatch.setattr(trips_routes, "search_trips", search_then_sell_out)

    stale = await _search(client)
    assert [t["id"] for t in stale["trips"]] == [trip_id]
    assert len(sold) == 1

    body = await _search(client)
    assert body["cached"] is False
    assert body["trips"] == []
    assert body["total"] == 0

    body = await _search(client)
    assert body["cached"] is True
    assert body["trips"] == []


@pytest.mark.asyncio
async def test_redis_failure_falls_back_to_database(
    client: AsyncClient, redis_cache, driver_headers, monkeypatch
):
    trip_id = await _publish(client, driver_headers)

    async def unreachable(*args, **kwargs):
        raise RedisConnectionError("connection refused")

    monkeypatch.setattr(redis_cache, "get", unreachable)
    monkeypatch.setattr(redis_cache, "setex", unreachable)

    for _ in range(2):
        body = await _search(client)
        assert body["cached"] is False
        assert [t["id"] for t in body["trips"]] == [trip_id]
