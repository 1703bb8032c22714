"""
Prometheus metrics for the booking engine, exposed at /metrics.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

reservation_attempts = Counter(
    'rideshare_reservation_attempts_total',
    'Seat reservation attempts',
    ['result']  # reserved, or the error code that rejected it
)

reservation_latency = Histogram(
    'rideshare_reservation_latency_seconds',
    'Time spent inside reserve_seats',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_transitions = Counter(
    'rideshare_booking_transitions_total',
    'Booking status transitions',
    ['from_status', 'to_status']
)

trip_lock_wait = Histogram(
    'rideshare_trip_lock_wait_seconds',
    'Time spent waiting for a per-trip lock',
    buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

trip_cas_retries = Counter(
    'rideshare_trip_cas_retries_total',
    'Versioned trip writes that lost to a concurrent writer and were retried'
)

cache_operations = Counter(
    'rideshare_cache_operations_total',
    'Search cache operations',
    ['operation', 'result']  # get/set/invalidate, hit/miss/error
)


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_reservation(result: str):
    reservation_attempts.labels(result=result).inc()


def record_transition(from_status: str, to_status: str):
    booking_transitions.labels(from_status=from_status, to_status=to_status).inc()


def record_cache_operation(operation: str, result: str):
    cache_operations.labels(operation=operation, result=result).inc()
