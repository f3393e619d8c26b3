"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'seatify_booking_attempts_total',
    'Total booking attempts',
    ['outcome']  # success, not_found, conflict, forbidden
)

booking_latency = Histogram(
    'seatify_booking_latency_seconds',
    'Booking request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_cancellations = Counter(
    'seatify_booking_cancellations_total',
    'Bookings cancelled and seats released'
)

# Attendance metrics
scans = Counter(
    'seatify_scans_total',
    'Processed scans',
    ['mode', 'action', 'outcome']  # mode: toggle/checkout; action: CHECK_IN/CHECK_OUT/none
)

scan_latency = Histogram(
    'seatify_scan_latency_seconds',
    'Scan processing latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5]
)

auto_corrected_checkouts = Counter(
    'seatify_auto_corrected_checkouts_total',
    'Check-outs flagged as following an accidental check-in'
)

cas_retries = Counter(
    'seatify_cas_retries_total',
    'Compare-and-swap retries due to concurrent modification',
    ['entity']  # booking, seat
)

# Scheduler metrics
event_transitions = Counter(
    'seatify_event_status_transitions_total',
    'Event status transitions applied by the lifecycle scheduler',
    ['from_status', 'to_status']
)

scheduler_failures = Counter(
    'seatify_scheduler_update_failures_total',
    'Per-event status update failures'
)

# Cache metrics
cache_operations = Counter(
    'seatify_cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set/invalidate, hit/miss/error
)

redis_connection_errors = Counter(
    'seatify_redis_connection_errors_total',
    'Redis connection errors'
)

# Collaborator metrics
collaborator_failures = Counter(
    'seatify_collaborator_failures_total',
    'Failed calls to external collaborators',
    ['collaborator']  # asset_store, notifier
)


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(outcome: str):
    booking_attempts.labels(outcome=outcome).inc()


def record_scan(mode: str, action: str, outcome: str):
    scans.labels(mode=mode, action=action, outcome=outcome).inc()


def record_transition(from_status: str, to_status: str):
    event_transitions.labels(from_status=from_status, to_status=to_status).inc()


def record_cache_operation(operation: str, result: str):
    cache_operations.labels(operation=operation, result=result).inc()


def record_collaborator_failure(collaborator: str):
    collaborator_failures.labels(collaborator=collaborator).inc()
