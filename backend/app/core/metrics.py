"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Room rental metrics
rental_operations = Counter(
    'rental_operations_total',
    'Room rental state transitions',
    ['operation', 'result']  # request/approve/reject/cancel/disable, success/conflict/rejected
)

# Carpool seat ledger metrics
seat_ledger_operations = Counter(
    'seat_ledger_operations_total',
    'Carpool seat ledger operations',
    ['operation', 'result']  # join/leave/reassign, success/conflict/rejected
)

# Ticket token metrics
ticket_verifications = Counter(
    'ticket_verifications_total',
    'Ticket token verifications',
    ['result']  # valid, malformed, signature_invalid, unsupported_version, expired
)

# Database metrics
db_retries = Counter(
    'db_retry_attempts_total',
    'Database retry attempts due to version conflicts',
    ['entity']  # room, offer
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

# Notification metrics
notification_failures = Counter(
    'notification_failures_total',
    'Notifications that could not be delivered',
    ['kind']
)

request_latency = Histogram(
    'http_request_latency_seconds',
    'HTTP request latency',
    ['method'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )

# Convenience functions for instrumentation
def record_rental_operation(operation: str, result: str):
    """Record a rental transition attempt. Result: success, conflict, rejected"""
    rental_operations.labels(operation=operation, result=result).inc()

def record_seat_operation(operation: str, result: str):
    """Record a seat ledger operation. Result: success, conflict, rejected"""
    seat_ledger_operations.labels(operation=operation, result=result).inc()

def record_ticket_verification(result: str):
    ticket_verifications.labels(result=result).inc()

def record_db_retry(entity: str):
    db_retries.labels(entity=entity).inc()

def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()

def record_notification_failure(kind: str):
    notification_failures.labels(kind=kind).inc()
