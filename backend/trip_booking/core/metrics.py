"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking lifecycle metrics
booking_transitions = Counter(
    'booking_transitions_total',
    'Booking state machine transitions',
    ['transition', 'result']  # create/confirm/expire/cancel x applied/rejected/noop
)

booking_latency = Histogram(
    'booking_transition_latency_seconds',
    'Latency of one atomic booking transition',
    ['transition'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Reconciliation metrics
webhook_events = Counter(
    'payment_webhook_events_total',
    'Payment webhook deliveries by handling outcome',
    ['result']  # confirmed, expired, late, duplicate, ignored, error
)

sweep_expired = Counter(
    'sweep_expired_bookings_total',
    'Bookings expired by the periodic sweep'
)

sweep_failures = Counter(
    'sweep_failures_total',
    'Bookings the sweep failed to expire (retried on the next tick)'
)

# Concurrency metrics
hold_wait = Histogram(
    'exclusive_hold_wait_seconds',
    'Time spent waiting for an exclusive hold on an entity',
    ['entity'],
    buckets=[0.0001, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

# HTTP metrics
request_latency = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency',
    ['method', 'status_code'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )

# Convenience functions for instrumentation
def record_transition(transition: str, result: str):
    """Record a lifecycle transition. Result: applied, rejected, noop"""
    booking_transitions.labels(transition=transition, result=result).inc()

def record_webhook(result: str):
    webhook_events.labels(result=result).inc()

def record_hold_wait(entity: str, seconds: float):
    hold_wait.labels(entity=entity).observe(seconds)
