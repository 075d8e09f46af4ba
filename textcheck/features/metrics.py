"""
Prometheus metrics for the check server.
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

REQ_TOTAL = Counter("textcheck_requests_total", "Total HTTP requests", ["status"])
REQ_ERRORS = Counter("textcheck_request_errors_total", "Total HTTP request errors")
REQ_IN_FLIGHT = Gauge("textcheck_in_flight_requests", "In-flight requests")
REQ_LATENCY = Histogram("textcheck_request_duration_seconds", "Request duration seconds")
MATCHES_TOTAL = Counter("textcheck_matches_total", "Matches returned to clients")
ANALYSIS_LATENCY = Histogram("textcheck_analysis_duration_seconds", "Analysis engine call duration seconds")


def render_metrics():
    """Return ``(body, content_type)`` for the ``/metrics`` endpoint."""
    return generate_latest(), CONTENT_TYPE_LATEST
