"""
Prometheus metrics for the Leadhub backend.
Provides metrics for HTTP requests and lead workflow operations.
"""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response


# HTTP Request Metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['route', 'method', 'status']
)

http_request_duration_ms = Histogram(
    'http_request_duration_ms',
    'HTTP request duration in milliseconds',
    ['route', 'method'],
    buckets=(1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000)
)

# Lead Workflow Metrics
lead_assignments_committed_total = Counter(
    'lead_assignments_committed_total',
    'Total number of partner assignments committed',
    ['partner_type']
)

lead_assignment_transitions_total = Counter(
    'lead_assignment_transitions_total',
    'Total number of assignment status transitions',
    ['action']
)

lead_workflow_rejections_total = Counter(
    'lead_workflow_rejections_total',
    'Total number of workflow operations rejected by a business rule',
    ['error_code']
)

lead_capacity_warnings_total = Counter(
    'lead_capacity_warnings_total',
    'Total number of assignments committed to partners at or over weekly capacity',
    ['service_type']
)


def record_http_request(route: str, method: str, status_code: int, duration_ms: float):
    """Record HTTP request metrics."""
    http_requests_total.labels(route=route, method=method, status=str(status_code)).inc()
    http_request_duration_ms.labels(route=route, method=method).observe(duration_ms)


def record_assignment_committed(partner_type: str):
    lead_assignments_committed_total.labels(partner_type=partner_type).inc()


def record_transition(action: str):
    lead_assignment_transitions_total.labels(action=action).inc()


def record_rejection(error_code: str):
    lead_workflow_rejections_total.labels(error_code=error_code).inc()


def record_capacity_warning(service_type: str):
    lead_capacity_warnings_total.labels(service_type=service_type).inc()


def metrics_response() -> Response:
    """Render the Prometheus exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
