"""
Prometheus metrics for the submission-safety layer and catalog client.

Metrics are registered at import time on the default registry and exposed by
the ``/metrics`` endpoint of the Flask application.
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

submissions_total = Counter(
    'zoo_portal_submissions_total',
    'Form submissions by form class and outcome',
    ['form_class', 'outcome']
)

sanitizer_events_total = Counter(
    'zoo_portal_sanitizer_events_total',
    'Sanitizer interventions by event type',
    ['event']
)

catalog_attempts_total = Counter(
    'zoo_portal_catalog_attempts_total',
    'Catalog backend attempts by phase and outcome',
    ['phase', 'outcome']
)

catalog_backoff_seconds = Histogram(
    'zoo_portal_catalog_backoff_seconds',
    'Backoff delay scheduled between catalog attempts',
    ['phase'],
    buckets=[0.5, 1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 60.0]
)


def render_metrics():
    """Return the exposition payload and its content type."""
    return generate_latest(), CONTENT_TYPE_LATEST


__all__ = [
    'submissions_total',
    'sanitizer_events_total',
    'catalog_attempts_total',
    'catalog_backoff_seconds',
    'render_metrics',
]
