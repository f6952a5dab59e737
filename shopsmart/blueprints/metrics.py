"""
Prometheus metrics blueprint.

Exposes /metrics with the HTTP request metrics recorded by the hooks below
and the product image counters defined in shopsmart.metrics. Restrict it
to the monitoring network in production.
"""
import time

from flask import Blueprint, Response, request, g
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from shopsmart.metrics import (
    MULTIPROCESS_MODE,
    registry,
    http_requests_total,
    http_request_duration_seconds,
    http_requests_in_flight,
)

metrics_bp = Blueprint('metrics', __name__)


def setup_metrics_instrumentation(app):
    """Install before/after request hooks that record HTTP metrics."""

    @app.before_request
    def before_request_metrics():
        g._prometheus_metrics_start_time = time.time()
        http_requests_in_flight.inc()

    @app.after_request
    def after_request_metrics(response):
        try:
            if hasattr(g, '_prometheus_metrics_start_time'):
                duration = time.time() - g._prometheus_metrics_start_time

                # Endpoint name, e.g. 'admin.update_product'
                endpoint = request.endpoint or 'unknown'

                http_request_duration_seconds.labels(
                    method=request.method,
                    endpoint=endpoint
                ).observe(duration)

                http_requests_total.labels(
                    method=request.method,
                    endpoint=endpoint,
                    http_status=response.status_code
                ).inc()

                http_requests_in_flight.dec()
        except Exception as e:
            # Metrics must never break the response
            app.logger.warning(f"Failed to record metrics: {e}")

        return response


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus text exposition of every registered metric (unauthenticated)."""
    if MULTIPROCESS_MODE:
        # Aggregate samples written by every Gunicorn worker
        data = generate_latest(registry)
    else:
        data = generate_latest()
    return Response(data, mimetype=CONTENT_TYPE_LATEST)
