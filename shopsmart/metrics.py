"""
Prometheus metric definitions.

HTTP metrics are recorded by the hooks installed in
shopsmart.blueprints.metrics; image lifecycle metrics are recorded by the
image services.
"""
import os

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, REGISTRY
from prometheus_client import multiprocess

# Check if running in multi-process mode (Gunicorn)
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

# Use multiprocess registry in production with Gunicorn
if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
else:
    registry = REGISTRY

_metric_registry = registry if not MULTIPROCESS_MODE else None

# HTTP Request Metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'http_status'],
    registry=_metric_registry
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    registry=_metric_registry,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0)
)

http_requests_in_flight = Gauge(
    'http_requests_in_flight',
    'Number of HTTP requests currently being processed',
    registry=_metric_registry
)

# Product image lifecycle
product_images_uploaded_total = Counter(
    'product_images_uploaded_total',
    'Product images stored on disk',
    ['mimetype'],
    registry=_metric_registry
)

product_image_files_deleted_total = Counter(
    'product_image_files_deleted_total',
    'Product image files removed from disk',
    ['variant'],
    registry=_metric_registry
)

product_image_cleanup_failures_total = Counter(
    'product_image_cleanup_failures_total',
    'Errors reported while deleting product image files',
    ['operation'],
    registry=_metric_registry
)

# Cart
cart_operations_total = Counter(
    'cart_operations_total',
    'Cart commands applied to a session cart',
    ['operation'],
    registry=_metric_registry
)
