"""
Prometheus Metrics Middleware

Exposes:
  - http_requests_total                   (counter)
  - http_request_duration_seconds         (histogram)
  - http_requests_in_progress             (gauge)
  - storefront_domain_resolutions_total   (counter, by outcome)
  - storefront_domain_transitions_total   (counter, by from/to status)
  - app_info                              (info)
"""

import re
import time

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# ── Metrics ──
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)
REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "Request latency in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)
REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of in-progress requests",
    ["method"],
)
DOMAIN_RESOLUTIONS = Counter(
    "storefront_domain_resolutions_total",
    "Custom domain host resolutions",
    ["outcome"],  # cache_hit, cache_negative, directory_hit, directory_miss, error
)
DOMAIN_TRANSITIONS = Counter(
    "storefront_domain_transitions_total",
    "Custom domain lifecycle transitions",
    ["from_status", "to_status"],
)
APP_INFO = Info("app", "Application metadata")

_UUID_PATTERN = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}")
_STORE_PATTERN = re.compile(r"^/stores/[^/]+")


def _normalize_path(path: str) -> str:
    """Collapse tenant ids and store slugs to prevent cardinality explosion."""
    path = _UUID_PATTERN.sub("{id}", path)
    path = _STORE_PATTERN.sub("/stores/{slug}", path)
    path = re.sub(r"/\d+", "/{id}", path)
    return path


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        method = request.method
        path = _normalize_path(request.url.path)

        # Skip metrics endpoint itself
        if path == "/metrics":
            return await call_next(request)

        REQUESTS_IN_PROGRESS.labels(method=method).inc()
        start = time.perf_counter()

        try:
            response = await call_next(request)
            REQUEST_COUNT.labels(method=method, endpoint=path, status=response.status_code).inc()
            return response
        except Exception:
            REQUEST_COUNT.labels(method=method, endpoint=path, status=500).inc()
            raise
        finally:
            REQUEST_DURATION.labels(method=method, endpoint=path).observe(time.perf_counter() - start)
            REQUESTS_IN_PROGRESS.labels(method=method).dec()


async def metrics_endpoint(request: Request) -> Response:
    """Prometheus scrape endpoint"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def set_app_info(version: str, env: str) -> None:
    APP_INFO.info({"version": version, "env": env})
