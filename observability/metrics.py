"""Prometheus metrics for the reindexer."""

import logging
import re
import time
from typing import Optional

from fastapi import FastAPI, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from prometheus_client.core import CollectorRegistry

logger = logging.getLogger(__name__)

reindexer_registry = CollectorRegistry()

request_count = Counter(
    'reindexer_http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=reindexer_registry
)

request_duration = Histogram(
    'reindexer_http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=reindexer_registry
)

jobs_total = Counter(
    'reindexer_jobs_total',
    'Reindex jobs by outcome',
    ['status'],
    registry=reindexer_registry
)

jobs_in_progress = Gauge(
    'reindexer_jobs_in_progress',
    'Reindex jobs currently holding a queue entry',
    registry=reindexer_registry
)

job_duration = Histogram(
    'reindexer_job_duration_seconds',
    'Reindex job duration in seconds',
    buckets=[1.0, 5.0, 15.0, 30.0, 60.0, 300.0, 900.0, 3600.0],
    registry=reindexer_registry
)

documents_total = Counter(
    'reindexer_documents_total',
    'Documents processed by reindex jobs',
    ['result'],
    registry=reindexer_registry
)


class PrometheusMiddleware:
    """Middleware to collect Prometheus metrics for HTTP requests."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        method = request.method
        endpoint = self._normalize_endpoint(request.url.path)

        start_time = time.time()
        status_code = 500

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            request_count.labels(
                method=method,
                endpoint=endpoint,
                status_code=str(status_code)
            ).inc()
            request_duration.labels(method=method, endpoint=endpoint).observe(time.time() - start_time)

    def _normalize_endpoint(self, path: str) -> str:
        """Collapse project and branch segments to keep label cardinality low."""
        return re.sub(r'^/queues/[^/]+/[^/]+', '/queues/{project_id}/{branch_name}', path)


def setup_prometheus_metrics(app: FastAPI) -> None:
    """Setup Prometheus metrics collection for FastAPI app."""
    app.add_middleware(PrometheusMiddleware)

    @app.get("/metrics")
    async def metrics_endpoint():
        """Prometheus metrics endpoint."""
        return Response(generate_latest(reindexer_registry), media_type=CONTENT_TYPE_LATEST)

    logger.info("Prometheus metrics configured")


def record_job_started() -> None:
    jobs_in_progress.inc()


def record_job_finished(duration: float, error: Optional[str] = None) -> None:
    """Record the outcome of a reindex job."""
    jobs_in_progress.dec()
    jobs_total.labels(status="error" if error else "success").inc()
    job_duration.observe(duration)


def record_document(uploaded: bool) -> None:
    documents_total.labels(result="uploaded" if uploaded else "skipped").inc()
