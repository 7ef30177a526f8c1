"""Observability package for the reindexer."""

from .logging import setup_logging, get_structured_logger, StructuredLogger
from .metrics import (
    setup_prometheus_metrics,
    record_job_started,
    record_job_finished,
    record_document,
    PrometheusMiddleware,
    reindexer_registry
)

__all__ = [
    'setup_logging',
    'get_structured_logger',
    'StructuredLogger',
    'setup_prometheus_metrics',
    'record_job_started',
    'record_job_finished',
    'record_document',
    'PrometheusMiddleware',
    'reindexer_registry'
]
