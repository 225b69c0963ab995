"""Observability for the backfill pipeline.

Provides:
- Correlation ID (run ID) context management
- Structured logging with context propagation
- Prometheus metrics for monitoring and alerting

Usage:
    from src.observability import bind_context, configure_logging, ITEMS_TOTAL

    configure_logging(level="INFO")
    bind_context(table="users")
    ITEMS_TOTAL.labels(status="processed").inc()
"""

from src.observability.context import (
    get_correlation_id,
    correlation_id_context,
    new_run_id,
)
from src.observability.logging import (
    configure_logging,
    add_correlation_id_processor,
    bind_context,
    clear_context,
)
from src.observability.metrics import (
    ITEMS_TOTAL,
    PAGES_TOTAL,
    STORE_RETRIES,
    SOURCE_OFFSET,
    CONSECUTIVE_PAGE_ERRORS,
    ENRICHMENT_DURATION,
    get_metrics_text,
    write_metrics_textfile,
)

__all__ = [
    # Context
    "get_correlation_id",
    "correlation_id_context",
    "new_run_id",
    # Logging
    "configure_logging",
    "add_correlation_id_processor",
    "bind_context",
    "clear_context",
    # Metrics
    "ITEMS_TOTAL",
    "PAGES_TOTAL",
    "STORE_RETRIES",
    "SOURCE_OFFSET",
    "CONSECUTIVE_PAGE_ERRORS",
    "ENRICHMENT_DURATION",
    "get_metrics_text",
    "write_metrics_textfile",
]
