"""Prometheus metrics definitions for the embedding backfill pipeline.

Defines counters, gauges, and histograms for monitoring:
- Item outcomes (processed / skipped / failed)
- Page outcomes and store retries
- Source position (checkpoint offset)
- Enrichment latency

Usage:
    from src.observability.metrics import ITEMS_TOTAL, ENRICHMENT_DURATION

    ITEMS_TOTAL.labels(status="processed").inc()

    with ENRICHMENT_DURATION.time():
        await enricher.enrich(payload)

Metrics can be dumped to a node_exporter textfile at the end of a run
(see ``write_metrics_textfile``).
"""

from pathlib import Path
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Custom registry to avoid conflicts with default registry
# Allows clean testing and multiple instances
REGISTRY = CollectorRegistry(auto_describe=True)

# =============================================================================
# COUNTERS - Monotonically increasing values
# =============================================================================

ITEMS_TOTAL = Counter(
    name="backfill_items_total",
    documentation="Total work items by outcome",
    labelnames=["status"],  # processed, skipped, failed
    registry=REGISTRY,
)

PAGES_TOTAL = Counter(
    name="backfill_pages_total",
    documentation="Total pages by outcome",
    labelnames=["outcome"],  # success, failed
    registry=REGISTRY,
)

STORE_RETRIES = Counter(
    name="backfill_store_retries_total",
    documentation="Store call retries",
    labelnames=["operation"],  # read_page, read_related, write_record, count_units
    registry=REGISTRY,
)

# =============================================================================
# GAUGES - Values that can go up and down
# =============================================================================

SOURCE_OFFSET = Gauge(
    name="backfill_source_offset",
    documentation="Rows consumed from the source (checkpoint offset)",
    registry=REGISTRY,
)

CONSECUTIVE_PAGE_ERRORS = Gauge(
    name="backfill_consecutive_page_errors",
    documentation="Current run of consecutive page-level failures",
    registry=REGISTRY,
)

# =============================================================================
# HISTOGRAMS - Distribution of values
# =============================================================================

ENRICHMENT_DURATION = Histogram(
    name="backfill_enrichment_duration_seconds",
    documentation="Enrichment (summary + embedding + write-back) duration",
    buckets=(0.5, 1, 2, 5, 10, 30, 60, 120, float("inf")),
    registry=REGISTRY,
)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def get_metrics_text() -> bytes:
    """Generate Prometheus metrics in text format.

    Returns:
        UTF-8 encoded metrics in Prometheus exposition format.
    """
    return generate_latest(REGISTRY)


def write_metrics_textfile(path: Optional[str]) -> Optional[Path]:
    """Write current metrics to a textfile-collector file.

    Written to a temp file and renamed so the collector never reads a
    partial file.

    Args:
        path: Destination path; nothing is written when None

    Returns:
        Path written, or None
    """
    if not path:
        return None

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_file = target.with_suffix(target.suffix + ".tmp")
    temp_file.write_bytes(get_metrics_text())
    temp_file.replace(target)
    return target

