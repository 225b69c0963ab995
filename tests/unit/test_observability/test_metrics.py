"""Tests for Prometheus metrics definitions."""

from src.observability.metrics import (
    CONSECUTIVE_PAGE_ERRORS,
    ENRICHMENT_DURATION,
    ITEMS_TOTAL,
    PAGES_TOTAL,
    REGISTRY,
    SOURCE_OFFSET,
    STORE_RETRIES,
    get_metrics_text,
    write_metrics_textfile,
)


class TestCounterMetrics:
    """Tests for counter metrics."""

    def test_items_total_by_status(self):
        before = REGISTRY.get_sample_value("backfill_items_total", {"status": "processed"}) or 0

        ITEMS_TOTAL.labels(status="processed").inc()

        after = REGISTRY.get_sample_value("backfill_items_total", {"status": "processed"})
        assert after == before + 1

    def test_pages_total_by_outcome(self):
        before = REGISTRY.get_sample_value("backfill_pages_total", {"outcome": "failed"}) or 0

        PAGES_TOTAL.labels(outcome="failed").inc(2)

        assert REGISTRY.get_sample_value("backfill_pages_total", {"outcome": "failed"}) == before + 2

    def test_store_retries_by_operation(self):
        labels = {"operation": "read_related"}
        before = REGISTRY.get_sample_value("backfill_store_retries_total", labels) or 0

        STORE_RETRIES.labels(**labels).inc()

        assert REGISTRY.get_sample_value("backfill_store_retries_total", labels) == before + 1


class TestGaugeMetrics:
    """Tests for gauge metrics."""

    def test_source_offset(self):
        SOURCE_OFFSET.set(125)
        assert REGISTRY.get_sample_value("backfill_source_offset") == 125

    def test_consecutive_page_errors(self):
        CONSECUTIVE_PAGE_ERRORS.set(2)
        assert REGISTRY.get_sample_value("backfill_consecutive_page_errors") == 2
        CONSECUTIVE_PAGE_ERRORS.set(0)


class TestHistogramMetrics:
    """Tests for histogram metrics."""

    def test_enrichment_duration_observation(self):
        before = REGISTRY.get_sample_value("backfill_enrichment_duration_seconds_count") or 0

        ENRICHMENT_DURATION.observe(1.5)

        assert REGISTRY.get_sample_value("backfill_enrichment_duration_seconds_count") == before + 1


class TestExposition:
    """Tests for metrics text output."""

    def test_metrics_text_uses_private_registry(self):
        text = get_metrics_text().decode("utf-8")

        assert "backfill_items_total" in text
        assert "backfill_source_offset" in text
        # Default process collectors are not registered
        assert "process_cpu_seconds_total" not in text

    def test_registry_is_isolated(self):
        from prometheus_client import REGISTRY as DEFAULT_REGISTRY

        assert REGISTRY is not DEFAULT_REGISTRY

    def test_write_textfile(self, tmp_path):
        target = tmp_path / "metrics" / "backfill.prom"

        written = write_metrics_textfile(str(target))

        assert written == target
        assert "backfill_pages_total" in target.read_text()
        assert not target.with_suffix(".prom.tmp").exists()

    def test_write_textfile_disabled(self):
        assert write_metrics_textfile(None) is None
