"""Tests for the checkpoint model."""

from src.models.checkpoint import Checkpoint


class TestCheckpoint:
    """Tests for Checkpoint."""

    def test_defaults(self):
        checkpoint = Checkpoint()
        assert checkpoint.last_processed_offset == 0
        assert checkpoint.total_processed == 0
        assert checkpoint.failed_keys == []
        assert checkpoint.timestamp.tzinfo is not None

    def test_failed_keys_deduplicated_in_order(self):
        checkpoint = Checkpoint(failed_keys=["b", "a", "b", "c", "a"])
        assert checkpoint.failed_keys == ["b", "a", "c"]

    def test_failed_keys_coerced_to_str(self):
        checkpoint = Checkpoint.model_validate({"failedKeys": [1, 2]})
        assert checkpoint.failed_set == {"1", "2"}

    def test_populate_by_field_name_or_alias(self):
        by_name = Checkpoint(last_processed_offset=10)
        by_alias = Checkpoint.model_validate({"lastProcessedOffset": 10})
        assert by_name.last_processed_offset == by_alias.last_processed_offset

    def test_to_record_uses_aliases(self):
        record = Checkpoint(last_processed_offset=5, total_processed=4).to_record()
        assert set(record) == {
            "lastProcessedOffset",
            "totalProcessed",
            "failedKeys",
            "timestamp",
        }
        assert isinstance(record["timestamp"], str)
