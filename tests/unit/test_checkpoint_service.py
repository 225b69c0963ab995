"""Unit tests for checkpoint service"""

import json
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from src.models.checkpoint import Checkpoint, CheckpointBackend, CheckpointConfig
from src.services.checkpoint_service import (
    CheckpointService,
    DiskCacheCheckpointStore,
    FileCheckpointStore,
    build_checkpoint_store,
)
from src.utils.exceptions import CheckpointError


@pytest.fixture
def temp_checkpoint_dir():
    """Create temporary checkpoint directory"""
    temp_dir = Path(tempfile.mkdtemp())
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def checkpoint_service(temp_checkpoint_dir):
    """Create checkpoint service with temp directory"""
    config = CheckpointConfig(enabled=True, checkpoint_dir=str(temp_checkpoint_dir))
    return CheckpointService(config)


@pytest.fixture
def diskcache_service(temp_checkpoint_dir):
    """Checkpoint service backed by diskcache"""
    config = CheckpointConfig(
        enabled=True,
        backend=CheckpointBackend.DISKCACHE,
        checkpoint_dir=str(temp_checkpoint_dir / "cache"),
    )
    service = CheckpointService(config)
    yield service
    service.close()


@pytest.fixture
def disabled_checkpoint_service(temp_checkpoint_dir):
    """Create disabled checkpoint service"""
    config = CheckpointConfig(enabled=False, checkpoint_dir=str(temp_checkpoint_dir))
    return CheckpointService(config)


def test_load_without_checkpoint_returns_defaults(checkpoint_service):
    """Test missing checkpoint loads as offset 0 with no failed keys"""
    checkpoint = checkpoint_service.load()

    assert checkpoint.last_processed_offset == 0
    assert checkpoint.total_processed == 0
    assert checkpoint.failed_keys == []
    assert checkpoint_service.exists() is False


def test_save_and_load_checkpoint(checkpoint_service):
    """Test saving and loading checkpoint"""
    saved = Checkpoint(
        last_processed_offset=50, total_processed=47, failed_keys=["12", "99"]
    )

    assert checkpoint_service.save(saved) is True

    loaded = checkpoint_service.load()
    assert loaded.last_processed_offset == 50
    assert loaded.total_processed == 47
    assert loaded.failed_set == {"12", "99"}
    assert checkpoint_service.exists() is True


def test_save_overwrites_previous(checkpoint_service):
    """Test each save replaces the stored record"""
    checkpoint_service.save(Checkpoint(last_processed_offset=25, total_processed=25))
    checkpoint_service.save(Checkpoint(last_processed_offset=50, total_processed=49))

    assert checkpoint_service.load().last_processed_offset == 50


def test_atomic_save_uses_temp_file(checkpoint_service, temp_checkpoint_dir):
    """Test that save uses atomic write with temp file"""
    checkpoint_service.save(Checkpoint(last_processed_offset=25, failed_keys=["7"]))

    checkpoint_file = temp_checkpoint_dir / "embedding_checkpoint.json"
    assert checkpoint_file.exists()
    assert not checkpoint_file.with_suffix(".tmp").exists()

    with open(checkpoint_file, "r") as f:
        data = json.load(f)

    # On-disk record uses camelCase keys
    assert data["lastProcessedOffset"] == 25
    assert data["totalProcessed"] == 0
    assert data["failedKeys"] == ["7"]
    assert "timestamp" in data


def test_load_accepts_camel_case_record(checkpoint_service, temp_checkpoint_dir):
    """Test a hand-written record in the on-disk format loads"""
    record = {
        "lastProcessedOffset": 75,
        "totalProcessed": 70,
        "failedKeys": ["1", "2", "1"],
        "timestamp": "2025-01-01T00:00:00+00:00",
    }
    (temp_checkpoint_dir / "embedding_checkpoint.json").write_text(json.dumps(record))

    loaded = checkpoint_service.load()
    assert loaded.last_processed_offset == 75
    assert loaded.failed_keys == ["1", "2"]


def test_load_corrupted_checkpoint(checkpoint_service, temp_checkpoint_dir):
    """Test corrupted file falls back to defaults"""
    (temp_checkpoint_dir / "embedding_checkpoint.json").write_text("{ invalid json")

    checkpoint = checkpoint_service.load()
    assert checkpoint.last_processed_offset == 0
    assert checkpoint.failed_keys == []


def test_load_invalid_record(checkpoint_service, temp_checkpoint_dir):
    """Test schema-invalid record falls back to defaults"""
    record = {"lastProcessedOffset": -5, "totalProcessed": "many"}
    (temp_checkpoint_dir / "embedding_checkpoint.json").write_text(json.dumps(record))

    assert checkpoint_service.load().last_processed_offset == 0


def test_clear_checkpoint(checkpoint_service):
    """Test clear removes the record and forgets failed keys"""
    checkpoint_service.save(Checkpoint(last_processed_offset=25, failed_keys=["3"]))

    assert checkpoint_service.clear() is True
    assert checkpoint_service.exists() is False
    assert checkpoint_service.load().failed_keys == []


def test_clear_without_checkpoint(checkpoint_service):
    """Test clearing an empty slot succeeds"""
    assert checkpoint_service.clear() is True


def test_disabled_service(disabled_checkpoint_service, temp_checkpoint_dir):
    """Test disabled service never touches storage"""
    assert disabled_checkpoint_service.save(Checkpoint(last_processed_offset=25)) is True
    assert disabled_checkpoint_service.load().last_processed_offset == 0
    assert disabled_checkpoint_service.clear() is True
    assert not (temp_checkpoint_dir / "embedding_checkpoint.json").exists()


def test_save_failure_returns_false(temp_checkpoint_dir):
    """Test a failing store is reported through the return value"""

    class BrokenStore(FileCheckpointStore):
        def write(self, record):
            raise CheckpointError("disk full")

    config = CheckpointConfig(checkpoint_dir=str(temp_checkpoint_dir))
    service = CheckpointService(config, store=BrokenStore(temp_checkpoint_dir / "x.json"))

    assert service.save(Checkpoint(last_processed_offset=25)) is False


def test_diskcache_backend_roundtrip(diskcache_service):
    """Test diskcache backend persists and clears"""
    assert isinstance(diskcache_service.store, DiskCacheCheckpointStore)

    diskcache_service.save(Checkpoint(last_processed_offset=100, failed_keys=["5"]))
    loaded = diskcache_service.load()
    assert loaded.last_processed_offset == 100
    assert loaded.failed_keys == ["5"]

    assert diskcache_service.clear() is True
    assert diskcache_service.exists() is False


def test_diskcache_survives_reopen(temp_checkpoint_dir):
    """Test diskcache record is durable across service instances"""
    config = CheckpointConfig(
        backend=CheckpointBackend.DISKCACHE,
        checkpoint_dir=str(temp_checkpoint_dir / "cache"),
    )
    first = CheckpointService(config)
    first.save(Checkpoint(last_processed_offset=30, total_processed=28))
    first.close()

    second = CheckpointService(config)
    assert second.load().total_processed == 28
    second.close()


def test_close_releases_diskcache_handle(temp_checkpoint_dir):
    """Test service close closes the underlying cache"""
    config = CheckpointConfig(
        backend=CheckpointBackend.DISKCACHE,
        checkpoint_dir=str(temp_checkpoint_dir / "cache"),
    )
    service = CheckpointService(config)

    with patch.object(type(service.store.cache), "close") as mock_close:
        service.close()

    mock_close.assert_called_once()
    service.store.cache.close()


def test_close_file_backend_is_noop(checkpoint_service):
    """Test file backend close leaves the service usable"""
    checkpoint_service.close()

    assert checkpoint_service.save(Checkpoint(last_processed_offset=5)) is True
    assert checkpoint_service.load().last_processed_offset == 5


def test_build_checkpoint_store_file_path(temp_checkpoint_dir):
    """Test file backend location comes from dir and name"""
    config = CheckpointConfig(checkpoint_dir=str(temp_checkpoint_dir), name="nightly")
    store = build_checkpoint_store(config)

    assert isinstance(store, FileCheckpointStore)
    assert store.path == temp_checkpoint_dir / "nightly.json"


def test_checkpoint_name_validation():
    """Test checkpoint name cannot contain path separators"""
    with pytest.raises(ValueError):
        CheckpointConfig(name="../escape")
