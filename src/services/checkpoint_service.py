"""
Checkpoint service for resumable backfill runs.

Persists the run's progress record after every page so that a halted or
interrupted run resumes from the last consumed offset, skipping keys that
already failed. The storage slot is pluggable: a JSON file written with an
atomic rename (default) or a diskcache entry.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

import diskcache
import structlog
from pydantic import ValidationError

from src.models.checkpoint import Checkpoint, CheckpointBackend, CheckpointConfig
from src.utils.exceptions import CheckpointError

logger = structlog.get_logger()


class CheckpointStore(ABC):
    """Durable slot holding one JSON-serializable checkpoint record"""

    @abstractmethod
    def read(self) -> Optional[Dict[str, Any]]:
        """Return the stored record, or None when the slot is empty.

        Raises:
            CheckpointError: Slot exists but cannot be read/decoded
        """
        pass

    @abstractmethod
    def write(self, record: Dict[str, Any]) -> None:
        """Overwrite the slot. Raises CheckpointError on failure."""
        pass

    @abstractmethod
    def delete(self) -> None:
        """Empty the slot (no error if already empty)."""
        pass

    @property
    @abstractmethod
    def location(self) -> str:
        """Human-readable location for logs"""
        pass

    def close(self) -> None:
        """Release handles held by the slot (nothing to do by default)."""
        pass


class FileCheckpointStore(CheckpointStore):
    """JSON file slot; writes go to a temp file which is then renamed."""

    def __init__(self, path: Path):
        self.path = Path(path)

    @property
    def location(self) -> str:
        return str(self.path)

    def read(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None

        try:
            with open(self.path, "r") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CheckpointError(f"Cannot read checkpoint {self.path}: {e}") from e

    def write(self, record: Dict[str, Any]) -> None:
        temp_file = self.path.with_suffix(".tmp")

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w") as f:
                json.dump(record, f, indent=2, default=str)

            # Atomic rename
            temp_file.replace(self.path)
        except OSError as e:
            raise CheckpointError(f"Cannot write checkpoint {self.path}: {e}") from e

    def delete(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise CheckpointError(f"Cannot delete checkpoint {self.path}: {e}") from e


class DiskCacheCheckpointStore(CheckpointStore):
    """Checkpoint kept under one key of a diskcache (SQLite-backed) cache."""

    def __init__(self, directory: Path, key: str):
        self.directory = Path(directory)
        self.key = key
        self.cache = diskcache.Cache(str(self.directory))

    @property
    def location(self) -> str:
        return f"{self.directory}#{self.key}"

    def read(self) -> Optional[Dict[str, Any]]:
        try:
            raw = self.cache.get(self.key)
        except Exception as e:
            raise CheckpointError(f"Cannot read checkpoint {self.location}: {e}") from e

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            raise CheckpointError(f"Corrupt checkpoint {self.location}: {e}") from e

    def write(self, record: Dict[str, Any]) -> None:
        try:
            # diskcache commits each set in its own transaction
            self.cache.set(self.key, json.dumps(record, default=str))
        except Exception as e:
            raise CheckpointError(f"Cannot write checkpoint {self.location}: {e}") from e

    def delete(self) -> None:
        try:
            self.cache.delete(self.key)
        except Exception as e:
            raise CheckpointError(
                f"Cannot delete checkpoint {self.location}: {e}"
            ) from e

    def close(self) -> None:
        self.cache.close()


def build_checkpoint_store(config: CheckpointConfig) -> CheckpointStore:
    """Create the store selected by ``config.backend``."""
    checkpoint_dir = Path(config.checkpoint_dir)

    if config.backend == CheckpointBackend.DISKCACHE:
        return DiskCacheCheckpointStore(checkpoint_dir, key=config.name)

    return FileCheckpointStore(checkpoint_dir / f"{config.name}.json")


class CheckpointService:
    """
    Load, save and clear the pipeline checkpoint.

    Failures never propagate: a missing or unreadable checkpoint loads as
    the default (offset 0, nothing failed) and a failed save is reported
    through the return value.
    """

    def __init__(
        self,
        config: CheckpointConfig,
        store: Optional[CheckpointStore] = None,
    ):
        """
        Initialize checkpoint service.

        Args:
            config: Checkpoint configuration
            store: Explicit storage slot (defaults to one built from config)
        """
        self.config = config
        self.store = store or build_checkpoint_store(config)

        if not config.enabled:
            logger.info("checkpoint_service_disabled")
            return

        logger.info(
            "checkpoint_service_initialized",
            backend=config.backend.value,
            location=self.store.location,
        )

    def load(self) -> Checkpoint:
        """
        Load the checkpoint, or defaults if there is none.

        Returns:
            Persisted checkpoint or a fresh one starting at offset 0
        """
        if not self.config.enabled:
            return Checkpoint()

        try:
            record = self.store.read()
        except CheckpointError as e:
            logger.warning("checkpoint_load_error", error=str(e))
            return Checkpoint()

        if record is None:
            logger.debug("no_checkpoint_found", location=self.store.location)
            return Checkpoint()

        try:
            checkpoint = Checkpoint.model_validate(record)
        except ValidationError as e:
            logger.warning("checkpoint_invalid", error=str(e))
            return Checkpoint()

        logger.info(
            "checkpoint_loaded",
            offset=checkpoint.last_processed_offset,
            total_processed=checkpoint.total_processed,
            failed_keys=len(checkpoint.failed_keys),
        )
        return checkpoint

    def exists(self) -> bool:
        try:
            return self.store.read() is not None
        except CheckpointError:
            return True

    def save(self, checkpoint: Checkpoint) -> bool:
        """
        Persist the checkpoint, overwriting the previous one.

        Returns:
            True if saved successfully
        """
        if not self.config.enabled:
            return True

        try:
            self.store.write(checkpoint.to_record())
        except CheckpointError as e:
            logger.error("checkpoint_save_error", error=str(e))
            return False

        logger.debug(
            "checkpoint_saved",
            offset=checkpoint.last_processed_offset,
            total_processed=checkpoint.total_processed,
            failed_keys=len(checkpoint.failed_keys),
        )
        return True

    def clear(self) -> bool:
        """
        Delete the checkpoint (also forgets failed keys).

        Returns:
            True if cleared successfully
        """
        if not self.config.enabled:
            return True

        try:
            self.store.delete()
        except CheckpointError as e:
            logger.error("checkpoint_clear_error", error=str(e))
            return False

        logger.info("checkpoint_cleared", location=self.store.location)
        return True

    def close(self) -> None:
        self.store.close()
