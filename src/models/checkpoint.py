"""Data models for checkpoint system."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CheckpointBackend(str, Enum):
    FILE = "file"
    DISKCACHE = "diskcache"


class CheckpointConfig(BaseModel):
    """Checkpoint configuration"""

    model_config = ConfigDict(protected_namespaces=())

    enabled: bool = True
    backend: CheckpointBackend = CheckpointBackend.FILE
    checkpoint_dir: str = "./checkpoints"
    name: str = Field("embedding_checkpoint", pattern=r"^[A-Za-z0-9_.-]+$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Checkpoint(BaseModel):
    """Durable progress record for a backfill run.

    Serialized with camelCase keys so the on-disk record reads
    ``{"lastProcessedOffset", "totalProcessed", "failedKeys", "timestamp"}``.
    """

    model_config = ConfigDict(protected_namespaces=(), populate_by_name=True)

    last_processed_offset: int = Field(0, ge=0, alias="lastProcessedOffset")
    total_processed: int = Field(0, ge=0, alias="totalProcessed")
    failed_keys: List[str] = Field(default_factory=list, alias="failedKeys")
    timestamp: datetime = Field(default_factory=_utcnow)

    @field_validator("failed_keys", mode="before")
    @classmethod
    def dedupe_failed_keys(cls, v: Any) -> Any:
        # Set semantics, first-seen order kept for stable files
        if isinstance(v, (list, tuple, set)):
            return list(dict.fromkeys(str(k) for k in v))
        return v

    @property
    def failed_set(self) -> Set[str]:
        """Get failed keys as a set for O(1) lookup"""
        return set(self.failed_keys)

    def to_record(self) -> dict:
        """JSON-ready dict using the on-disk key names."""
        return self.model_dump(mode="json", by_alias=True)
