from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence


class RecordStore(ABC):
    """Abstract base class for the remote record store

    The pipeline treats the store as an opaque paginated read/write service.
    Implementations raise the store errors from ``src.utils.exceptions`` so
    that the retry policy can classify failures.
    """

    @abstractmethod
    async def read_page(self, offset: int, limit: int) -> List[Dict[str, Any]]:
        """Read up to ``limit`` rows starting at ``offset``

        Ordering must be stable across calls within a run so that
        offset-based paging neither skips nor repeats rows.

        Args:
            offset: Zero-based row offset
            limit: Maximum number of rows to return

        Returns:
            Ordered list of 0..limit raw rows
        """
        pass

    @abstractmethod
    async def read_related(self, keys: Sequence[str]) -> List[Dict[str, Any]]:
        """Read secondary records joined to the given primary keys

        Args:
            keys: Primary keys of a page

        Returns:
            Secondary rows; keys without a secondary record are absent
        """
        pass

    @abstractmethod
    async def write_record(self, key: str, fields: Dict[str, Any]) -> None:
        """Upsert derived fields for one key

        Must be idempotent under repeated identical writes.
        """
        pass

    @abstractmethod
    async def count_units(self) -> int:
        """Number of rows still lacking derived fields"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Store name for logging and identification"""
        pass
