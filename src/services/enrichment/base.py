from abc import ABC, abstractmethod
from typing import Any, Dict


class Enricher(ABC):
    """Opaque external transform producing derived fields for one payload"""

    @abstractmethod
    async def enrich(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Compute derived fields for a work item payload

        Args:
            payload: Work item payload (e.g. a serialized UserProfile)

        Returns:
            Fields to write back under the item's key

        Raises:
            EnrichmentError: If no usable output was produced
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Enricher name for logging"""
        pass
