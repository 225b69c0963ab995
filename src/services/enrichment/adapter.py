"""Enrichment adapter: enrich one item and write the result back.

The adapter is the item-level failure boundary. Whatever goes wrong while
enriching or writing back a single item is turned into a failed
``EnrichmentResult`` so that sibling items and the page carry on.
"""

import time

import structlog

from src.models.work_item import EnrichmentResult, WorkItem
from src.observability.metrics import ENRICHMENT_DURATION
from src.services.enrichment.base import Enricher
from src.services.fetcher import RetryingFetcher

logger = structlog.get_logger()


class EnrichmentAdapter:
    """Run the external enricher for a work item and persist its output"""

    def __init__(self, enricher: Enricher, fetcher: RetryingFetcher):
        self.enricher = enricher
        self.fetcher = fetcher

    async def enrich(self, item: WorkItem) -> EnrichmentResult:
        """
        Enrich one item and upsert the derived fields under its key.

        Never raises for ordinary failures; cancellation still propagates.

        Args:
            item: Eligible work item

        Returns:
            Success with derived fields, or failure with an error message
        """
        start_time = time.monotonic()
        logger.debug("item_enrichment_started", key=item.key, enricher=self.enricher.name)

        try:
            derived_fields = await self.enricher.enrich(item.payload)
            await self.fetcher.write_record(item.key, derived_fields)

        except Exception as e:
            logger.error(
                "item_enrichment_failed",
                key=item.key,
                error_type=type(e).__name__,
                error=str(e),
            )
            return EnrichmentResult(
                key=item.key,
                success=False,
                error=f"{type(e).__name__}: {e}",
            )

        finally:
            ENRICHMENT_DURATION.observe(time.monotonic() - start_time)

        logger.info("item_enriched", key=item.key)
        return EnrichmentResult(key=item.key, success=True, derived_fields=derived_fields)
