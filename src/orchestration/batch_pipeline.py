"""Resumable checkpointed batch pipeline.

Pages through the source strictly sequentially, enriches each page's
eligible items in bounded-parallel windows, and persists a checkpoint after
every page:

    INIT -> FETCH_PAGE -> BUILD_ITEMS -> ENRICH_PARALLEL -> PERSIST_CHECKPOINT
         -> (FETCH_PAGE | DONE | HALTED)

Failure handling:
- Transient store errors are retried inside the fetcher
- A page whose reads fail for good is retried at the same offset after an
  extended delay; enough of those in a row halts the run
- A single item's failure is recorded in the failed-key set and never
  affects its siblings
- Halted runs keep their checkpoint; completed runs clear it
"""

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Tuple

import structlog

from src.models.checkpoint import Checkpoint
from src.models.config import BatchSettings, PipelineConfig
from src.models.work_item import EnrichmentResult, PageOutcome, WorkItem
from src.observability.metrics import (
    CONSECUTIVE_PAGE_ERRORS,
    ITEMS_TOTAL,
    PAGES_TOTAL,
    SOURCE_OFFSET,
)
from src.orchestration.result import RunResult, RunStatus
from src.services.checkpoint_service import CheckpointService
from src.services.enrichment.adapter import EnrichmentAdapter
from src.services.fetcher import RetryingFetcher
from src.services.profile_builder import SKIP_ALREADY_ENRICHED, ProfileBuilder
from src.services.progress_tracker import ProgressTracker
from src.utils.delay import sleep_ms

logger = structlog.get_logger()


class PipelineState(str, Enum):
    INIT = "init"
    FETCH_PAGE = "fetch_page"
    BUILD_ITEMS = "build_items"
    ENRICH_PARALLEL = "enrich_parallel"
    PERSIST_CHECKPOINT = "persist_checkpoint"
    DONE = "done"
    HALTED = "halted"


@dataclass
class RunState:
    """Mutable state of one run, owned by the orchestrator."""

    checkpoint: Checkpoint
    failed_keys: Set[str] = field(default_factory=set)
    consecutive_errors: int = 0
    pages_processed: int = 0
    exhausted: bool = False
    state: PipelineState = PipelineState.INIT

    @property
    def offset(self) -> int:
        return self.checkpoint.last_processed_offset


class BatchOrchestrator:
    """Drive a full backfill run from checkpoint to exhaustion or halt"""

    def __init__(
        self,
        fetcher: RetryingFetcher,
        adapter: EnrichmentAdapter,
        checkpoint_service: CheckpointService,
        settings: BatchSettings,
        builder: Optional[ProfileBuilder] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            fetcher: Retrying facade over the record store
            adapter: Item-level enrichment + write-back
            checkpoint_service: Durable progress record
            settings: Page size, pacing, parallelism and halt threshold
            builder: Row-to-work-item mapper
        """
        self.fetcher = fetcher
        self.adapter = adapter
        self.checkpoint_service = checkpoint_service
        self.settings = settings
        self.builder = builder or ProfileBuilder()

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "BatchOrchestrator":
        """Wire the PostgREST store, OpenAI enricher and checkpoint slot."""
        from src.services.enrichment.openai_enricher import OpenAIEnricher
        from src.services.store.postgrest import PostgrestStore

        fetcher = RetryingFetcher(
            PostgrestStore(config.store),
            max_retries=config.batch.max_retries,
            base_delay_ms=config.batch.delay_between_requests_ms,
        )
        return cls(
            fetcher=fetcher,
            adapter=EnrichmentAdapter(OpenAIEnricher(config.enrichment), fetcher),
            checkpoint_service=CheckpointService(config.checkpoint),
            settings=config.batch,
            builder=ProfileBuilder(key_field=config.store.key_field),
        )

    async def run(self) -> RunResult:
        """
        Execute one run.

        Returns:
            RunResult describing how the run ended. Page-level and item-level
            failures never escape; only cancellation propagates.
        """
        run = self._init_state()
        start_offset = run.offset
        tracker = ProgressTracker(
            total_units=await self._count_pending_units(),
            interval_seconds=self.settings.progress_interval_seconds,
        )

        logger.info(
            "run_started",
            offset=start_offset,
            total_processed=run.checkpoint.total_processed,
            previously_failed=len(run.failed_keys),
            total_units=tracker.stats.total_units,
            page_size=self.settings.page_size,
            parallel_limit=self.settings.parallel_limit,
        )

        try:
            await self._loop(run, tracker)
        except asyncio.CancelledError:
            logger.warning(
                "run_cancelled",
                offset=run.offset,
                pages_processed=run.pages_processed,
            )
            tracker.log_progress()
            raise

        return self._finish(run, tracker, start_offset)

    def _init_state(self) -> RunState:
        checkpoint = self.checkpoint_service.load()
        run = RunState(checkpoint=checkpoint, failed_keys=checkpoint.failed_set)
        SOURCE_OFFSET.set(run.offset)
        CONSECUTIVE_PAGE_ERRORS.set(0)

        if run.failed_keys:
            logger.info("previously_failed_keys_loaded", count=len(run.failed_keys))
        return run

    async def _count_pending_units(self) -> int:
        """Best effort: an unknown total only disables the ETA.

        The store counts rows still lacking derived fields, so rows that
        earlier runs enriched are left out of the total.
        """
        try:
            total = await self.fetcher.count_units()
        except Exception as e:
            logger.warning("unit_count_unavailable", error=str(e))
            return 0
        return total

    async def _loop(self, run: RunState, tracker: ProgressTracker) -> None:
        page_size = self.settings.page_size
        delay_ms = self.settings.delay_between_requests_ms

        while True:
            self._transition(run, PipelineState.FETCH_PAGE)
            offset = run.offset

            try:
                rows, related = await self._fetch_page(offset, page_size)

                if not rows:
                    run.exhausted = True
                    break

                self._transition(run, PipelineState.BUILD_ITEMS)
                items = self.builder.build(rows, related)

                self._transition(run, PipelineState.ENRICH_PARALLEL)
                outcome = await self._process_items(items, run)
                outcome.rows_fetched = len(rows)

            except Exception as e:
                run.consecutive_errors += 1
                PAGES_TOTAL.labels(outcome="failed").inc()
                CONSECUTIVE_PAGE_ERRORS.set(run.consecutive_errors)
                logger.error(
                    "page_failed",
                    offset=offset,
                    limit=page_size,
                    consecutive_errors=run.consecutive_errors,
                    threshold=self.settings.consecutive_error_threshold,
                    error_type=type(e).__name__,
                    error=str(e),
                )

                if run.consecutive_errors >= self.settings.consecutive_error_threshold:
                    break

                await sleep_ms(delay_ms * 2)
                continue

            self._transition(run, PipelineState.PERSIST_CHECKPOINT)
            self._persist_checkpoint(run, outcome)
            tracker.update(
                outcome.processed,
                outcome.skipped,
                outcome.failed,
                already_enriched=outcome.already_enriched,
            )

            if len(rows) < page_size:
                run.exhausted = True
                break

            await sleep_ms(delay_ms)

    async def _fetch_page(
        self, offset: int, limit: int
    ) -> Tuple[List[dict], List[dict]]:
        logger.info("fetching_page", offset=offset, limit=limit)
        rows = await self.fetcher.read_page(offset, limit)
        if not rows:
            return [], []

        keys = self.builder.keys(rows)
        related = await self.fetcher.read_related(keys)
        logger.info(
            "page_fetched",
            offset=offset,
            rows=len(rows),
            related=len(related),
        )
        return rows, related

    async def _process_items(self, items: List[WorkItem], run: RunState) -> PageOutcome:
        """
        Enrich eligible items in sequential windows of ``parallel_limit``.

        Args:
            items: All work items of the page
            run: Current run state (its failed-key set is updated)

        Returns:
            Page counts and the keys that failed for the first time
        """
        outcome = PageOutcome()
        eligible = [item for item in items if item.eligible]
        outcome.skipped = len(items) - len(eligible)

        if outcome.skipped:
            reasons = Counter(item.skip_reason for item in items if not item.eligible)
            outcome.already_enriched = reasons[SKIP_ALREADY_ENRICHED]
            for reason, count in reasons.items():
                logger.info("items_skipped", count=count, reason=reason)
            ITEMS_TOTAL.labels(status="skipped").inc(outcome.skipped)

        limit = self.settings.parallel_limit
        for start in range(0, len(eligible), limit):
            window = eligible[start : start + limit]
            results = await self._enrich_window(window, run)

            for result in results:
                if result.success:
                    outcome.processed += 1
                    ITEMS_TOTAL.labels(status="processed").inc()
                    continue

                outcome.failed += 1
                ITEMS_TOTAL.labels(status="failed").inc()
                if not result.previously_failed and result.key not in run.failed_keys:
                    run.failed_keys.add(result.key)
                    outcome.newly_failed_keys.append(result.key)

            if start + limit < len(eligible):
                await sleep_ms(self.settings.delay_between_requests_ms)

        return outcome

    async def _enrich_window(
        self, window: List[WorkItem], run: RunState
    ) -> List[EnrichmentResult]:
        gathered = await asyncio.gather(
            *(self._enrich_item(item, run.failed_keys) for item in window),
            return_exceptions=True,
        )

        results: List[EnrichmentResult] = []
        for item, value in zip(window, gathered):
            if isinstance(value, EnrichmentResult):
                results.append(value)
            elif isinstance(value, Exception):
                # Adapter contract broken; still only this item fails
                logger.error("item_enrichment_crashed", key=item.key, error=str(value))
                results.append(
                    EnrichmentResult(key=item.key, success=False, error=str(value))
                )
            else:
                raise value
        return results

    async def _enrich_item(self, item: WorkItem, failed_keys: Set[str]) -> EnrichmentResult:
        if item.key in failed_keys:
            logger.info("skipping_previously_failed_key", key=item.key)
            return EnrichmentResult(key=item.key, success=False, previously_failed=True)

        return await self.adapter.enrich(item)

    def _persist_checkpoint(self, run: RunState, outcome: PageOutcome) -> None:
        previous = run.checkpoint
        run.checkpoint = Checkpoint(
            last_processed_offset=previous.last_processed_offset + outcome.rows_fetched,
            total_processed=previous.total_processed + outcome.processed,
            failed_keys=sorted(run.failed_keys),
        )
        run.consecutive_errors = 0
        run.pages_processed += 1

        saved = self.checkpoint_service.save(run.checkpoint)

        PAGES_TOTAL.labels(outcome="success").inc()
        SOURCE_OFFSET.set(run.offset)
        CONSECUTIVE_PAGE_ERRORS.set(0)

        logger.info(
            "page_completed",
            offset=run.offset,
            rows=outcome.rows_fetched,
            processed=outcome.processed,
            skipped=outcome.skipped,
            failed=outcome.failed,
            newly_failed=len(outcome.newly_failed_keys),
            checkpoint_saved=saved,
        )

    def _finish(self, run: RunState, tracker: ProgressTracker, start_offset: int) -> RunResult:
        cleared = False
        if run.exhausted:
            self._transition(run, PipelineState.DONE)
            cleared = self.checkpoint_service.clear()
            status = RunStatus.COMPLETED
        else:
            self._transition(run, PipelineState.HALTED)
            status = RunStatus.HALTED

        tracker.log_progress()
        stats = tracker.get_stats()

        result = RunResult(
            status=status,
            stats=stats,
            pages_processed=run.pages_processed,
            start_offset=start_offset,
            final_offset=run.offset,
            total_processed=run.checkpoint.total_processed,
            failed_keys=len(run.failed_keys),
            consecutive_errors=run.consecutive_errors,
            store_retries=self.fetcher.retry_context.total_retries,
            checkpoint_cleared=cleared,
        )

        if status == RunStatus.COMPLETED:
            logger.info("run_completed", **result.to_dict())
        else:
            logger.warning("run_halted", **result.to_dict())

        return result

    def _transition(self, run: RunState, state: PipelineState) -> None:
        logger.debug("state_transition", from_state=run.state.value, to_state=state.value)
        run.state = state
