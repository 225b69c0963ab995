"""Integration tests for multi-run resumption.

Drives several consecutive runs against one in-memory store and one
persisted checkpoint, the way an operator re-launches a halted backfill:
1. First run halts on a flaky page
2. Second run halts again further along
3. Third run completes and clears the checkpoint
"""

import pytest

from src.models.checkpoint import CheckpointBackend, CheckpointConfig
from src.models.config import BatchSettings
from src.orchestration import BatchOrchestrator, RunStatus
from src.services.checkpoint_service import CheckpointService
from src.services.enrichment.adapter import EnrichmentAdapter
from src.services.fetcher import RetryingFetcher
from tests.fakes import FakeEnricher, FakeStore, make_casts, make_users


def launch(store, enricher, config: CheckpointConfig) -> BatchOrchestrator:
    fetcher = RetryingFetcher(store, max_retries=1, base_delay_ms=0)
    return BatchOrchestrator(
        fetcher,
        EnrichmentAdapter(enricher, fetcher),
        CheckpointService(config),
        BatchSettings(
            page_size=4,
            delay_between_requests_ms=0,
            parallel_limit=2,
            consecutive_error_threshold=2,
            max_retries=1,
        ),
    )


@pytest.fixture(params=[CheckpointBackend.FILE, CheckpointBackend.DISKCACHE])
def checkpoint_config(request, tmp_path):
    return CheckpointConfig(backend=request.param, checkpoint_dir=str(tmp_path / "cp"))


@pytest.mark.asyncio
async def test_backfill_resumes_across_runs(checkpoint_config):
    users = make_users(14)
    # fid 6 has no casts -> skipped; fid 3 and 10 always fail to enrich
    casts = make_casts([u["fid"] for u in users if u["fid"] != 6])
    # Each page-level attempt costs 2 store calls (1 retry); threshold is 2
    store = FakeStore(users, casts=casts, page_failures={4: 4, 8: 4})
    enricher = FakeEnricher(fail_keys={"3", "10"})

    first = await launch(store, enricher, checkpoint_config).run()
    assert first.status == RunStatus.HALTED
    assert first.final_offset == 4

    second = await launch(store, enricher, checkpoint_config).run()
    assert second.status == RunStatus.HALTED
    assert second.start_offset == 4
    assert second.final_offset == 8

    service = CheckpointService(checkpoint_config)
    halted = service.load()
    assert halted.last_processed_offset == 8
    assert halted.failed_keys == ["3"]
    service.close()

    third = await launch(store, enricher, checkpoint_config).run()
    assert third.status == RunStatus.COMPLETED
    assert third.start_offset == 8
    assert third.final_offset == 14
    assert third.checkpoint_cleared is True

    # 14 users - 1 skipped - 2 failed, each written once
    assert third.total_processed == 11
    assert sorted(store.write_log, key=int) == [
        str(fid) for fid in range(1, 15) if fid not in (3, 6, 10)
    ]
    assert "6" not in enricher.calls
    assert enricher.calls.count("3") == 1
    assert enricher.calls.count("10") == 1
    assert CheckpointService(checkpoint_config).exists() is False
