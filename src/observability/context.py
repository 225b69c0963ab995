"""Correlation ID context for tracing a backfill run through the logs.

The CLI sets one correlation ID per invocation (the run ID); every log
entry emitted during the run carries it, including those from concurrent
enrichment tasks, because ContextVars are copied into child tasks.

Usage:
    from src.observability.context import correlation_id_context, new_run_id

    with correlation_id_context(new_run_id()):
        await orchestrator.run()
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Generator, Optional

_correlation_id_var: ContextVar[Optional[str]] = ContextVar(
    "correlation_id", default=None
)


def new_run_id() -> str:
    """Generate a sortable run ID, e.g. ``backfill-20250203-101500-3f2a``."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"backfill-{stamp}-{uuid.uuid4().hex[:4]}"


def get_correlation_id() -> Optional[str]:
    return _correlation_id_var.get()


@contextmanager
def correlation_id_context(
    corr_id: Optional[str] = None,
) -> Generator[str, None, None]:
    """Scoped correlation ID; the previous value is restored on exit.

    Args:
        corr_id: Optional correlation ID. If None, generates UUID.

    Yields:
        The correlation ID being used in this context.
    """
    if corr_id is None:
        corr_id = str(uuid.uuid4())

    token = _correlation_id_var.set(corr_id)

    try:
        yield corr_id
    finally:
        _correlation_id_var.reset(token)
