"""Orchestration module for the resumable batch pipeline."""

from src.orchestration.batch_pipeline import (
    BatchOrchestrator,
    PipelineState,
    RunState,
)
from src.orchestration.result import RunResult, RunStatus

__all__ = [
    "BatchOrchestrator",
    "PipelineState",
    "RunState",
    "RunResult",
    "RunStatus",
]
