"""Cooperative delays and the linear backoff formula shared by retrying callers."""

import asyncio


async def sleep_ms(ms: float) -> None:
    """Suspend the current task for at least ``ms`` milliseconds.

    Non-positive durations still yield to the event loop once.
    """
    await asyncio.sleep(max(ms, 0) / 1000.0)


async def sleep_seconds(seconds: float) -> None:
    """Seconds-based variant used as tenacity's sleep hook."""
    await sleep_ms(seconds * 1000.0)


def backoff_delay_ms(base_delay_ms: float, retry_count: int) -> float:
    """Delay before retry number ``retry_count`` (0-indexed).

    Grows linearly and starts at twice the base delay:
    ``base_delay_ms * (retry_count + 2)``. No jitter.
    """
    return base_delay_ms * (retry_count + 2)
