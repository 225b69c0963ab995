"""Unit tests for cooperative delays and the backoff formula"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from src.utils.delay import backoff_delay_ms, sleep_ms, sleep_seconds


class TestBackoffDelay:
    """Tests for backoff_delay_ms."""

    def test_first_retry_is_twice_base(self):
        assert backoff_delay_ms(2000, 0) == 4000

    def test_grows_linearly(self):
        delays = [backoff_delay_ms(2000, n) for n in range(3)]
        assert delays == [4000, 6000, 8000]

    def test_zero_base(self):
        assert backoff_delay_ms(0, 5) == 0


class TestSleep:
    """Tests for sleep_ms / sleep_seconds."""

    @pytest.mark.asyncio
    async def test_sleep_ms_converts_to_seconds(self):
        with patch("src.utils.delay.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await sleep_ms(1500)
        mock_sleep.assert_awaited_once_with(1.5)

    @pytest.mark.asyncio
    async def test_negative_duration_still_yields(self):
        with patch("src.utils.delay.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await sleep_ms(-10)
        mock_sleep.assert_awaited_once_with(0)

    @pytest.mark.asyncio
    async def test_sleep_seconds_routes_through_sleep_ms(self):
        with patch("src.utils.delay.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await sleep_seconds(0.25)
        mock_sleep.assert_awaited_once_with(0.25)

    @pytest.mark.asyncio
    async def test_sleep_is_cancellable(self):
        task = asyncio.create_task(sleep_ms(10_000))
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
