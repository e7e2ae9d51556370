"""Tests for bounded status polling."""

import pytest

from live_kb_sync.core.polling import PollOutcome, poll_until


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def status_sequence(*statuses):
    remaining = list(statuses)

    async def check():
        return remaining.pop(0) if len(remaining) > 1 else remaining[0]

    return check


class TestPollUntil:
    """Test poll_until outcomes."""

    @pytest.mark.asyncio
    async def test_completes(self):
        clock = FakeClock()

        result = await poll_until(
            status_sequence("queued", "in_progress", "completed"),
            interval=2,
            timeout=180,
            sleep=clock.sleep,
            clock=clock,
        )

        assert result.outcome is PollOutcome.COMPLETED
        assert result.ok is True
        assert result.status == "completed"
        assert result.attempts == 3
        assert clock.sleeps == [2, 2]

    @pytest.mark.asyncio
    async def test_failed_status_is_terminal(self):
        clock = FakeClock()

        result = await poll_until(
            status_sequence("in_progress", "failed"),
            interval=2,
            timeout=180,
            sleep=clock.sleep,
            clock=clock,
        )

        assert result.outcome is PollOutcome.FAILED
        assert result.status == "failed"
        assert result.ok is False

    @pytest.mark.asyncio
    async def test_cancelled_status_is_failure(self):
        clock = FakeClock()

        result = await poll_until(
            status_sequence("cancelled"), interval=2, timeout=10, sleep=clock.sleep, clock=clock
        )

        assert result.outcome is PollOutcome.FAILED
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_times_out_without_overshooting_deadline(self):
        clock = FakeClock()

        result = await poll_until(
            status_sequence("in_progress"), interval=2, timeout=3, sleep=clock.sleep, clock=clock
        )

        assert result.outcome is PollOutcome.TIMED_OUT
        assert result.status == "in_progress"
        assert result.attempts == 3
        assert clock.sleeps == [2, 1]
        assert result.elapsed == 3

    @pytest.mark.asyncio
    async def test_check_errors_propagate(self):
        async def broken():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await poll_until(broken, interval=1, timeout=5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("interval,timeout", [(0, 5), (1, 0), (-1, 5)])
    async def test_rejects_non_positive_bounds(self, interval, timeout):
        with pytest.raises(ValueError):
            await poll_until(status_sequence("completed"), interval=interval, timeout=timeout)
