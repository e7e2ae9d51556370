"""Bounded status polling.

``poll_until`` repeatedly asks for a status string until it reaches a terminal
value or the deadline passes. Waiting uses ``asyncio.sleep`` so the poll can be
cancelled at any point; the clock and sleep are injectable for tests.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Collection, Optional

logger = logging.getLogger(__name__)


class PollOutcome(str, Enum):
    """Tagged result of a bounded poll."""

    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class PollResult:
    outcome: PollOutcome
    status: Optional[str]
    attempts: int
    elapsed: float

    @property
    def ok(self) -> bool:
        return self.outcome is PollOutcome.COMPLETED


async def poll_until(
    check: Callable[[], Awaitable[str]],
    *,
    interval: float,
    timeout: float,
    success: Collection[str] = ("completed",),
    failure: Collection[str] = ("failed", "cancelled"),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> PollResult:
    """Poll ``check`` every ``interval`` seconds until a terminal status or ``timeout``.

    Args:
        check: Coroutine factory returning the current status string
        interval: Seconds to wait between checks
        timeout: Overall deadline in seconds, measured from the first check
        success: Statuses that end the poll as COMPLETED
        failure: Statuses that end the poll as FAILED

    Returns:
        PollResult tagged COMPLETED, FAILED or TIMED_OUT. Errors raised by
        ``check`` propagate unchanged.
    """
    if interval <= 0:
        raise ValueError("interval must be positive")
    if timeout <= 0:
        raise ValueError("timeout must be positive")

    started = clock()
    deadline = started + timeout
    attempts = 0
    status: Optional[str] = None

    while True:
        status = await check()
        attempts += 1

        if status in success:
            return PollResult(PollOutcome.COMPLETED, status, attempts, clock() - started)
        if status in failure:
            return PollResult(PollOutcome.FAILED, status, attempts, clock() - started)

        remaining = deadline - clock()
        if remaining <= 0:
            logger.warning(f"Polling gave up after {attempts} checks (last status: {status})")
            return PollResult(PollOutcome.TIMED_OUT, status, attempts, clock() - started)

        await sleep(min(interval, remaining))
