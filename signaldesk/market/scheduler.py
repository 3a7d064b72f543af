"""Request scheduler — paces outbound market-data calls.

All vendor calls funnel through one FIFO queue drained by a single worker
task, so the minimum-interval and daily-budget rules hold for every caller
sharing the scheduler.

Rules:
    1. Operations are dispatched strictly in submission order.
    2. Two dispatches never *start* less than ``min_interval`` seconds apart.
    3. The daily counter is incremented before the operation runs.  Work
       still waiting in the queue counts against the budget too.
    4. The scheduler does not refuse work.  Callers check
       :meth:`RequestScheduler.is_over_daily_limit` before enqueueing and
       use mock data instead.
    5. The counter resets lazily on the first check after local midnight.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger("signaldesk.market")

Operation = Callable[[], Awaitable[Any]]


def next_local_midnight(now: datetime) -> datetime:
    """Return the midnight that starts the day after *now*."""
    tomorrow = now.date() + timedelta(days=1)
    return datetime.combine(tomorrow, datetime.min.time(), tzinfo=now.tzinfo)


class RequestScheduler:
    """Single-flight, interval-paced request queue with a daily call budget.

    Args:
        min_interval: Minimum seconds between dispatch starts.
        daily_budget: Calls allowed per local day.
        clock: Monotonic seconds, used for interval pacing.
        now: Local wall-clock time, used for the midnight reset.
        sleep: Coroutine used to wait out the interval.
    """

    def __init__(
        self,
        min_interval: float = 8.5,
        daily_budget: int = 750,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if min_interval < 0:
            raise ValueError(f"min_interval must be non-negative, got {min_interval}")
        if daily_budget < 0:
            raise ValueError(f"daily_budget must be non-negative, got {daily_budget}")
        self._min_interval = min_interval
        self._daily_budget = daily_budget
        self._clock = clock
        self._now = now
        self._sleep = sleep

        self._queue: deque[tuple[Operation, asyncio.Future]] = deque()
        self._worker: Optional[asyncio.Task] = None
        self._last_dispatch: Optional[float] = None
        self._calls_today: int = 0
        self._pending: int = 0
        self._next_reset: datetime = next_local_midnight(now())

    # ── Public API ───────────────────────────────────────────────────────

    async def throttle(self, operation: Operation) -> Any:
        """Enqueue *operation* and return its result once dispatched.

        Exceptions raised by *operation* are re-raised here, to this caller
        only; the queue keeps draining.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._queue.append((operation, future))
        self._pending += 1
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain())
        return await future

    def is_over_daily_limit(self) -> bool:
        """``True`` once dispatched plus queued calls reach the daily budget."""
        self._reset_if_due()
        return self._calls_today + self._pending >= self._daily_budget

    @property
    def calls_today(self) -> int:
        self._reset_if_due()
        return self._calls_today

    @property
    def remaining_budget(self) -> int:
        return max(0, self._daily_budget - self.calls_today - self._pending)

    @property
    def daily_budget(self) -> int:
        return self._daily_budget

    @property
    def min_interval(self) -> float:
        return self._min_interval

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def next_reset(self) -> datetime:
        return self._next_reset

    def snapshot(self) -> dict:
        """Return a JSON-friendly view of the scheduler state."""
        return {
            "calls_today": self.calls_today,
            "daily_budget": self._daily_budget,
            "remaining_budget": self.remaining_budget,
            "over_daily_limit": self.is_over_daily_limit(),
            "queue_length": self.queue_length,
            "min_interval_seconds": self._min_interval,
            "next_reset": self._next_reset.isoformat(),
        }

    # ── Internals ────────────────────────────────────────────────────────

    def _reset_if_due(self) -> None:
        current = self._now()
        if current >= self._next_reset:
            logger.info(
                "Daily request counter reset (%d calls used yesterday)",
                self._calls_today,
            )
            self._calls_today = 0
            self._next_reset = next_local_midnight(current)

    async def _drain(self) -> None:
        while self._queue:
            operation, future = self._queue.popleft()
            dispatched = False
            try:
                if future.done():
                    # Caller gave up before dispatch
                    continue

                if self._last_dispatch is not None:
                    wait = self._last_dispatch + self._min_interval - self._clock()
                    if wait > 0:
                        await self._sleep(wait)
                    if future.done():
                        continue

                self._reset_if_due()
                self._pending -= 1
                self._calls_today += 1
                dispatched = True
                self._last_dispatch = self._clock()
                logger.debug(
                    "Dispatching request %d/%d (%d queued)",
                    self._calls_today, self._daily_budget, len(self._queue),
                )

                try:
                    result = await operation()
                except Exception as exc:
                    if not future.done():
                        future.set_exception(exc)
                else:
                    if not future.done():
                        future.set_result(result)
            finally:
                if not dispatched:
                    self._pending -= 1
                # Worker interrupted mid-item: release the waiting caller
                if not future.done():
                    future.cancel()
