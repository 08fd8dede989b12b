"""RequestGovernor — request spacing, quota cooldown, FIFO queue and small caches."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict, deque
from typing import TYPE_CHECKING, Any, TypeVar

from lumina.llm.transport import ErrorKind, TransportError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from lumina.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

QUOTE_CACHE_KEY = "daily"


class ExpiringCache:
    """String cache where every entry expires *ttl* seconds after it was written.

    Entries are evicted oldest-first once *maxsize* is reached.
    """

    def __init__(self, ttl: float, clock: Callable[[], float], maxsize: int = 128) -> None:
        self._ttl = ttl
        self._clock = clock
        self._maxsize = maxsize
        self._entries: OrderedDict[str, tuple[float, str]] = OrderedDict()

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        written_at, value = entry
        if self._clock() - written_at >= self._ttl:
            del self._entries[key]
            return None
        return value

    def put(self, key: str, value: str) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (self._clock(), value)
        while len(self._entries) > self._maxsize:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RequestGovernor:
    """Gatekeeper for every outbound model request.

    - ``acquire_permit()`` waits out an active quota cooldown and then the
      remainder of ``min_interval`` since the previous permit.
    - ``enqueue()`` / ``submit()`` run request factories strictly in arrival
      order, one permit per request, from a single drain task. A request
      that fails with a quota ``TransportError`` starts the cooldown before
      the next one is let through.
    - ``quote_cache`` and ``search_cache`` hold low-variance answers.

    One instance is shared by the whole process. *clock* and *sleep* are
    injectable so tests can run on a fake clock.
    """

    def __init__(
        self,
        *,
        min_interval: float = 3.0,
        quota_cooldown: float = 60.0,
        quote_ttl: float = 3600.0,
        search_ttl: float = 1800.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._min_interval = min_interval
        self._quota_cooldown = quota_cooldown
        self._clock = clock
        self._sleep = sleep
        self._last_permit_at: float | None = None
        self._cooldown_until = 0.0
        self._permit_lock = asyncio.Lock()
        self._queue: deque[tuple[Callable[[], Awaitable[Any]], asyncio.Future]] = deque()
        self._drainer: asyncio.Task | None = None
        self.quote_cache = ExpiringCache(quote_ttl, clock, maxsize=1)
        self.search_cache = ExpiringCache(search_ttl, clock)

    @classmethod
    def from_settings(cls, settings: Settings) -> RequestGovernor:
        return cls(
            min_interval=settings.min_request_interval_seconds,
            quota_cooldown=settings.quota_cooldown_seconds,
            quote_ttl=settings.quote_cache_ttl_seconds,
            search_ttl=settings.search_cache_ttl_seconds,
        )

    # -- Rate limiting ---------------------------------------------------------

    @property
    def cooldown_remaining(self) -> float:
        """Seconds left on the quota cooldown (0 when none is active)."""
        return max(0.0, self._cooldown_until - self._clock())

    @property
    def pending(self) -> int:
        """Requests waiting in the queue."""
        return len(self._queue)

    def start_cooldown(self, seconds: float) -> None:
        """Hold back every permit for *seconds*. Never shortens an active cooldown."""
        deadline = self._clock() + seconds
        if deadline > self._cooldown_until:
            self._cooldown_until = deadline
            logger.warning("Quota exhausted; pausing model requests for %.0fs", seconds)

    def _permit_wait(self) -> float:
        now = self._clock()
        wait = self._cooldown_until - now
        if self._last_permit_at is not None:
            wait = max(wait, self._last_permit_at + self._min_interval - now)
        return wait

    async def acquire_permit(self, withdrawn: Callable[[], bool] | None = None) -> bool:
        """Wait until a request may be sent, then claim the slot.

        Both the cooldown and the spacing are re-checked after every sleep,
        so a cooldown started while waiting still applies. When *withdrawn*
        reports True the wait ends without claiming the slot and False is
        returned.
        """
        async with self._permit_lock:
            while True:
                if withdrawn is not None and withdrawn():
                    return False
                wait = self._permit_wait()
                if wait <= 0:
                    break
                logger.info("Rate limited. Waiting %.1fs before next request", wait)
                await self._sleep(wait)

            self._last_permit_at = self._clock()
            return True

    # -- Queue -----------------------------------------------------------------

    def enqueue(self, task: Callable[[], Awaitable[T]]) -> asyncio.Future[T]:
        """Append a request factory to the FIFO and return a future for its result.

        Cancelling the returned future withdraws the request: if it has not
        started it is skipped without claiming a permit, if it is running it
        is cancelled.
        """
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._queue.append((task, future))
        if self._drainer is None or self._drainer.done():
            self._drainer = asyncio.create_task(self._drain())
        return future

    async def submit(self, task: Callable[[], Awaitable[T]]) -> T:
        """Enqueue *task* and wait for its result."""
        return await self.enqueue(task)

    async def _drain(self) -> None:
        while self._queue:
            task, future = self._queue.popleft()
            if future.done():
                logger.debug("Skipping withdrawn request")
                continue

            if not await self.acquire_permit(withdrawn=future.done):
                logger.debug("Request withdrawn while waiting for a permit")
                continue

            try:
                running = asyncio.ensure_future(task())
            except Exception as exc:
                logger.warning("Queued request failed to start: %s", exc)
                future.set_exception(exc)
                continue

            future.add_done_callback(
                lambda f, r=running: r.cancel() if f.cancelled() else None
            )
            await asyncio.wait({running})

            if running.cancelled():
                logger.info("Queued request abandoned by caller")
                continue
            exc = running.exception()
            if exc is not None:
                logger.warning("Queued request failed: %s", exc)
                if isinstance(exc, TransportError) and exc.kind is ErrorKind.QUOTA:
                    self.start_cooldown(self._quota_cooldown)
                if not future.done():
                    future.set_exception(exc)
            elif not future.done():
                future.set_result(running.result())
