"""
Rate-limited request queue for outbound Hospitable calls.
Per-key fixed-window counters with a FIFO queue drained by one worker task per key.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, Optional, Tuple

from app.utils.exceptions import ServiceUnavailableError

logger = logging.getLogger(__name__)

RequestFactory = Callable[[], Awaitable[Any]]


@dataclass
class WindowState:
    """Request counter for one key within the current window."""
    count: int
    window_start: float


class RateLimitedRequestQueue:
    """
    In-memory outbound request queue.

    Every key (for example ``customer_listings_{customerId}``) gets its own
    fixed window of ``max_requests`` calls per ``window_seconds``. Calls are
    started strictly in the order they were enqueued, spaced by
    ``request_spacing`` seconds. When the window is exhausted the worker
    sleeps until it resets (plus ``reset_buffer``) and carries on.

    State lives in the process only; nothing is shared between workers of a
    horizontally scaled deployment.
    """

    def __init__(
        self,
        max_requests: int = 30,
        window_seconds: float = 60.0,
        request_spacing: float = 1.0,
        reset_buffer: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.request_spacing = request_spacing
        self.reset_buffer = reset_buffer
        self._clock = clock
        self._sleep = sleep

        self._windows: Dict[str, WindowState] = {}
        self._queues: Dict[str, Deque[Tuple[RequestFactory, asyncio.Future]]] = {}
        self._workers: Dict[str, asyncio.Task] = {}
        self._closed = False

    def try_acquire(self, key: str) -> bool:
        """
        Take one slot in the key's current window.

        Args:
            key: Rate limit key

        Returns:
            True if the call may start now, False if the window is exhausted
        """
        now = self._clock()
        state = self._windows.get(key)

        if state is None or now - state.window_start >= self.window_seconds:
            state = WindowState(count=0, window_start=now)
            self._windows[key] = state

        if state.count >= self.max_requests:
            return False

        state.count += 1
        return True

    def time_until_reset(self, key: str) -> float:
        """Seconds until the key's window expires (0 when no window is open)."""
        state = self._windows.get(key)
        if state is None:
            return 0.0
        return max(0.0, state.window_start + self.window_seconds - self._clock())

    async def enqueue(self, key: str, request: RequestFactory) -> Any:
        """
        Queue a call and wait for its outcome.

        Args:
            key: Rate limit key
            request: Zero-argument coroutine function performing the call

        Returns:
            Whatever the call returns

        Raises:
            Whatever the call raises, or ServiceUnavailableError when the
            queue is closed before the call starts
        """
        if self._closed:
            raise ServiceUnavailableError("Request queue is closed")

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._queues.setdefault(key, deque()).append((request, future))

        worker = self._workers.get(key)
        if worker is None or worker.done():
            self._workers[key] = loop.create_task(self._drain(key), name=f"rate-limit-drain:{key}")

        return await future

    async def _drain(self, key: str) -> None:
        """Start queued calls for one key in FIFO order until the queue is empty."""
        queue = self._queues[key]
        started_any = False

        try:
            while queue:
                # Callers that gave up do not consume a slot
                while queue and queue[0][1].done():
                    queue.popleft()
                if not queue:
                    break

                if started_any and self.request_spacing > 0:
                    await self._sleep(self.request_spacing)

                while not self.try_acquire(key):
                    wait_for = self.time_until_reset(key) + self.reset_buffer
                    logger.info(
                        f"Rate limit reached for {key}, waiting {wait_for:.1f}s "
                        f"({len(queue)} queued)"
                    )
                    await self._sleep(wait_for)
                    self._windows[key] = WindowState(count=0, window_start=self._clock())

                request, future = queue.popleft()
                started_any = True
                if future.done():
                    continue

                try:
                    result = await request()
                except asyncio.CancelledError:
                    if not future.done():
                        future.set_exception(ServiceUnavailableError("Request queue is closed"))
                    raise
                except Exception as e:
                    if not future.done():
                        future.set_exception(e)
                else:
                    if not future.done():
                        future.set_result(result)
        finally:
            if self._workers.get(key) is asyncio.current_task():
                del self._workers[key]
            if not queue:
                self._queues.pop(key, None)

    def stats(self, key: str) -> Dict[str, Any]:
        """Current counters for a key."""
        state = self._windows.get(key)
        count = 0
        if state is not None and self._clock() - state.window_start < self.window_seconds:
            count = state.count

        return {
            "key": key,
            "count": count,
            "max_requests": self.max_requests,
            "remaining": max(0, self.max_requests - count),
            "window_seconds": self.window_seconds,
            "reset_in": self.time_until_reset(key) if count else 0.0,
            "queued": len(self._queues.get(key, ())),
            "draining": key in self._workers,
        }

    def reset(self, key: Optional[str] = None) -> None:
        """Forget window counters for one key, or for all keys."""
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)

    async def close(self) -> None:
        """Cancel drain workers and fail every call that has not started."""
        self._closed = True

        workers = list(self._workers.values())
        for worker in workers:
            worker.cancel()
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)
        self._workers.clear()

        pending = 0
        for queue in self._queues.values():
            while queue:
                _, future = queue.popleft()
                if not future.done():
                    future.set_exception(ServiceUnavailableError("Request queue is closed"))
                    pending += 1
        self._queues.clear()

        if pending:
            logger.warning(f"Request queue closed with {pending} pending calls")
