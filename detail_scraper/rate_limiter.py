"""
Sequential, jittered rate limiter for polite scraping.

Operations are dispatched one at a time in submission order. Before each
dispatch the limiter draws a random delay in [min_delay, max_delay] and waits
until that much time has passed since the previous dispatch.
"""
import asyncio
import inspect
import logging
import random
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Optional, Tuple, Union

logger = logging.getLogger(__name__)

Operation = Callable[[], Union[Any, Awaitable[Any]]]


class RateLimiter:
    def __init__(
        self,
        min_delay: float = 1.0,
        max_delay: float = 2.0,
        rng: Optional[random.Random] = None,
    ):
        if min_delay < 0 or max_delay < min_delay:
            raise ValueError(f"Invalid delay range [{min_delay}, {max_delay}]")
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.last_dispatch_time: Optional[float] = None
        self._rng = rng or random.Random()
        self._queue: Deque[Tuple[Operation, asyncio.Future]] = deque()
        self._dispatcher: Optional[asyncio.Task] = None

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    def throttle(self, operation: Operation) -> asyncio.Future:
        """
        Queue a no-argument operation and return a future for its outcome.

        The operation may return a plain value or an awaitable. The caller is
        never blocked; await the returned future to get the result (or the
        exception the operation raised).
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._queue.append((operation, future))

        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = loop.create_task(self._dispatch())
        return future

    async def _dispatch(self) -> None:
        loop = asyncio.get_running_loop()
        while self._queue:
            delay = self._rng.uniform(self.min_delay, self.max_delay)
            if self.last_dispatch_time is not None:
                wait = max(0.0, delay - (loop.time() - self.last_dispatch_time))
                if wait > 0:
                    await asyncio.sleep(wait)

            operation, future = self._queue.popleft()
            if future.cancelled():
                continue

            self.last_dispatch_time = loop.time()
            try:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
            except asyncio.CancelledError:
                future.cancel()
                raise
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)

    async def close(self) -> None:
        """Stop the dispatcher and cancel operations that have not started"""
        while self._queue:
            _, future = self._queue.popleft()
            future.cancel()
        if self._dispatcher is not None and not self._dispatcher.done():
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
        self._dispatcher = None
