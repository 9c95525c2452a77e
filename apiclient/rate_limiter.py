"""
Rate Limiter
------------
Token bucket rate limiter bounding how many requests may start per second.

Design:
- Bucket is a bounded asyncio.Queue pre-filled with one second of tokens
- Initial burst of requests_per_second dispatches proceeds with no wait
- After the warmup, one token is added every 1/requests_per_second seconds
- The queue is the only synchronization; no locks needed
- close() stops the refill task
"""

from typing import Any, Dict, Optional
import asyncio
import logging
import time

from .context import RequestContext, background

_TOKEN = 1


class RateLimiter:
    """
    Token bucket rate limiter.

    Safe for any number of concurrent tasks on one event loop. Waiters
    are not served in FIFO order.
    """

    def __init__(self, requests_per_second: int, warmup: float = 1.0):
        if isinstance(requests_per_second, bool) or not isinstance(requests_per_second, int):
            raise ValueError(f"requests_per_second must be an int, got {requests_per_second!r}")
        if requests_per_second <= 0:
            raise ValueError(f"requests_per_second must be positive, got {requests_per_second}")

        self._capacity = requests_per_second
        self._interval = 1.0 / requests_per_second
        self._warmup = warmup
        self._created = time.monotonic()
        self._logger = logging.getLogger("apiclient.rate_limiter")

        # Prefill with one second worth of requests
        self._tokens: asyncio.Queue = asyncio.Queue(maxsize=requests_per_second)
        for _ in range(requests_per_second):
            self._tokens.put_nowait(_TOKEN)

        self._refill_task: Optional[asyncio.Task] = None
        self._closed = False
        self._acquired = 0
        self._dropped = 0
        self._skipped = 0

        # Start right away when constructed inside a running loop
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            self.start()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def available(self) -> int:
        """Tokens currently in the bucket."""
        return self._tokens.qsize()

    @property
    def running(self) -> bool:
        return self._refill_task is not None and not self._refill_task.done()

    def start(self) -> None:
        """Start the refill task. Requires a running event loop."""
        if self._closed or self._refill_task is not None:
            return
        loop = asyncio.get_running_loop()
        self._refill_task = loop.create_task(self._refill())

    async def _refill(self) -> None:
        # Wait for the pre-filled quota to drain
        delay = self._warmup - (time.monotonic() - self._created)
        if delay > 0:
            await asyncio.sleep(delay)

        next_tick = time.monotonic()
        while True:
            next_tick += self._interval
            now = time.monotonic()
            if next_tick < now:
                # Fell behind (stalled loop): skip missed ticks, never replay them
                self._skipped += int((now - next_tick) / self._interval) + 1
                next_tick = now + self._interval
            await asyncio.sleep(next_tick - now)
            try:
                self._tokens.put_nowait(_TOKEN)
            except asyncio.QueueFull:
                self._dropped += 1
                self._logger.debug("Bucket full, refill dropped")

    async def acquire(self, ctx: Optional[RequestContext] = None) -> None:
        """
        Wait for a token.

        Raises the context's CancellationError if it fires first. A context
        that is already done consumes no token.
        """
        ctx = ctx or background()
        if ctx.done:
            raise ctx.error()

        self.start()

        try:
            self._tokens.get_nowait()
        except asyncio.QueueEmpty:
            await ctx.run(self._tokens.get())
        self._acquired += 1

    def try_acquire(self) -> bool:
        """
        Take a token without waiting.
        Returns True if a token was available.
        """
        try:
            self._tokens.get_nowait()
        except asyncio.QueueEmpty:
            return False
        self._acquired += 1
        return True

    async def close(self) -> None:
        """Stop refilling. Tokens left in the bucket can still be taken."""
        self._closed = True
        task, self._refill_task = self._refill_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def get_stats(self) -> Dict[str, Any]:
        """Get rate limiter statistics."""
        return {
            "capacity": self._capacity,
            "available": self.available,
            "acquired": self._acquired,
            "dropped_refills": self._dropped,
            "skipped_ticks": self._skipped,
            "running": self.running,
        }
