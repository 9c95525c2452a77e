"""
Request Context
---------------
Explicit per-call cancellation handle.

A context is done once it is cancelled or its deadline passes. Every
blocking step of a dispatch (waiting for a token, sending, reading the
body) is raced against the context, so cancelling it aborts the call.

Usage:
    ctx = RequestContext(timeout=5.0)
    data = await client.get_json(ctx, config, request)

    # from another task
    ctx.cancel()
"""

from typing import Any, Awaitable, Optional, TypeVar
import asyncio
import time

from .errors import CancellationError, DeadlineExceededError

T = TypeVar('T')


class RequestContext:
    """
    Cancellation signal with an optional deadline.

    Not thread-safe: cancel() must be called from the event loop thread.
    """

    def __init__(self, timeout: Optional[float] = None):
        if timeout is not None and timeout < 0:
            raise ValueError(f"timeout must be non-negative, got {timeout}")
        self._deadline: Optional[float] = (
            time.monotonic() + timeout if timeout is not None else None
        )
        self._event: Optional[asyncio.Event] = None
        self._cancelled = False
        self._expired = False
        self._reason: Optional[str] = None

    @property
    def deadline(self) -> Optional[float]:
        """Deadline on the time.monotonic() clock, or None."""
        return self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, or None if there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        """True once cancelled or past the deadline."""
        if self._cancelled or self._expired:
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._expired = True
            return True
        return False

    def cancel(self, reason: Optional[str] = None) -> None:
        """Cancel the context. Later calls are no-ops."""
        if self.done:
            return
        self._cancelled = True
        self._reason = reason
        if self._event is not None:
            self._event.set()

    def error(self) -> Optional[CancellationError]:
        """Return the error describing why the context is done, or None."""
        if not self.done:
            return None
        if self._cancelled:
            return CancellationError(
                f"context cancelled: {self._reason}" if self._reason else "context cancelled",
                details={"reason": self._reason},
            )
        return DeadlineExceededError()

    async def wait(self) -> None:
        """Block until the context is done."""
        if self.done:
            return
        if self._event is None:
            self._event = asyncio.Event()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=self.remaining())
        except asyncio.TimeoutError:
            self._expired = True

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Race an awaitable against this context.

        Returns the awaitable's result if it finishes first. Otherwise the
        awaitable is cancelled and the context's error is raised. If both
        finish together, the result wins.
        """
        if self.done:
            _discard(awaitable)
            raise self.error()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if task.done():
            waiter.cancel()
            return task.result()

        task.cancel()
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is None:
            return task.result()
        raise self.error()

    def __repr__(self) -> str:
        state = "done" if self.done else "active"
        return f"RequestContext({state}, remaining={self.remaining()})"


class _BackgroundContext(RequestContext):
    """Context that is never done."""

    def cancel(self, reason: Optional[str] = None) -> None:
        raise ValueError("the background context cannot be cancelled")

    async def run(self, awaitable: Awaitable[T]) -> T:
        return await awaitable

    def __repr__(self) -> str:
        return "RequestContext(background)"


_BACKGROUND = _BackgroundContext()


def background() -> RequestContext:
    """Get the shared context that is never cancelled."""
    return _BACKGROUND


def with_timeout(seconds: float) -> RequestContext:
    """Create a context that expires after the given number of seconds."""
    return RequestContext(timeout=seconds)


def _discard(awaitable: Any) -> None:
    """Close an unstarted coroutine so it does not warn about never being awaited."""
    if asyncio.iscoroutine(awaitable):
        awaitable.close()
    elif isinstance(awaitable, asyncio.Future):
        awaitable.cancel()
