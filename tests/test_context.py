"""
Request Context Tests
---------------------
Tests for cancellation contexts and racing awaitables against them.
"""

import asyncio

import pytest

from apiclient.context import RequestContext, background, with_timeout
from apiclient.errors import CancellationError, DeadlineExceededError


class TestRequestContextState:
    """Tests for context state."""

    def test_new_context_not_done(self):
        """Fresh context is active with no error."""
        ctx = RequestContext()

        assert not ctx.done
        assert ctx.error() is None
        assert ctx.remaining() is None

    def test_cancel(self):
        """cancel() marks the context done."""
        ctx = RequestContext()
        ctx.cancel("user abort")

        assert ctx.done
        assert ctx.cancelled
        error = ctx.error()
        assert isinstance(error, CancellationError)
        assert not isinstance(error, DeadlineExceededError)
        assert "user abort" in str(error)

    def test_zero_timeout_is_expired(self):
        """A zero timeout is done immediately."""
        ctx = with_timeout(0)

        assert ctx.done
        assert isinstance(ctx.error(), DeadlineExceededError)

    def test_negative_timeout_rejected(self):
        """Negative timeouts are invalid."""
        with pytest.raises(ValueError):
            RequestContext(timeout=-1)

    def test_background_never_done(self):
        """The background context cannot be cancelled."""
        ctx = background()

        assert not ctx.done
        assert ctx is background()
        with pytest.raises(ValueError):
            ctx.cancel()


class TestRequestContextRun:
    """Tests for racing awaitables."""

    @pytest.mark.asyncio
    async def test_run_returns_result(self):
        """Result is returned when the awaitable wins."""
        async def work():
            return 42

        assert await RequestContext(timeout=1.0).run(work()) == 42

    @pytest.mark.asyncio
    async def test_run_propagates_exception(self):
        """Exceptions from the awaitable reach the caller."""
        async def fail():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await RequestContext().run(fail())

    @pytest.mark.asyncio
    async def test_run_on_done_context(self):
        """A done context never starts the awaitable."""
        started = False

        async def work():
            nonlocal started
            started = True

        ctx = RequestContext()
        ctx.cancel()

        with pytest.raises(CancellationError):
            await ctx.run(work())
        assert not started

    @pytest.mark.asyncio
    async def test_deadline_cancels_awaitable(self):
        """The awaitable is cancelled when the deadline passes first."""
        cancelled = asyncio.Event()

        async def slow():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with pytest.raises(DeadlineExceededError):
            await RequestContext(timeout=0.05).run(slow())
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_cancel_from_other_task(self):
        """cancel() from another task wakes run()."""
        ctx = RequestContext()

        async def cancel_soon():
            await asyncio.sleep(0.05)
            ctx.cancel()

        canceller = asyncio.create_task(cancel_soon())
        with pytest.raises(CancellationError):
            await ctx.run(asyncio.sleep(10))
        await canceller

    @pytest.mark.asyncio
    async def test_wait_returns_after_deadline(self):
        """wait() returns once the deadline passes."""
        ctx = RequestContext(timeout=0.05)
        await asyncio.wait_for(ctx.wait(), timeout=1.0)

        assert ctx.done
