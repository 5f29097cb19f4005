"""Tests for cancel module."""

import asyncio

import pytest

from amigo_sdk.client import CancelReason, CancelToken, sleep
from amigo_sdk.errors import RequestCancelledError


class TestCancelToken:
    """Tests for CancelToken."""

    def test_initial_state(self) -> None:
        """Test initial token state."""
        token = CancelToken()
        assert token.is_cancelled is False
        assert token.reason is None

    def test_cancel(self) -> None:
        """Test cancellation."""
        token = CancelToken()
        result = token.cancel(CancelReason.USER_REQUEST)

        assert result is True
        assert token.is_cancelled is True
        assert token.reason == CancelReason.USER_REQUEST

    def test_cancel_twice(self) -> None:
        """Test cancelling twice returns False."""
        token = CancelToken()
        first = token.cancel()
        second = token.cancel()

        assert first is True
        assert second is False

    def test_cancel_with_metadata(self) -> None:
        """Test cancellation with metadata."""
        token = CancelToken()
        token.cancel(CancelReason.SHUTDOWN, source="atexit")

        assert token.state.metadata["source"] == "atexit"
        assert token.state.timestamp is not None

    @pytest.mark.asyncio
    async def test_wait(self) -> None:
        """Test waiting for cancellation."""
        token = CancelToken()

        async def cancel_later() -> None:
            await asyncio.sleep(0.01)
            token.cancel(CancelReason.USER_REQUEST)

        task = asyncio.create_task(cancel_later())
        reason = await token.wait()
        await task

        assert reason == CancelReason.USER_REQUEST

    @pytest.mark.asyncio
    async def test_timeout_cancels_token(self) -> None:
        """Test a token with a timeout cancels itself."""
        token = CancelToken(timeout=0.01)

        reason = await asyncio.wait_for(token.wait(), timeout=5)

        assert reason == CancelReason.TIMEOUT
        assert token.is_cancelled

    def test_on_cancel_callback(self) -> None:
        """Test callback on cancel."""
        token = CancelToken()
        called = []

        token.on_cancel(called.append)
        token.cancel(CancelReason.SHUTDOWN)

        assert called == [CancelReason.SHUTDOWN]

    def test_callback_called_immediately_if_cancelled(self) -> None:
        """Test callback called immediately if already cancelled."""
        token = CancelToken()
        token.cancel(CancelReason.SHUTDOWN)

        called = []
        token.on_cancel(called.append)

        assert len(called) == 1

    def test_raise_if_cancelled(self) -> None:
        """Test raise_if_cancelled."""
        token = CancelToken()

        # Should not raise
        token.raise_if_cancelled()

        token.cancel(CancelReason.TIMEOUT)
        with pytest.raises(RequestCancelledError) as exc_info:
            token.raise_if_cancelled()
        assert exc_info.value.reason == CancelReason.TIMEOUT


class TestGuard:
    """Tests for CancelToken.guard."""

    @pytest.mark.asyncio
    async def test_returns_result(self) -> None:
        """Test guard passes through the awaitable's result."""
        token = CancelToken()

        async def work() -> int:
            return 42

        assert await token.guard(work()) == 42

    @pytest.mark.asyncio
    async def test_propagates_exception(self) -> None:
        """Test guard re-raises the awaitable's exception."""
        token = CancelToken()

        async def work() -> None:
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await token.guard(work())

    @pytest.mark.asyncio
    async def test_already_cancelled(self) -> None:
        """Test guard refuses to start when already cancelled."""
        token = CancelToken()
        token.cancel()
        started = []

        async def work() -> None:
            started.append(True)

        with pytest.raises(RequestCancelledError):
            await token.guard(work())
        assert started == []

    @pytest.mark.asyncio
    async def test_cancel_while_waiting(self) -> None:
        """Test the awaited task is cancelled when the token fires."""
        token = CancelToken()
        cancelled = asyncio.Event()

        async def work() -> None:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        asyncio.get_running_loop().call_later(0.01, token.cancel)

        with pytest.raises(RequestCancelledError):
            await asyncio.wait_for(token.guard(work()), timeout=5)
        assert cancelled.is_set()


class TestSleep:
    """Tests for the interruptible sleep."""

    @pytest.mark.asyncio
    async def test_zero_returns_immediately(self) -> None:
        """Test non-positive durations do not wait."""
        await asyncio.wait_for(sleep(0), timeout=1)
        await asyncio.wait_for(sleep(-1, CancelToken()), timeout=1)

    @pytest.mark.asyncio
    async def test_sleep_without_token(self) -> None:
        """Test plain sleeping."""
        await sleep(0.001)

    @pytest.mark.asyncio
    async def test_sleep_cancelled(self) -> None:
        """Test cancelling the token wakes the sleeper with an error."""
        token = CancelToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)

        with pytest.raises(RequestCancelledError):
            await asyncio.wait_for(sleep(10, token), timeout=5)

    @pytest.mark.asyncio
    async def test_sleep_already_cancelled(self) -> None:
        """Test sleeping on a cancelled token raises immediately."""
        token = CancelToken()
        token.cancel()

        with pytest.raises(RequestCancelledError):
            await sleep(0, token)
