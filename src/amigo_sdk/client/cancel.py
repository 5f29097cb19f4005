"""
Request cancellation control.

Provides the cancellation token threaded through client calls, plus an
interruptible sleep used between retry attempts.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from amigo_sdk.errors import RequestCancelledError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


class CancelReason(str, Enum):
    """Reasons for cancellation."""

    USER_REQUEST = "user_request"
    TIMEOUT = "timeout"
    SHUTDOWN = "shutdown"


@dataclass
class CancelState:
    """State of a cancellation token.

    Attributes:
        cancelled: Whether cancellation was requested
        reason: Reason for cancellation
        timestamp: Time of cancellation
    """

    cancelled: bool = False
    reason: CancelReason | None = None
    timestamp: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class CancelToken:
    """Cancellation token for client calls.

    Pass a token to any client method; cancelling it interrupts a pending
    backoff sleep, abandons an in-flight request and stops NDJSON iteration.
    Cancellation is cooperative and surfaces as RequestCancelledError.

    Example:
        >>> token = CancelToken()
        >>> task = asyncio.create_task(
        ...     client.conversations.get_conversations(cancel_token=token)
        ... )
        >>> token.cancel()
    """

    def __init__(self, timeout: float | None = None) -> None:
        """Initialize cancellation token.

        Args:
            timeout: Optional timeout in seconds after which the token
                cancels itself
        """
        self._state = CancelState()
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[CancelReason], Any]] = []
        self._deadline: asyncio.TimerHandle | None = None

        if timeout:
            self._schedule_deadline(timeout)

    def _schedule_deadline(self, timeout: float) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Outside a loop only manual cancellation is available
            return
        self._deadline = loop.call_later(timeout, self.cancel, CancelReason.TIMEOUT)

    def cancel(
        self,
        reason: CancelReason = CancelReason.USER_REQUEST,
        **metadata: Any,
    ) -> bool:
        """Request cancellation.

        Args:
            reason: Reason for cancellation
            **metadata: Additional metadata

        Returns:
            True if cancellation was newly requested, False if already cancelled
        """
        state = self._state
        if state.cancelled:
            return False

        state.cancelled, state.reason, state.timestamp = True, reason, time.time()
        state.metadata.update(metadata)
        self._event.set()
        if self._deadline is not None:
            self._deadline.cancel()

        for callback in list(self._callbacks):
            callback(reason)

        return True

    @property
    def is_cancelled(self) -> bool:
        return self._state.cancelled

    @property
    def reason(self) -> CancelReason | None:
        return self._state.reason

    @property
    def state(self) -> CancelState:
        return self._state

    async def wait(self) -> CancelReason:
        """Block until the token fires and return its reason."""
        await self._event.wait()
        return self._state.reason or CancelReason.USER_REQUEST

    def on_cancel(self, callback: Callable[[CancelReason], Any]) -> CancelToken:
        """Call ``callback(reason)`` when the token fires, or now if it already has."""
        if self._state.cancelled:
            callback(self._state.reason or CancelReason.USER_REQUEST)
        else:
            self._callbacks.append(callback)
        return self

    def raise_if_cancelled(self) -> None:
        """Raise RequestCancelledError once the token has fired."""
        if self._state.cancelled:
            raise RequestCancelledError(self._state.reason)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        If the token is cancelled while waiting, the underlying task is
        cancelled and RequestCancelledError is raised.

        Args:
            awaitable: Coroutine or future to run

        Returns:
            The awaitable's result

        Raises:
            RequestCancelledError: If the token fired first
        """
        if self._state.cancelled:
            # Close an unstarted coroutine instead of leaking it
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise RequestCancelledError(self._state.reason)

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        raise RequestCancelledError(self._state.reason)


async def sleep(seconds: float, token: CancelToken | None = None) -> None:
    """Sleep for ``seconds``, waking early with an error if ``token`` fires.

    Non-positive durations return immediately.

    Raises:
        RequestCancelledError: If the token is or becomes cancelled
    """
    if token is not None:
        token.raise_if_cancelled()
    if seconds <= 0:
        return
    if token is None:
        await asyncio.sleep(seconds)
        return
    await token.guard(asyncio.sleep(seconds))
