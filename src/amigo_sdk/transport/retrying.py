"""
Retrying transport.

Wraps a base "send one request" function with the retry loop: per-attempt
eligibility, full-jitter backoff or server Retry-After hints, and
cancellation of both in-flight attempts and the sleeps between them.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

import httpx

from amigo_sdk.client.cancel import sleep as cancellable_sleep
from amigo_sdk.resilience.retry import RetryPolicy, parse_retry_after
from amigo_sdk.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from amigo_sdk.client.cancel import CancelToken

    SendFunction = Callable[[httpx.Request], Awaitable[httpx.Response]]
    SleepFunction = Callable[[float, CancelToken | None], Awaitable[None]]

logger = get_logger("amigo_sdk.transport.retrying")


class RetryingTransport:
    """Send requests through a base send function, retrying transient failures.

    Retry rules:
    - 2xx responses return immediately.
    - Transport errors (connection refused, DNS, timeouts) retry only for
      methods in ``policy.retryable_methods``.
    - Statuses in ``policy.retryable_status_codes`` retry only for retryable
      methods; a valid Retry-After header overrides the computed backoff.
    - A 429 on any other method (e.g. POST) retries only when the server
      sent a valid Retry-After.

    When retries are exhausted or not allowed, the last response is returned
    for the caller to classify, or the last transport error is re-raised.
    The same happens when the token is already cancelled after a failed
    attempt; a token firing before an attempt, while one is in flight, or
    during the backoff sleep raises RequestCancelledError.

    Example:
        >>> client = httpx.AsyncClient(base_url="https://api.amigo.ai")
        >>> transport = RetryingTransport(
        ...     lambda req: client.send(req, stream=True), RetryPolicy()
        ... )
        >>> response = await transport.send(client.build_request("GET", "/v1/org/service/"))
    """

    def __init__(
        self,
        send: SendFunction,
        policy: RetryPolicy | None = None,
        *,
        sleep: SleepFunction | None = None,
        rand: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the retrying transport.

        Args:
            send: Base primitive sending one request and returning its response
            policy: Retry policy (defaults to RetryPolicy())
            sleep: Interruptible sleep taking (seconds, cancel_token)
            rand: Uniform [0, 1] source for jitter
        """
        self._send = send
        self._policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rand = rand or random.random

    @property
    def policy(self) -> RetryPolicy:
        """Get the retry policy."""
        return self._policy

    async def send(
        self,
        request: httpx.Request,
        *,
        cancel_token: CancelToken | None = None,
    ) -> httpx.Response:
        """Send a request, retrying according to the policy.

        Args:
            request: Request to send
            cancel_token: Optional cancellation token

        Returns:
            The first 2xx response, or the last response if retries stop

        Raises:
            httpx.TransportError: Last transport failure when retries stop
            RequestCancelledError: If the token fires before an attempt, during one, or
                during the backoff sleep
        """
        policy = self._policy
        method = request.method.upper()
        method_retryable = policy.allows_method(method)
        sleep = self._sleep or cancellable_sleep

        for attempt in range(1, policy.max_attempts + 1):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            response: httpx.Response | None = None
            error: httpx.TransportError | None = None
            try:
                response = await self._attempt(request, cancel_token)
            except httpx.TransportError as exc:
                error = exc

            if response is not None and response.is_success:
                return response

            delay_ms = self._retry_delay(attempt, method_retryable, response, error)
            cancelled = cancel_token is not None and cancel_token.is_cancelled
            if delay_ms is None or attempt >= policy.max_attempts or cancelled:
                logger.debug(
                    "Not retrying request",
                    method=method,
                    url=str(request.url),
                    attempt=attempt,
                    status=response.status_code if response is not None else None,
                    error=repr(error) if error is not None else None,
                    cancelled=cancelled,
                )
                return _last_outcome(response, error)

            if response is not None:
                await response.aclose()

            logger.debug(
                "Retrying request",
                method=method,
                url=str(request.url),
                attempt=attempt,
                delay_ms=round(delay_ms, 1),
                status=response.status_code if response is not None else None,
                error=repr(error) if error is not None else None,
            )
            await sleep(max(0.0, delay_ms) / 1000.0, cancel_token)

        raise RuntimeError("Retry loop exited unexpectedly")

    async def _attempt(
        self,
        request: httpx.Request,
        cancel_token: CancelToken | None,
    ) -> httpx.Response:
        if cancel_token is None:
            return await self._send(request)
        return await cancel_token.guard(self._send(request))

    def _retry_delay(
        self,
        attempt: int,
        method_retryable: bool,
        response: httpx.Response | None,
        error: httpx.TransportError | None,
    ) -> float | None:
        """Return the delay before the next attempt in ms, or None to stop."""
        policy = self._policy

        if error is not None:
            if not method_retryable:
                return None
            return policy.delay_for(attempt - 1, self._rand)

        if response is None:
            return None

        status = response.status_code
        hint = parse_retry_after(response.headers.get("Retry-After"), policy.max_delay_ms)

        if method_retryable and status in policy.retryable_status_codes:
            if hint is not None:
                return hint
            return policy.delay_for(attempt - 1, self._rand)

        if not method_retryable and status == 429:
            return hint

        return None


def _last_outcome(
    response: httpx.Response | None,
    error: httpx.TransportError | None,
) -> httpx.Response:
    """Re-raise the last transport failure or hand back the last response."""
    if error is not None:
        raise error
    if response is None:
        raise RuntimeError("Attempt produced neither a response nor an error")
    return response
