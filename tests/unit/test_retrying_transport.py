"""Tests for the retrying transport."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest

from amigo_sdk.client import CancelToken
from amigo_sdk.errors import RequestCancelledError
from amigo_sdk.resilience import RetryPolicy
from amigo_sdk.transport import RetryingTransport

URL = "https://api.amigo.ai/v1/org/service/"


class ScriptedSend:
    """Base send function replaying scripted outcomes.

    Each outcome is a status code, a (status, headers) tuple or an exception.
    """

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        status, headers = outcome if isinstance(outcome, tuple) else (outcome, {})
        response = httpx.Response(status, headers=headers, request=request)
        self.responses.append(response)
        return response


class RecordingSleep:
    """Sleep replacement recording requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float, token: CancelToken | None = None) -> None:
        self.delays.append(seconds)


def make_transport(
    send: ScriptedSend,
    policy: RetryPolicy | None = None,
    rand: float = 0.5,
) -> tuple[RetryingTransport, RecordingSleep]:
    sleep = RecordingSleep()
    transport = RetryingTransport(send, policy, sleep=sleep, rand=lambda: rand)
    return transport, sleep


class TestRetryEligibility:
    """Tests for which failures are retried."""

    @pytest.mark.asyncio
    async def test_success_returns_immediately(self) -> None:
        """Test a 2xx response is returned without retries."""
        send = ScriptedSend(200)
        transport, sleep = make_transport(send)

        response = await transport.send(httpx.Request("GET", URL))

        assert response.status_code == 200
        assert send.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_get_500_then_200(self) -> None:
        """Test GET is retried after a 500."""
        send = ScriptedSend(500, 200)
        transport, sleep = make_transport(send)

        response = await transport.send(httpx.Request("GET", URL))

        assert response.status_code == 200
        assert send.calls == 2
        assert len(sleep.delays) == 1

    @pytest.mark.asyncio
    async def test_persistent_500_exhausts_attempts(self) -> None:
        """Test the last response is returned after max_attempts."""
        send = ScriptedSend(500, 500, 500)
        transport, sleep = make_transport(send, RetryPolicy(max_attempts=3))

        response = await transport.send(httpx.Request("GET", URL))

        assert response.status_code == 500
        assert send.calls == 3
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_post_429_with_retry_after(self) -> None:
        """Test POST 429 is retried when the server sends Retry-After."""
        send = ScriptedSend((429, {"Retry-After": "1"}), 200)
        transport, sleep = make_transport(send)

        response = await transport.send(httpx.Request("POST", URL, json={}))

        assert response.status_code == 200
        assert send.calls == 2
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_post_429_without_retry_after(self) -> None:
        """Test POST 429 without Retry-After is not retried."""
        send = ScriptedSend(429)
        transport, sleep = make_transport(send)

        response = await transport.send(httpx.Request("POST", URL, json={}))

        assert response.status_code == 429
        assert send.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_post_429_with_invalid_retry_after(self) -> None:
        """Test POST 429 with an unparseable Retry-After is not retried."""
        send = ScriptedSend((429, {"Retry-After": "later"}))
        transport, sleep = make_transport(send)

        response = await transport.send(httpx.Request("POST", URL, json={}))

        assert response.status_code == 429
        assert send.calls == 1

    @pytest.mark.asyncio
    async def test_put_500_not_retried(self) -> None:
        """Test non-retryable methods are not retried on 5xx."""
        send = ScriptedSend(500)
        transport, sleep = make_transport(send)

        response = await transport.send(httpx.Request("PUT", URL, json={}))

        assert response.status_code == 500
        assert send.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_non_retryable_status(self) -> None:
        """Test 404 on GET is returned immediately."""
        send = ScriptedSend(404)
        transport, sleep = make_transport(send)

        response = await transport.send(httpx.Request("GET", URL))

        assert response.status_code == 404
        assert send.calls == 1

    @pytest.mark.asyncio
    async def test_max_attempts_one(self) -> None:
        """Test a single-attempt policy never retries."""
        send = ScriptedSend(503)
        transport, sleep = make_transport(send, RetryPolicy.no_retry())

        response = await transport.send(httpx.Request("GET", URL))

        assert response.status_code == 503
        assert send.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_failed_responses_are_closed(self) -> None:
        """Test responses discarded before a retry are released."""
        send = ScriptedSend(502, 200)
        transport, _ = make_transport(send)

        await transport.send(httpx.Request("GET", URL))

        assert send.responses[0].is_closed


class TestTransportErrors:
    """Tests for network-level failures."""

    @pytest.mark.asyncio
    async def test_get_connect_error_retried(self) -> None:
        """Test GET is retried after a connection failure."""
        send = ScriptedSend(httpx.ConnectError("Connection refused"), 200)
        transport, sleep = make_transport(send)

        response = await transport.send(httpx.Request("GET", URL))

        assert response.status_code == 200
        assert send.calls == 2
        assert len(sleep.delays) == 1

    @pytest.mark.asyncio
    async def test_get_connect_error_exhausted(self) -> None:
        """Test the last transport error is re-raised."""
        last = httpx.ConnectError("third")
        send = ScriptedSend(httpx.ConnectError("first"), httpx.ReadTimeout("second"), last)
        transport, sleep = make_transport(send)

        with pytest.raises(httpx.ConnectError) as exc_info:
            await transport.send(httpx.Request("GET", URL))

        assert exc_info.value is last
        assert send.calls == 3
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_post_connect_error_not_retried(self) -> None:
        """Test POST is not retried after a connection failure."""
        send = ScriptedSend(httpx.ConnectError("Connection refused"))
        transport, sleep = make_transport(send)

        with pytest.raises(httpx.ConnectError):
            await transport.send(httpx.Request("POST", URL, json={}))

        assert send.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_other_exceptions_propagate(self) -> None:
        """Test non-transport exceptions are not retried."""
        send = ScriptedSend(ValueError("bug"))
        transport, sleep = make_transport(send)

        with pytest.raises(ValueError):
            await transport.send(httpx.Request("GET", URL))

        assert send.calls == 1


class TestDelays:
    """Tests for the delay between attempts."""

    @pytest.mark.asyncio
    async def test_backoff_uses_full_jitter(self) -> None:
        """Test delays are rand() * base * 2**attempt_index."""
        send = ScriptedSend(500, 500, 200)
        transport, sleep = make_transport(
            send, RetryPolicy(backoff_base_ms=100, max_delay_ms=10_000), rand=0.5
        )

        await transport.send(httpx.Request("GET", URL))

        assert sleep.delays == pytest.approx([0.05, 0.1])

    @pytest.mark.asyncio
    async def test_retry_after_overrides_backoff(self) -> None:
        """Test a valid Retry-After wins over the computed backoff."""
        send = ScriptedSend((503, {"Retry-After": "2"}), 200)
        transport, sleep = make_transport(send)

        await transport.send(httpx.Request("GET", URL))

        assert sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_retry_after_clamped(self) -> None:
        """Test Retry-After is clamped to max_delay_ms."""
        send = ScriptedSend((429, {"Retry-After": "120"}), 200)
        transport, sleep = make_transport(send, RetryPolicy(max_delay_ms=1000))

        await transport.send(httpx.Request("GET", URL))

        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_invalid_retry_after_falls_back_to_backoff(self) -> None:
        """Test an invalid hint on a retryable method uses backoff."""
        send = ScriptedSend((503, {"Retry-After": "whenever"}), 200)
        transport, sleep = make_transport(
            send, RetryPolicy(backoff_base_ms=200), rand=1.0
        )

        await transport.send(httpx.Request("GET", URL))

        assert sleep.delays == [0.2]

    @pytest.mark.asyncio
    async def test_zero_delay(self) -> None:
        """Test a zero jitter draw still proceeds to the next attempt."""
        send = ScriptedSend(500, 200)
        transport, sleep = make_transport(send, rand=0.0)

        response = await transport.send(httpx.Request("GET", URL))

        assert response.status_code == 200
        assert sleep.delays == [0.0]


class TestCancellation:
    """Tests for cancellation of retries."""

    @pytest.mark.asyncio
    async def test_cancelled_before_first_attempt(self) -> None:
        """Test a cancelled token prevents any attempt."""
        send = ScriptedSend(200)
        transport, _ = make_transport(send)
        token = CancelToken()
        token.cancel()

        with pytest.raises(RequestCancelledError):
            await transport.send(httpx.Request("GET", URL), cancel_token=token)

        assert send.calls == 0

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_sleep(self) -> None:
        """Test cancelling the token interrupts the sleep between attempts."""
        send = ScriptedSend((503, {"Retry-After": "10"}), 200)
        transport = RetryingTransport(send, RetryPolicy())
        token = CancelToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)

        with pytest.raises(RequestCancelledError):
            await asyncio.wait_for(
                transport.send(httpx.Request("GET", URL), cancel_token=token),
                timeout=5,
            )

        assert send.calls == 1

    @pytest.mark.asyncio
    async def test_cancel_in_flight_request(self) -> None:
        """Test cancelling the token abandons an in-flight attempt."""
        started = asyncio.Event()

        async def slow_send(request: httpx.Request) -> httpx.Response:
            started.set()
            await asyncio.sleep(10)
            return httpx.Response(200, request=request)

        transport = RetryingTransport(slow_send, RetryPolicy())
        token = CancelToken()

        task = asyncio.create_task(
            transport.send(httpx.Request("GET", URL), cancel_token=token)
        )
        await started.wait()
        token.cancel()

        with pytest.raises(RequestCancelledError):
            await asyncio.wait_for(task, timeout=5)

    @pytest.mark.asyncio
    async def test_cancelled_during_attempt_does_not_retry(self) -> None:
        """Test a token cancelled as a retryable failure arrives returns that failure."""
        token = CancelToken()
        calls = 0

        async def failing_send(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            token.cancel()
            return httpx.Response(500, request=request)

        transport = RetryingTransport(failing_send, RetryPolicy(), sleep=RecordingSleep())

        response = await transport.send(httpx.Request("GET", URL), cancel_token=token)

        assert response.status_code == 500
        assert calls == 1
