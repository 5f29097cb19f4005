"""
Bearer token management.

Exchanges long-lived API-key credentials for short-lived bearer tokens,
caches the current token, coalesces concurrent refreshes into a single
exchange, and stamps outgoing requests with the Authorization header.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from amigo_sdk.errors import AmigoError, ErrorContext, ErrorKind, RequestCancelledError
from amigo_sdk.pipeline.decode import parse_response_body
from amigo_sdk.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from amigo_sdk.client.cancel import CancelToken
    from amigo_sdk.config import AmigoConfig

    SendFunction = Callable[[httpx.Request], Awaitable[httpx.Response]]

logger = get_logger("amigo_sdk.transport.auth")

# Refresh tokens this long before they expire
REFRESH_AHEAD = timedelta(minutes=5)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SignInWithApiKeyResponse(BaseModel):
    """Response of the API-key sign-in endpoint."""

    model_config = ConfigDict(extra="allow")

    id_token: str = Field(description="Bearer token for subsequent requests")
    expires_at: datetime | None = Field(default=None, description="Token expiry")


@dataclass(frozen=True)
class AuthToken:
    """A bearer token and its expiry.

    Attributes:
        bearer_value: Token sent as ``Authorization: Bearer <value>``
        expires_at: Expiry time; None when the server did not say
    """

    bearer_value: str
    expires_at: datetime | None = None

    def __repr__(self) -> str:
        return f"AuthToken(bearer_value='***', expires_at={self.expires_at!r})"

    def expires_within(self, window: timedelta, now: datetime) -> bool:
        """Check whether the token expires within ``window`` of ``now``.

        Tokens without a known expiry never count as expiring.
        """
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at - now <= window


class TokenState(str, Enum):
    """Token cache states."""

    ABSENT = "absent"
    VALID = "valid"
    REFRESHING = "refreshing"


class ApiKeyExchange:
    """Exchange API-key credentials for a bearer token.

    Sends ``POST /v1/{org_id}/user/signin_with_api_key`` with the
    ``x-api-key``, ``x-api-key-id`` and ``x-user-id`` headers.
    """

    def __init__(self, config: AmigoConfig, send: SendFunction) -> None:
        """Initialize the exchange.

        Args:
            config: Client configuration holding the credentials
            send: Base send function (not retried)
        """
        self._config = config
        self._send = send

    @property
    def url(self) -> str:
        return f"{self._config.base_url}/v1/{self._config.org_id}/user/signin_with_api_key"

    async def __call__(self) -> AuthToken:
        """Perform one exchange.

        Returns:
            Fresh AuthToken

        Raises:
            AmigoError: AUTHENTICATION kind for any failure, with the
                original exception as cause
        """
        request = httpx.Request(
            "POST",
            self.url,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "x-api-key": self._config.api_key or "",
                "x-api-key-id": self._config.api_key_id or "",
                "x-user-id": self._config.user_id or "",
            },
        )

        try:
            response = await self._send(request)
        except httpx.TransportError as exc:
            raise AmigoError.authentication(
                f"Network error while signing in with API key: {exc}",
                cause=exc,
            ) from exc

        try:
            if not response.is_success:
                body = await parse_response_body(response)
                error = AmigoError.authentication(
                    "Failed to sign in with API key",
                    status_code=response.status_code,
                )
                error.context = ErrorContext(
                    response_body=body,
                    method=request.method,
                    url=str(request.url),
                )
                raise error

            content = await response.aread()
            try:
                payload = SignInWithApiKeyResponse.model_validate_json(content)
            except ValidationError as exc:
                raise AmigoError.authentication(
                    "Invalid response from API key sign-in",
                    status_code=response.status_code,
                    cause=exc,
                ) from exc
        finally:
            await response.aclose()

        return AuthToken(bearer_value=payload.id_token, expires_at=payload.expires_at)


class TokenCache:
    """Holds the current bearer token and coalesces refreshes.

    States:
    - ABSENT: no token cached and no exchange running
    - VALID: a token is cached and no exchange running
    - REFRESHING: an exchange is in flight; every caller awaits the same task

    At most one exchange is in flight per cache at any time.
    """

    def __init__(
        self,
        exchange: Callable[[], Awaitable[AuthToken]],
        *,
        refresh_ahead: timedelta = REFRESH_AHEAD,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            exchange: Coroutine function performing one credential exchange
            refresh_ahead: Refresh tokens expiring within this window
            clock: Returns the current aware datetime
        """
        self._exchange = exchange
        self._refresh_ahead = refresh_ahead
        self._clock = clock or _utcnow
        self._token: AuthToken | None = None
        self._refresh: asyncio.Task[AuthToken] | None = None

    @property
    def state(self) -> TokenState:
        if self._refresh is not None:
            return TokenState.REFRESHING
        if self._token is not None:
            return TokenState.VALID
        return TokenState.ABSENT

    @property
    def token(self) -> AuthToken | None:
        return self._token

    def needs_refresh(self) -> bool:
        """Check whether the cached token is missing or about to expire."""
        if self._token is None:
            return True
        return self._token.expires_within(self._refresh_ahead, self._clock())

    async def ensure_valid_token(self) -> AuthToken:
        """Return a usable token, exchanging credentials if needed.

        Concurrent callers share one in-flight exchange and all receive its
        result or its exception.
        """
        current = self._token
        if current is not None and not current.expires_within(
            self._refresh_ahead, self._clock()
        ):
            return current

        task = self._refresh
        if task is None:
            logger.debug("Refreshing bearer token", had_token=self._token is not None)
            task = asyncio.ensure_future(self._run_exchange())
            task.add_done_callback(_retrieve_exception)
            self._refresh = task
        # Shielded so a cancelled waiter does not abort the shared exchange
        return await asyncio.shield(task)

    def invalidate(self) -> None:
        """Drop the cached token so the next call exchanges again."""
        self._token = None

    async def _run_exchange(self) -> AuthToken:
        try:
            token = await self._exchange()
        except BaseException as exc:
            self._token = None
            logger.warning("Bearer token refresh failed", error=repr(exc))
            raise
        else:
            self._token = token
            return token
        finally:
            self._refresh = None


def _retrieve_exception(task: asyncio.Task[AuthToken]) -> None:
    # Mark the exception as retrieved when every waiter was cancelled
    if not task.cancelled():
        task.exception()


class AuthInterceptor:
    """Attach bearer tokens to requests and react to auth failures.

    A 401 response invalidates the cached token; the failed request is not
    replayed, the caller sees the AUTHENTICATION error and may call again.
    """

    def __init__(self, cache: TokenCache) -> None:
        self._cache = cache

    @property
    def cache(self) -> TokenCache:
        return self._cache

    async def apply(
        self,
        request: httpx.Request,
        cancel_token: CancelToken | None = None,
    ) -> httpx.Request:
        """Stamp ``request`` with a valid bearer token.

        Raises:
            AmigoError: AUTHENTICATION kind if no token could be obtained
            RequestCancelledError: If the token wait was cancelled
        """
        try:
            if cancel_token is None:
                token = await self._cache.ensure_valid_token()
            else:
                token = await cancel_token.guard(self._cache.ensure_valid_token())
        except RequestCancelledError:
            raise
        except AmigoError as exc:
            if exc.kind is ErrorKind.AUTHENTICATION:
                raise
            raise AmigoError.authentication(
                "Failed to obtain Amigo auth token", cause=exc
            ) from exc
        except Exception as exc:
            raise AmigoError.authentication(
                "Failed to obtain Amigo auth token", cause=exc
            ) from exc

        request.headers["Authorization"] = f"Bearer {token.bearer_value}"
        return request

    def on_response(self, response: httpx.Response) -> None:
        """Invalidate the cached token on 401."""
        if response.status_code == 401:
            logger.debug("Received 401; clearing cached bearer token")
            self._cache.invalidate()

    def on_transport_error(self, error: BaseException) -> None:
        """Invalidate the cached token after a transport failure."""
        self._cache.invalidate()
