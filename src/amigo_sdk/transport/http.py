"""HTTP 传输层：基于 httpx 的异步 HTTP 客户端，所有响应以流式模式打开。

HTTP transport using httpx for async requests.

Provides:
- The base "send one request" primitive used by the retrying transport
- Request building against the configured base URL
- Configurable timeouts and optional HTTP/2
- Automatic header management
"""

from __future__ import annotations

import importlib.util
import os
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from collections.abc import Mapping

    from amigo_sdk.config import AmigoConfig


# Default timeouts
_DEFAULT_CONNECT_TIMEOUT = 10.0


_UA_VERSION: str | None = None


def _http2_enabled() -> bool:
    """Enable HTTP/2 only when optional dependency is present."""
    return importlib.util.find_spec("h2") is not None


def _trust_env_enabled() -> bool:
    """Use env proxy settings only when explicitly enabled."""
    return os.getenv("AMIGO_HTTP_TRUST_ENV", "0") == "1"


def _get_ua_version() -> str:
    """Get package version for User-Agent (cached)."""
    global _UA_VERSION
    if _UA_VERSION is None:
        from importlib.metadata import PackageNotFoundError, version

        try:
            _UA_VERSION = version("amigo-sdk")
        except PackageNotFoundError:
            _UA_VERSION = "0.1.0"
    return _UA_VERSION


def default_headers() -> dict[str, str]:
    """Headers sent with every request."""
    return {
        "Accept": "application/json",
        "User-Agent": f"amigo-sdk-python/{_get_ua_version()}",
    }


class HttpTransport:
    """HTTP transport for API communication.

    Wraps an ``httpx.AsyncClient``. Responses are always opened in streaming
    mode; callers read or close them.

    Example:
        >>> transport = HttpTransport(config)
        >>> request = transport.build_request("GET", "/v1/my-org/service/")
        >>> response = await transport.send(request)
        >>> await response.aread()
    """

    def __init__(
        self,
        config: AmigoConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize HTTP transport.

        Args:
            config: Client configuration (base URL, timeout)
            client: Externally owned httpx client; not closed by close()
        """
        self._base_url = config.base_url
        self._timeout = config.timeout
        self._client = client
        self._owns_client = client is None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def client(self) -> httpx.AsyncClient:
        return self._get_client()

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            timeout = httpx.Timeout(
                self._timeout,
                connect=min(_DEFAULT_CONNECT_TIMEOUT, self._timeout),
            )

            self._client = httpx.AsyncClient(
                timeout=timeout,
                http2=_http2_enabled(),
                trust_env=_trust_env_enabled(),
            )

        return self._client

    def url_for(self, path: str) -> str:
        """Resolve ``path`` against the base URL; absolute URLs pass through."""
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self._base_url}{path}"

    def build_request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        content: bytes | str | None = None,
        data: Mapping[str, Any] | None = None,
        files: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Request:
        """Build a request against the base URL.

        Args:
            method: HTTP method
            path: Request path (relative to base URL)
            params: Query parameters; None values are dropped
            json: JSON body
            content: Raw body
            data: Form fields
            files: Multipart files
            headers: Additional headers

        Returns:
            httpx.Request ready to send
        """
        request_headers = default_headers()
        if headers:
            request_headers.update(headers)

        query = None
        if params:
            query = {k: v for k, v in params.items() if v is not None}

        return self._get_client().build_request(
            method.upper(),
            self.url_for(path),
            params=query,
            json=json,
            content=content,
            data=data,
            files=files,
            headers=request_headers,
        )

    async def send(self, request: httpx.Request) -> httpx.Response:
        """Send one request, returning the response in streaming mode.

        Raises:
            httpx.TransportError: On network/connection errors and timeouts
        """
        return await self._get_client().send(request, stream=True)

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
