"""核心客户端实现：认证、重试、错误分类与响应解码组成的请求管道。

Core AmigoClient implementation.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

import httpx

from amigo_sdk.client.builder import AmigoClientBuilder
from amigo_sdk.config import AmigoConfig
from amigo_sdk.errors import AmigoError, classify_transport_error
from amigo_sdk.pipeline.decode import (
    NdjsonStream,
    extract_data,
    parse_response_body,
    read_json,
)
from amigo_sdk.resources import (
    ConversationResource,
    OrganizationResource,
    ServiceResource,
    UserResource,
)
from amigo_sdk.telemetry import LogContext, get_logger, log_context
from amigo_sdk.transport import (
    ApiKeyExchange,
    AuthInterceptor,
    HttpTransport,
    RetryingTransport,
    TokenCache,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from amigo_sdk.client.cancel import CancelToken

logger = get_logger("amigo_sdk.client")

NDJSON_CONTENT_TYPE = "application/x-ndjson"


class AmigoClient:
    """Async client for the Amigo API.

    Every call goes through the same pipeline: attach a bearer token, send
    through the retrying transport, turn non-2xx responses and transport
    failures into AmigoError, then decode the body.

    Example:
        >>> async with AmigoClient(AmigoConfig.from_env()) as client:
        ...     services = await client.services.get_services()
        ...     async with await client.conversations.create_conversation(
        ...         {"service_id": services["services"][0]["id"], "service_version_set_name": "release"},
        ...         params={"response_format": "text"},
        ...     ) as events:
        ...         async for event in events:
        ...             print(event["type"])

        >>> # Fluent construction
        >>> client = AmigoClient.builder().org_id("my-org").from_env().build()
    """

    def __init__(
        self,
        config: AmigoConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        **options: Any,
    ) -> None:
        """Initialize the client.

        Args:
            config: Client configuration; built from ``options`` when omitted
            http_client: Externally owned httpx client (not closed by close())
            **options: AmigoConfig fields, used when ``config`` is None

        Raises:
            AmigoError: CONFIGURATION kind if a required field is missing
        """
        if config is None:
            config = AmigoConfig(**options)
        elif options:
            config = AmigoConfig(**{**config.model_dump(), **options})
        self._config = config.validate_required()

        self._http = HttpTransport(config, http_client)
        self._transport = RetryingTransport(self._http.send, config.retry)
        self._token_cache = TokenCache(ApiKeyExchange(config, self._http.send))
        self._auth = AuthInterceptor(self._token_cache)

        org_id = config.org_id or ""
        self.organizations = OrganizationResource(self, org_id)
        self.services = ServiceResource(self, org_id)
        self.conversations = ConversationResource(self, org_id)
        self.users = UserResource(self, org_id)

        logger.debug("Created Amigo client", **config.masked())

    @classmethod
    def builder(cls) -> AmigoClientBuilder:
        """Get a builder for fluent configuration.

        Returns:
            AmigoClientBuilder instance
        """
        return AmigoClientBuilder()

    @property
    def config(self) -> AmigoConfig:
        return self._config

    @property
    def token_cache(self) -> TokenCache:
        return self._token_cache

    @property
    def transport(self) -> RetryingTransport:
        return self._transport

    async def request(
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
        cancel_token: CancelToken | None = None,
    ) -> httpx.Response:
        """Send an authenticated request and return the 2xx response.

        The response is open in streaming mode; read or close it.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            params: Query parameters
            json: JSON body
            content: Raw body
            data: Form fields
            files: Multipart files
            headers: Additional headers
            cancel_token: Optional cancellation token

        Returns:
            The successful response

        Raises:
            AmigoError: For non-2xx responses, transport failures and
                authentication failures
            RequestCancelledError: If ``cancel_token`` fires
        """
        request = self._http.build_request(
            method,
            path,
            params=params,
            json=json,
            content=content,
            data=data,
            files=files,
            headers=headers,
        )
        context = LogContext(
            request_id=uuid.uuid4().hex[:12],
            org_id=self._config.org_id,
            method=request.method,
            path=request.url.path,
        )
        with log_context(context):
            return await self._dispatch(request, cancel_token)

    async def _dispatch(
        self, request: httpx.Request, cancel_token: CancelToken | None
    ) -> httpx.Response:
        await self._auth.apply(request, cancel_token)

        try:
            response = await self._transport.send(request, cancel_token=cancel_token)
        except httpx.TransportError as exc:
            self._auth.on_transport_error(exc)
            error = classify_transport_error(exc, request)
            logger.warning(
                "Request failed",
                method=request.method,
                url=str(request.url),
                kind=error.kind.value,
                error=str(exc),
            )
            raise error from exc

        self._auth.on_response(response)
        if response.is_success:
            return response

        try:
            body = await parse_response_body(response)
        finally:
            await response.aclose()

        error = AmigoError.from_response(
            response.status_code,
            body,
            dict(response.headers),
            reason=response.reason_phrase or None,
            method=request.method,
            url=str(request.url),
        )
        logger.warning(
            "Request failed",
            method=request.method,
            url=str(request.url),
            status=response.status_code,
            kind=error.kind.value,
        )
        raise error

    async def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return its decoded JSON body.

        Raises:
            AmigoError: PARSE kind if the body is missing or not valid JSON
        """
        response = await self.request(method, path, **kwargs)
        return extract_data(await read_json(response))

    async def request_stream(self, method: str, path: str, **kwargs: Any) -> NdjsonStream:
        """Send a request and return an NDJSON record stream over its body."""
        headers = {"Accept": NDJSON_CONTENT_TYPE, **(kwargs.pop("headers", None) or {})}
        cancel_token = kwargs.get("cancel_token")
        response = await self.request(method, path, headers=headers, **kwargs)
        return NdjsonStream(response, cancel_token)

    async def request_empty(self, method: str, path: str, **kwargs: Any) -> None:
        """Send a request whose response carries no content."""
        response = await self.request(method, path, **kwargs)
        try:
            await response.aread()
        finally:
            await response.aclose()

    async def close(self) -> None:
        """Close the client and release resources."""
        await self._http.close()

    async def __aenter__(self) -> AmigoClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.close()
