"""
Response decoders.

Implements:
- JsonLinesDecoder / decode_ndjson: NDJSON byte stream -> JSON records
- NdjsonStream: single-pass record iterator owning the HTTP response
- read_json / extract_data: ordinary JSON bodies
- parse_response_body: best-effort body reader for error responses
"""

from __future__ import annotations

import codecs
import json
import weakref
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from amigo_sdk.errors import AmigoError
from amigo_sdk.pipeline.base import Decoder

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from amigo_sdk.client.cancel import CancelToken

_SKIP = object()


class JsonLinesDecoder(Decoder):
    """JSON Lines (NDJSON) decoder.

    Parses newline-delimited JSON:
    ```
    {"type": "interaction-complete"}
    {"type": "new-message", "message": "Hi"}
    ```

    Bytes are decoded incrementally, so multi-byte characters split across
    chunks are handled. A trailing line without a newline is still parsed.
    A malformed line raises a PARSE error and ends the sequence.
    """

    def __init__(self, delimiter: str = "\n") -> None:
        """Initialize JSON Lines decoder.

        Args:
            delimiter: Line delimiter (default: newline)
        """
        self._delimiter = delimiter

    async def decode(self, byte_stream: AsyncIterator[bytes]) -> AsyncIterator[Any]:
        """Decode JSON Lines byte stream into JSON records.

        Args:
            byte_stream: Async iterator of raw bytes

        Yields:
            Parsed JSON values, in stream order

        Raises:
            AmigoError: PARSE kind (stage "json") on a malformed line
        """
        text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        buffer = ""

        async for chunk in byte_stream:
            buffer += text_decoder.decode(chunk)

            while self._delimiter in buffer:
                line, buffer = buffer.split(self._delimiter, 1)
                record = self._parse_line(line)
                if record is not _SKIP:
                    yield record

        buffer += text_decoder.decode(b"", final=True)
        record = self._parse_line(buffer)
        if record is not _SKIP:
            yield record

    @staticmethod
    def _parse_line(line: str) -> Any:
        line = line.strip()
        if not line:
            return _SKIP
        try:
            return json.loads(line)
        except ValueError as exc:
            raise AmigoError.parse(
                f"Failed to parse NDJSON line: {line[:200]}", "json", exc
            ) from exc


def decode_ndjson(byte_stream: AsyncIterator[bytes]) -> AsyncIterator[Any]:
    """Decode an NDJSON byte stream into a lazy sequence of records."""
    return JsonLinesDecoder().decode(byte_stream)


async def _next_chunk(stream: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return None


class NdjsonStream:
    """Single-pass async iterator over the records of an NDJSON response.

    The stream owns the HTTP response and closes it on every exit path:
    normal completion, a decoding error, cancellation, an early ``break``
    or an explicit ``aclose()``. After a ``break`` the response is released
    once the event loop finalizes the abandoned iterator; use the stream as
    an async context manager to release it before the block exits.

    Example:
        >>> async with await client.conversations.create_conversation(body) as events:
        ...     async for event in events:
        ...         print(event["type"])
    """

    def __init__(
        self,
        response: httpx.Response,
        cancel_token: CancelToken | None = None,
        decoder: Decoder | None = None,
    ) -> None:
        """Initialize the stream.

        Args:
            response: Response opened in streaming mode
            cancel_token: Token checked between reads and between records
            decoder: Record decoder (defaults to JsonLinesDecoder)
        """
        self._response = response
        self._cancel_token = cancel_token
        self._decoder = decoder or JsonLinesDecoder()
        # Weak, so a loop that breaks out lets the records generator be finalized
        self._records: weakref.ref[AsyncGenerator[Any, None]] | None = None
        self._closed = False

    @property
    def response(self) -> httpx.Response:
        return self._response

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncGenerator[Any, None]:
        if self._records is not None or self._closed:
            raise RuntimeError("NDJSON stream can only be iterated once")
        records = self._iterate()
        self._records = weakref.ref(records)
        return records

    async def aclose(self) -> None:
        """Stop iteration and release the response."""
        records = self._records() if self._records is not None else None
        if records is not None:
            await records.aclose()
        await self._close_response()

    async def __aenter__(self) -> NdjsonStream:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def _iterate(self) -> AsyncGenerator[Any, None]:
        token = self._cancel_token
        records = self._decoder.decode(self._chunks())
        try:
            async for record in records:
                # Several records can arrive in one chunk
                if token is not None:
                    token.raise_if_cancelled()
                yield record
        finally:
            if isinstance(records, AsyncGenerator):
                await records.aclose()
            await self._close_response()

    async def _chunks(self) -> AsyncIterator[bytes]:
        token = self._cancel_token
        stream = self._response.aiter_bytes()
        while True:
            if token is not None:
                token.raise_if_cancelled()
                chunk = await token.guard(_next_chunk(stream))
            else:
                chunk = await _next_chunk(stream)
            if chunk is None:
                return
            yield chunk

    async def _close_response(self) -> None:
        if not self._closed:
            self._closed = True
            await self._response.aclose()


@dataclass
class ApiResult:
    """Decoded result of a successful JSON call.

    Attributes:
        data: Parsed JSON body, or None when the body was empty
        status_code: HTTP status code
        headers: Response headers
    """

    data: Any
    status_code: int
    headers: httpx.Headers


def extract_data(result: ApiResult) -> Any:
    """Return the body of a successful call.

    Raises:
        AmigoError: PARSE kind (stage "response") if the body is missing
    """
    if result.data is None:
        raise AmigoError.parse(
            "Expected response data to be present for successful request",
            "response",
        )
    return result.data


async def read_json(response: httpx.Response) -> ApiResult:
    """Read a response body as JSON and release the response.

    An empty body decodes to ``data=None``.

    Raises:
        AmigoError: PARSE kind (stage "json") if the body is not valid JSON
    """
    try:
        content = await response.aread()
    finally:
        await response.aclose()

    data: Any = None
    if content.strip():
        try:
            data = json.loads(content)
        except ValueError as exc:
            raise AmigoError.parse(
                f"Invalid JSON in response body: {exc}", "json", exc
            ) from exc

    return ApiResult(data=data, status_code=response.status_code, headers=response.headers)


async def parse_response_body(response: httpx.Response) -> Any:
    """Read a response body without raising.

    Returns:
        Parsed JSON, the raw text if it is not JSON, or None if the body is
        empty or could not be read
    """
    try:
        await response.aread()
        text = response.text
    except (httpx.HTTPError, httpx.StreamError, UnicodeDecodeError):
        return None
    if not text or not text.strip():
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text
