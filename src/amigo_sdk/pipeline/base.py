"""
Base abstractions for the pipeline layer.

Defines the decoder interface used to turn raw response bytes into
JSON records.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class Decoder(ABC):
    """Abstract decoder that converts a byte stream to JSON records.

    Decoders handle the transport-level parsing of streaming responses,
    converting raw bytes into decoded JSON values.
    """

    @abstractmethod
    def decode(self, byte_stream: AsyncIterator[bytes]) -> AsyncIterator[Any]:
        """Decode a byte stream into JSON records.

        Args:
            byte_stream: Async iterator of raw bytes

        Yields:
            Parsed JSON values
        """
        ...
