"""
Pipeline layer - response body decoding (JSON and NDJSON streams).
"""

from amigo_sdk.pipeline.base import Decoder
from amigo_sdk.pipeline.decode import (
    ApiResult,
    JsonLinesDecoder,
    NdjsonStream,
    decode_ndjson,
    extract_data,
    parse_response_body,
    read_json,
)

__all__ = [
    "ApiResult",
    "Decoder",
    "JsonLinesDecoder",
    "NdjsonStream",
    "decode_ndjson",
    "extract_data",
    "parse_response_body",
    "read_json",
]
