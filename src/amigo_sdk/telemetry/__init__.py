"""
Telemetry module for amigo-sdk.

Provides structured logging with credential masking.
"""

from amigo_sdk.telemetry.logger import (
    AmigoLogger,
    JsonFormatter,
    LogContext,
    LogLevel,
    SensitiveDataMasker,
    TextFormatter,
    clear_log_context,
    get_log_context,
    get_logger,
    log_context,
    set_log_context,
)

__all__ = [
    "AmigoLogger",
    "JsonFormatter",
    "LogContext",
    "LogLevel",
    "SensitiveDataMasker",
    "TextFormatter",
    "clear_log_context",
    "get_log_context",
    "get_logger",
    "log_context",
    "set_log_context",
]
