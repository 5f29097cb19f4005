"""
Structured logging for amigo-sdk.

All SDK loggers live under the ``amigo_sdk`` namespace and propagate to one
package logger, which owns the handler. Keyword fields passed to the log
methods are rendered by the formatters, and credentials (API keys, bearer
tokens, id tokens) are masked before anything is written.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, TextIO

ROOT_LOGGER_NAME = "amigo_sdk"
REDACTED = "***REDACTED***"

_CONTEXT_FIELDS = ("request_id", "org_id", "method", "path")
_log_context: ContextVar[dict[str, Any]] = ContextVar("amigo_log_context", default={})


class LogLevel(str, Enum):
    """Log levels accepted by AmigoLogger.configure."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_logging_level(self) -> int:
        return logging.getLevelName(self.value)


@dataclass
class LogContext:
    """Fields attached to every record logged in the current task.

    Attributes:
        request_id: Client-side request identifier
        org_id: Organization the client acts for
        method: HTTP method of the current call
        path: Request path of the current call
        extra: Additional context fields
    """

    request_id: str | None = None
    org_id: str | None = None
    method: str | None = None
    path: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Flatten into a dict without unset fields."""
        data = {k: v for k, v in asdict(self).items() if k != "extra" and v}
        data.update(self.extra)
        return data


def get_log_context() -> LogContext:
    """Return the context of the current task."""
    data = dict(_log_context.get())
    known = {name: data.pop(name) for name in _CONTEXT_FIELDS if name in data}
    return LogContext(**known, extra=data)


def set_log_context(context: LogContext) -> None:
    _log_context.set(context.to_dict())


def clear_log_context() -> None:
    _log_context.set({})


@contextmanager
def log_context(context: LogContext) -> Iterator[LogContext]:
    """Layer ``context`` over the current one until the block exits."""
    merged = {**_log_context.get(), **context.to_dict()}
    reset_token = _log_context.set(merged)
    try:
        yield get_log_context()
    finally:
        _log_context.reset(reset_token)


class SensitiveDataMasker:
    """Redacts credentials from log text and structured fields."""

    DEFAULT_PATTERNS: ClassVar[list[tuple[str, str]]] = [
        # Authorization header values
        (r"(Bearer\s+)([^\s\"',]+)", rf"\1{REDACTED}"),
        # Sign-in headers
        (r"(x-api-key(?:-id)?[\"']?\s*[:=]\s*[\"']?)([^\"'\s,}]+)", rf"\1{REDACTED}"),
        # Sign-in response
        (r"(id_token[\"']?\s*[:=]\s*[\"']?)([^\"'\s,}]+)", rf"\1{REDACTED}"),
        (r"(AMIGO_API_KEY(?:_ID)?=)(\S+)", rf"\1{REDACTED}"),
    ]

    SENSITIVE_KEYS: ClassVar[tuple[str, ...]] = (
        "api_key",
        "api_key_id",
        "apikey",
        "token",
        "secret",
        "password",
        "authorization",
    )

    def __init__(self, patterns: list[tuple[str, str]] | None = None) -> None:
        self._rules = [
            (re.compile(pattern, re.IGNORECASE), replacement)
            for pattern, replacement in patterns or self.DEFAULT_PATTERNS
        ]

    def mask(self, text: str) -> str:
        """Apply every pattern to ``text``."""
        for regex, replacement in self._rules:
            text = regex.sub(replacement, text)
        return text

    def is_sensitive_key(self, key: Any) -> bool:
        """Match whole names or ``_``-separated suffixes (``id_token``, ``x-api-key``)."""
        lowered = str(key).lower().replace("-", "_")
        return any(
            lowered == marker or lowered.endswith(f"_{marker}")
            for marker in self.SENSITIVE_KEYS
        )

    def mask_value(self, value: Any) -> Any:
        """Mask strings, and recurse into dicts and lists."""
        if isinstance(value, str):
            return self.mask(value)
        if isinstance(value, dict):
            return self.mask_dict(value)
        if isinstance(value, list):
            return [self.mask_value(item) for item in value]
        return value

    def mask_dict(self, data: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of ``data`` with credential values replaced.

        Only string and bytes values of sensitive keys are redacted; flags and
        counts such as ``had_token=False`` are kept.
        """
        return {
            key: REDACTED
            if self.is_sensitive_key(key) and isinstance(value, (str, bytes))
            else self.mask_value(value)
            for key, value in data.items()
        }


def _record_fields(
    record: logging.LogRecord, masker: SensitiveDataMasker
) -> dict[str, Any]:
    fields = getattr(record, "extra_fields", None)
    return masker.mask_dict(fields) if fields else {}


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Keyword fields are merged at the top level; the task's LogContext is
    nested under ``context``.
    """

    def __init__(
        self,
        masker: SensitiveDataMasker | None = None,
        include_timestamp: bool = True,
    ) -> None:
        super().__init__()
        self._masker = masker or SensitiveDataMasker()
        self._include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {}
        if self._include_timestamp:
            created = datetime.fromtimestamp(record.created, tz=timezone.utc)
            payload["timestamp"] = created.isoformat(timespec="milliseconds").replace(
                "+00:00", "Z"
            )
        payload["level"] = record.levelname
        payload["logger"] = record.name
        payload["message"] = self._masker.mask(record.getMessage())

        context = get_log_context().to_dict()
        if context:
            payload["context"] = context
        payload.update(_record_fields(record, self._masker))
        if record.exc_info:
            payload["exception"] = self._masker.mask(self.formatException(record.exc_info))

        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """``time | LEVEL | logger | message | key=value ...``"""

    def __init__(
        self,
        masker: SensitiveDataMasker | None = None,
        include_context: bool = True,
    ) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self._masker = masker or SensitiveDataMasker()
        self._include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        line = self._masker.mask(super().format(record))

        fields = get_log_context().to_dict() if self._include_context else {}
        fields.update(_record_fields(record, self._masker))
        if not fields:
            return line
        rendered = " ".join(f"{key}={value}" for key, value in fields.items())
        return f"{line} | {rendered}"


class AmigoLogger:
    """Thin wrapper over a stdlib logger that accepts keyword fields.

    The SDK is quiet by default (WARNING, text to stderr); call
    ``AmigoLogger.configure`` to see retry and token-refresh diagnostics.

    Example:
        >>> AmigoLogger.configure(level=LogLevel.DEBUG, format="text")
        >>> logger = AmigoLogger.get_logger("amigo_sdk.transport")
        >>> logger.debug("Retry scheduled", attempt=1, delay_ms=250)
    """

    _configured: ClassVar[bool] = False

    @classmethod
    def configure(
        cls,
        level: LogLevel = LogLevel.INFO,
        format: str = "json",
        stream: TextIO | None = None,
        masker: SensitiveDataMasker | None = None,
    ) -> None:
        """Replace the package handler.

        Args:
            level: Minimum level for every SDK logger
            format: 'json' or 'text'
            stream: Output stream (default: stderr)
            masker: Custom masker for both message text and fields
        """
        formatter: logging.Formatter
        if format == "json":
            formatter = JsonFormatter(masker=masker)
        else:
            formatter = TextFormatter(masker=masker)

        handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
        handler.setFormatter(formatter)

        root = logging.getLogger(ROOT_LOGGER_NAME)
        for old in list(root.handlers):
            root.removeHandler(old)
        root.addHandler(handler)
        root.setLevel(level.to_logging_level())
        root.propagate = False
        cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> AmigoLogger:
        """Get a logger; ``name`` should sit under ``amigo_sdk``."""
        if not cls._configured:
            cls.configure(level=LogLevel.WARNING, format="text")
        return cls(logging.getLogger(name))

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def is_enabled_for(self, level: LogLevel) -> bool:
        return self._logger.isEnabledFor(level.to_logging_level())

    def _emit(self, level: int, msg: str, exc_info: bool, fields: dict[str, Any]) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(
                level,
                msg,
                exc_info=exc_info,
                extra={"extra_fields": fields} if fields else None,
            )

    def debug(self, msg: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, msg, False, fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._emit(logging.INFO, msg, False, fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._emit(logging.WARNING, msg, False, fields)

    def error(self, msg: str, exc_info: bool = False, **fields: Any) -> None:
        self._emit(logging.ERROR, msg, exc_info, fields)

    def exception(self, msg: str, **fields: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._emit(logging.ERROR, msg, True, fields)


def get_logger(name: str) -> AmigoLogger:
    """Get a logger instance."""
    return AmigoLogger.get_logger(name)
