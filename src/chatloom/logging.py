"""Structured logging for Chatloom.

All modules log through structlog with dotted event names and keyword
context. Secrets that leak into log values (Discord bot tokens, bearer API
keys) are redacted before rendering.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TextIO

import structlog

_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

# Discord bot tokens: <base64 user id>.<timestamp>.<hmac>
_DISCORD_TOKEN_RE = re.compile(r"\b[MNO][A-Za-z\d_-]{23,27}\.[A-Za-z\d_-]{6,7}\.[A-Za-z\d_-]{27,40}\b")
_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+")
_API_KEY_RE = re.compile(r"\bsk-[A-Za-z0-9_-]{16,}\b")


def _truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _level_value(value: str | None, *, default: str = "info") -> int:
    if not value:
        return _LEVELS[default]
    return _LEVELS.get(value.strip().lower(), _LEVELS[default])


def _redact_text(text: str) -> str:
    text = _DISCORD_TOKEN_RE.sub("[REDACTED_TOKEN]", text)
    text = _BEARER_RE.sub(r"\1[REDACTED]", text)
    return _API_KEY_RE.sub("[REDACTED_KEY]", text)


def _redact_value(value: Any, memo: dict[int, Any]) -> Any:
    if isinstance(value, str):
        return _redact_text(value)
    if isinstance(value, bytes):
        return _redact_text(value.decode("utf-8", errors="replace"))
    if isinstance(value, (dict, list, tuple, set)):
        key = id(value)
        if key in memo:
            return memo[key]
        if isinstance(value, dict):
            result: Any = {}
            memo[key] = result
            for k, v in value.items():
                result[k] = _redact_value(v, memo)
            return result
        if isinstance(value, list):
            result = []
            memo[key] = result
            result.extend(_redact_value(v, memo) for v in value)
            return result
        items = [_redact_value(v, memo) for v in value]
        result = tuple(items) if isinstance(value, tuple) else set(items)
        memo[key] = result
        return result
    return value


def _redact_processor(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    memo: dict[int, Any] = {}
    return {k: _redact_value(v, memo) for k, v in event_dict.items()}


class SafeWriter:
    """File-like wrapper that ignores writes once the stream is gone.

    Log calls made during interpreter shutdown can hit a closed stderr;
    those are dropped instead of raising.
    """

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._closed = False

    def write(self, data: str) -> int:
        if self._closed:
            return 0
        try:
            return self._stream.write(data)
        except (ValueError, OSError):
            self._closed = True
            return 0

    def flush(self) -> None:
        if self._closed:
            return
        try:
            self._stream.flush()
        except (ValueError, OSError):
            self._closed = True

    def isatty(self) -> bool:
        try:
            return self._stream.isatty()
        except (ValueError, OSError):
            return False


def setup_logging(*, debug: bool = False, level: str | None = None) -> None:
    """Configure structlog for the process.

    Args:
        debug: Default to debug level when no explicit level is set.
        level: Explicit level name; overrides CHATLOOM_LOG_LEVEL.
    """
    default = "debug" if debug else "info"
    min_level = _level_value(level or os.environ.get("CHATLOOM_LOG_LEVEL"), default=default)
    json_logs = _truthy(os.environ.get("CHATLOOM_LOG_JSON"))
    writer = SafeWriter(sys.stderr)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_logs:
        processors.append(structlog.processors.format_exc_info)
        processors.append(_redact_processor)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(_redact_processor)
        processors.append(structlog.dev.ConsoleRenderer(colors=writer.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.PrintLoggerFactory(file=writer),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger, optionally named after a module."""
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(name)


def bind_run_context(**values: Any) -> None:
    """Bind request-scoped context (thread id, message id, ...) to later log calls."""
    structlog.contextvars.bind_contextvars(
        **{k: v for k, v in values.items() if v is not None}
    )


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def suppress_logs(level: str = "warning") -> Iterator[None]:
    """Temporarily raise the minimum log level."""
    previous = structlog.get_config().get("wrapper_class")
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(_level_value(level))
    )
    try:
        yield
    finally:
        structlog.configure(wrapper_class=previous)
