"""
Logging for the Helper app and API.

Log records may carry chat payloads, session tokens and uploaded images.
Everything that reaches a handler passes through ``redact`` first, so
tokens never appear in clear and image data URIs are reduced to their
media type and size.
"""

import logging
import logging.handlers
import json
import re
import time
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
from contextlib import contextmanager

from config.app_config import AppConfig, get_config


# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("urllib3", "httpx", "httpcore", "googleapiclient.discovery_cache", "hpack")

SECRET_FIELDS = {
    "access_token", "accesstoken", "provider_token", "token", "password",
    "authorization", "api_key", "apikey", "secret_key",
}

DATA_URI = re.compile(r"data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>[A-Za-z0-9+/=]+)")

PAYLOAD_PREVIEW_CHARS = 2000

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_FIELDS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}


def _shorten_data_uri(match: re.Match) -> str:
    return f"<{match.group('mime')} image, {len(match.group('data'))} base64 chars>"


def redact(value: Any) -> Any:
    """Copy of ``value`` with secrets masked and image data URIs shortened"""
    if isinstance(value, str):
        return DATA_URI.sub(_shorten_data_uri, value)
    if isinstance(value, dict):
        return {
            key: "***" if str(key).lower() in SECRET_FIELDS and item else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with ``extra`` fields redacted"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        extra = {key: value for key, value in vars(record).items() if key not in _RECORD_FIELDS}
        if extra:
            entry["extra"] = redact(extra)

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(entry, ensure_ascii=False, default=str)


class RedactingFormatter(logging.Formatter):
    """Plain-text format for the console in debug mode"""

    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


def setup_logging(config: Optional[AppConfig] = None) -> logging.Logger:
    """
    Configure the root logger from ``config.logging``

    Console output is plain text in debug mode and JSON otherwise; the
    optional rotating log file is always JSON.
    """
    config = config or get_config()
    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(
        RedactingFormatter(config.logging.format) if config.debug else StructuredFormatter()
    )
    root_logger.addHandler(console_handler)

    if config.logging.enable_file_logging:
        log_file = Path(config.logging.log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_execution_time(logger: logging.Logger, operation: str, **fields):
    """
    Log how long the wrapped block took; failures are logged and re-raised

    Args:
        logger: Logger instance
        operation: Short operation name, e.g. "chat_exchange"
        **fields: Extra fields attached to the record
    """
    started = time.perf_counter()
    try:
        yield
    except Exception as e:
        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        logger.warning(f"{operation} failed after {elapsed_ms} ms: {e}", extra={
            "operation": operation,
            "elapsed_ms": elapsed_ms,
            "error_type": type(e).__name__,
            **fields,
        })
        raise
    elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
    logger.debug(f"{operation} took {elapsed_ms} ms", extra={
        "operation": operation,
        "elapsed_ms": elapsed_ms,
        **fields,
    })


def log_payload(logger: logging.Logger, label: str, payload: Any, enabled: bool = True) -> None:
    """
    Debug-log a request or response body when payload logging is on

    Bodies are redacted and cut to ``PAYLOAD_PREVIEW_CHARS``.
    """
    if not enabled or not logger.isEnabledFor(logging.DEBUG):
        return
    if isinstance(payload, (dict, list)):
        text = json.dumps(redact(payload), ensure_ascii=False, default=str)
    else:
        text = redact(str(payload))
    if len(text) > PAYLOAD_PREVIEW_CHARS:
        text = text[:PAYLOAD_PREVIEW_CHARS] + f"... ({len(text)} chars)"
    logger.debug(f"{label}: {text}")


def log_conversation_event(logger: logging.Logger, event: str, conversation_id: Optional[str], **details):
    """Conversation lifecycle: created, deleted, message_added, submitted"""
    logger.info(f"Conversation {event}: {conversation_id}", extra={
        "event": f"conversation.{event}",
        "conversation_id": conversation_id,
        **details,
    })


def log_email_event(logger: logging.Logger, event: str, **details):
    """Directory and email side channel: lookup, selection, sent"""
    logger.info(f"Email channel {event}", extra={
        "event": f"email.{event}",
        **details,
    })


class ErrorTracker:
    """
    Counts unexpected errors per context and logs each with its traceback
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.error_counts: Dict[str, int] = {}
        self.last_errors: Dict[str, str] = {}

    def track_error(self, error: Exception, context: str = "", **details):
        key = f"{context or 'unknown'}:{type(error).__name__}"
        self.error_counts[key] = self.error_counts.get(key, 0) + 1
        self.last_errors[context] = str(error)

        self.logger.error(f"Error in {context or 'unknown context'}: {error}", extra={
            "event": "error",
            "context": context,
            "error_type": type(error).__name__,
            "occurrences": self.error_counts[key],
            **details,
        }, exc_info=error)

    def get_error_summary(self) -> Dict[str, Any]:
        return {
            "total_errors": sum(self.error_counts.values()),
            "by_context": dict(self.error_counts),
            "last_errors": dict(self.last_errors),
        }


_logging_ready = False
_error_tracker: Optional[ErrorTracker] = None


def initialize_logging(config: Optional[AppConfig] = None) -> ErrorTracker:
    """Configure logging once per process and return the shared error tracker"""
    global _logging_ready, _error_tracker

    if not _logging_ready:
        setup_logging(config)
        _logging_ready = True

    if _error_tracker is None:
        _error_tracker = ErrorTracker(get_logger("helper.errors"))

    return _error_tracker


def get_error_tracker() -> ErrorTracker:
    if _error_tracker is None:
        return initialize_logging()
    return _error_tracker
