"""Process logging for the picks API.

Everything goes through the standard :mod:`logging` module with one console
handler. Each record renders on a single line::

    2026-03-02T18:04:11.120Z INFO  picks_api.features.payments.service [cid=5f2c] purchase.completed purchase_id=91aa... amount=1000

Messages are dotted event names; details travel as ``extra`` fields built with
:func:`log_context`. Fields that look like credentials or payout details are
masked before they are written.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from picks_api.settings import Settings

_CORRELATION_ID: ContextVar[str | None] = ContextVar("picks_api_correlation_id", default=None)

_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {
    "message",
    "asctime",
    "correlation_id",
    "color_message",
}
_SENSITIVE_MARKERS = ("password", "token", "secret", "account_number", "routing_number")
_ID_FIELDS = ("user_id", "pick_id", "purchase_id", "payout_id", "subscription_id", "report_id")
_ROUTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "sqlalchemy")
_INSTALLED = "_picks_api_handler"


class CorrelationIdFilter(logging.Filter):
    """Stamp each record with the correlation id of the request that produced it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = _CORRELATION_ID.get() or "-"
        return True


class ConsoleLogFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-5s %(name)s [cid=%(correlation_id)s] %(message)s"
        )

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=UTC).strftime("%Y-%m-%dT%H:%M:%S")
        return f"{stamp}.{int(record.msecs):03d}Z"

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = _CORRELATION_ID.get() or "-"
        line = super().format(record)
        fields = [
            f"{key}={_render(key, value)}"
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        ]
        return " ".join([line, *fields]) if fields else line


def _render(key: str, value: Any) -> str:
    if any(marker in key.lower() for marker in _SENSITIVE_MARKERS):
        return "***"
    if value is None:
        return "null"
    text = str(value)
    return f'"{text}"' if " " in text else text


def setup_logging(settings: Settings) -> None:
    """Install the console handler once and apply ``settings.logging_level``.

    Calling it again (a second app instance in tests, a reload) only updates the
    level. Uvicorn and SQLAlchemy records propagate to the root handler.
    """

    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.logging_level.upper(), logging.INFO))
    if getattr(root, _INSTALLED, False):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(ConsoleLogFormatter())
    handler.addFilter(CorrelationIdFilter())
    root.handlers = [handler]
    for name in _ROUTED_LOGGERS:
        routed = logging.getLogger(name)
        routed.handlers.clear()
        routed.propagate = True
    setattr(root, _INSTALLED, True)


def bind_request_context(correlation_id: str | None) -> None:
    _CORRELATION_ID.set(correlation_id)


def clear_request_context() -> None:
    _CORRELATION_ID.set(None)


def current_correlation_id() -> str | None:
    return _CORRELATION_ID.get()


def log_context(**fields: Any) -> dict[str, Any]:
    """Build an ``extra=`` payload; identifier fields are stringified and dropped when unset.

    >>> log_context(user_id=None, pick_id=7, amount=1000)
    {'pick_id': '7', 'amount': 1000}
    """

    context: dict[str, Any] = {}
    for key, value in fields.items():
        if key in _ID_FIELDS:
            if value is None:
                continue
            value = str(value)
        context[key] = value
    return context


__all__ = [
    "ConsoleLogFormatter",
    "CorrelationIdFilter",
    "bind_request_context",
    "clear_request_context",
    "current_correlation_id",
    "log_context",
    "setup_logging",
]
