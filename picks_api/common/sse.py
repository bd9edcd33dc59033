"""Server-Sent Events (SSE) encoding helpers.

These helpers emit EventSource-compatible payload dictionaries for
``EventSourceResponse``. The ``data`` field is always text, so JSON is
serialised to a compact string.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    return str(value)


def sse_json(
    data: Any,
    *,
    event: str | None = None,
    event_id: str | int | None = None,
) -> dict[str, str]:
    """Encode an object as compact JSON and wrap it as an SSE message dict."""

    message = {"data": json.dumps(data, separators=(",", ":"), default=json_default)}
    if event is not None:
        message["event"] = event
    if event_id is not None:
        message["id"] = str(event_id)
    return message


__all__ = ["json_default", "sse_json"]
