"""Request middleware: correlation ids, access logging and CORS."""

from __future__ import annotations

import logging
import re
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from picks_api.settings import Settings

from .logging import bind_request_context, clear_request_context, log_context

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

logger = logging.getLogger("picks_api.request")


def _correlation_id(request: Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER)
    if supplied and _REQUEST_ID_RE.match(supplied):
        return supplied
    return str(uuid4())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id for the request and log one line when it finishes.

    Client supplied ids are reused only when they look like ids; anything else is
    replaced so arbitrary header content never reaches the logs.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = _correlation_id(request)
        request.state.correlation_id = correlation_id
        bind_request_context(correlation_id)
        started = time.perf_counter()
        status_code: int | None = None
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            extra = log_context(
                user_id=getattr(request.state, "user_id", None),
                path=request.url.path,
                method=request.method,
                status_code=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000.0, 2),
            )
            if status_code is None:
                logger.error("request.error", extra=extra)
            else:
                logger.info("request.complete", extra=extra)
            clear_request_context()

        response.headers[REQUEST_ID_HEADER] = correlation_id
        return response


def register_middleware(app: FastAPI, settings: Settings) -> None:
    if settings.server_cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.server_cors_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=[REQUEST_ID_HEADER],
        )
    app.add_middleware(RequestContextMiddleware)


__all__ = ["REQUEST_ID_HEADER", "RequestContextMiddleware", "register_middleware"]
