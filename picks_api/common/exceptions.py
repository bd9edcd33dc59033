"""Application-wide exception handlers.

Routers translate domain errors into ``HTTPException`` themselves; the handlers
here give every response the same ``{"detail": ...}`` shape and make sure the
failures nobody translated are logged once with enough context to find them.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from picks_api.features.payments.whop import WhopError

from .logging import log_context

logger = logging.getLogger("picks_api.errors")


def _request_fields(request: Request) -> dict[str, object]:
    return {"path": request.url.path, "method": request.method}


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "http.server_error",
            extra=log_context(
                status_code=exc.status_code, detail=exc.detail, **_request_fields(request)
            ),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def provider_exception_handler(request: Request, exc: WhopError) -> JSONResponse:
    """A provider failure that escaped its router is still a gateway error, not a 500."""

    logger.error(
        "payment_provider.unhandled",
        extra=log_context(
            provider_code=exc.code,
            provider_status=exc.status_code,
            **_request_fields(request),
        ),
    )
    return JSONResponse(status_code=502, content={"detail": "Payment provider error"})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_exception",
        extra=log_context(exception_type=type(exc).__name__, **_request_fields(request)),
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(WhopError, provider_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = [
    "http_exception_handler",
    "provider_exception_handler",
    "register_exception_handlers",
    "unhandled_exception_handler",
]
