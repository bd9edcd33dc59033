"""Picks API FastAPI application entry point."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from .common.exceptions import register_exception_handlers
from .common.logging import setup_logging
from .common.middleware import register_middleware
from .features.account_status.router import router as account_status_router
from .features.admin.router import router as admin_router
from .features.auth.router import router as auth_router
from .features.disputes.router import admin_router as disputes_admin_router
from .features.disputes.router import router as disputes_router
from .features.health.router import router as health_router
from .features.payments.router import router as payments_router
from .features.picks.router import router as picks_router
from .features.reports.router import admin_router as reports_admin_router
from .features.reports.router import router as reports_router
from .features.subscriptions.router import router as subscriptions_router
from .features.trending.router import router as trending_router
from .features.users.router import router as users_router
from .features.webhooks.router import router as webhooks_router
from .lifecycles import create_application_lifespan
from .settings import Settings, get_settings

API_PREFIX = "/api"


def create_app(settings: Settings | None = None) -> FastAPI:
    """Return a configured FastAPI application."""

    settings = settings or get_settings()
    setup_logging(settings)

    docs_url = settings.docs_url if settings.api_docs_enabled else None
    redoc_url = settings.redoc_url if settings.api_docs_enabled else None
    openapi_url = settings.openapi_url if settings.api_docs_enabled else None

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=docs_url,
        redoc_url=redoc_url,
        openapi_url=openapi_url,
        debug=settings.debug,
        lifespan=create_application_lifespan(settings=settings),
    )
    app.state.settings = settings

    register_middleware(app, settings)
    register_exception_handlers(app)
    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    # /picks/trending must be matched before /picks/{pick_id}.
    for router in (
        health_router,
        auth_router,
        users_router,
        trending_router,
        picks_router,
        disputes_router,
        reports_router,
        payments_router,
        subscriptions_router,
        webhooks_router,
        account_status_router,
        admin_router,
        disputes_admin_router,
        reports_admin_router,
    ):
        app.include_router(router, prefix=API_PREFIX)


def start(host: str | None = None, port: int | None = None, reload: bool = False) -> None:
    """Serve the app factory with uvicorn; unset host and port come from settings."""

    import uvicorn

    settings = get_settings()
    setup_logging(settings)
    bind_host = host or settings.server_host
    bind_port = port or settings.server_port
    logging.getLogger(__name__).info(
        "server.start",
        extra={"host": bind_host, "port": bind_port, "reload": reload},
    )
    uvicorn.run(
        "picks_api.main:create_app",
        host=bind_host,
        port=bind_port,
        reload=reload,
        factory=True,
        log_config=None,
    )


__all__ = ["API_PREFIX", "create_app", "start"]
