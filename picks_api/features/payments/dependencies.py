"""FastAPI dependencies for the payment provider and payment service."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from picks_api.api.deps import SessionDep, SettingsDep
from picks_api.settings import get_app_settings

from .service import PaymentService
from .whop import WhopClient


def get_whop_client(request: Request) -> WhopClient:
    """Return the application's provider client, building one from settings if absent."""

    client = getattr(request.app.state, "whop_client", None)
    if client is None:
        client = WhopClient(get_app_settings(request.app))
        request.app.state.whop_client = client
    return client


WhopClientDep = Annotated[WhopClient, Depends(get_whop_client)]


def get_payment_service(
    session: SessionDep, settings: SettingsDep, whop: WhopClientDep
) -> PaymentService:
    return PaymentService(session=session, settings=settings, whop=whop)


PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]

__all__ = ["PaymentServiceDep", "WhopClientDep", "get_payment_service", "get_whop_client"]
