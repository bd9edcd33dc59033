"""Inbound payment provider webhooks."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, HTTPException, Request, status

from picks_api.api.deps import SettingsDep
from picks_api.common.schema import BaseSchema, ErrorMessage

from ..payments.dependencies import PaymentServiceDep
from ..payments.whop import verify_webhook_signature
from ..subscriptions.service import SubscriptionService
from .service import WebhookPayloadError, WebhookService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SIGNATURE_HEADER = "whop-signature"


class WebhookAck(BaseSchema):
    received: bool = True
    error: str | None = None


@router.post(
    "/whop",
    response_model=WebhookAck,
    response_model_exclude_none=True,
    summary="Receive a payment provider event",
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorMessage},
        status.HTTP_401_UNAUTHORIZED: {"model": ErrorMessage},
    },
)
async def receive_whop_webhook(
    request: Request,
    settings: SettingsDep,
    payments: PaymentServiceDep,
) -> WebhookAck:
    raw_body = await request.body()
    secret = (
        settings.whop_webhook_secret.get_secret_value() if settings.whop_webhook_secret else None
    )
    if not verify_webhook_signature(raw_body, request.headers.get(SIGNATURE_HEADER), secret):
        logger.warning("webhook.signature.invalid")
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = json.loads(raw_body)
    except ValueError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload") from exc

    service = WebhookService(
        session=payments.session,
        payments=payments,
        subscriptions=SubscriptionService(session=payments.session, payments=payments),
    )
    try:
        outcome = await service.receive(payload)
    except WebhookPayloadError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return WebhookAck(error=outcome.error)


__all__ = ["SIGNATURE_HEADER", "WebhookAck", "router"]
