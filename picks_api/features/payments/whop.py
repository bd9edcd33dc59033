"""Thin async client for the Whop v5 REST API and webhook signatures."""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any

import httpx

from picks_api.settings import Settings

logger = logging.getLogger(__name__)


class WhopError(Exception):
    """Raised when the provider rejects a call or cannot be reached."""

    def __init__(self, code: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.status_code = status_code


class WhopClient:
    """Issue authenticated calls against the payment provider.

    ``transport`` lets callers swap the network layer, for example with
    :class:`httpx.MockTransport` in tests.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = settings.whop_api_url.rstrip("/")
        self._api_key = (
            settings.whop_api_key.get_secret_value() if settings.whop_api_key else None
        )
        self._app_id = settings.whop_app_id
        self._configured = settings.payments_configured
        self._has_webhook_secret = settings.whop_webhook_secret is not None
        self._timeout = settings.whop_timeout.total_seconds()
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return self._configured

    def status(self) -> dict[str, Any]:
        return {
            "configured": self.is_configured,
            "api_url": self._api_url,
            "has_api_key": bool(self._api_key),
            "has_app_id": bool(self._app_id),
            "has_webhook_secret": self._has_webhook_secret,
        }

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if self._app_id:
            headers["X-Whop-App-Id"] = self._app_id
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if not self.is_configured:
            raise WhopError("NOT_CONFIGURED", "Payment provider is not configured")

        try:
            async with httpx.AsyncClient(
                base_url=self._api_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, json=json, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.warning(
                "whop.request.network_error",
                extra={"method": method, "path": path, "error": str(exc)},
            )
            raise WhopError("NETWORK_ERROR", str(exc) or "Network error occurred") from exc

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        if response.is_error:
            code = str(body.get("code") or "WHOP_API_ERROR")
            message = str(body.get("message") or "Unknown error occurred")
            logger.warning(
                "whop.request.failed",
                extra={
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "code": code,
                },
            )
            raise WhopError(code, message, status_code=response.status_code)
        return body

    async def create_payment(
        self,
        *,
        user_id: str,
        amount: int,
        description: str,
        metadata: dict[str, Any],
        currency: str = "usd",
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/payments",
            json={
                "user_id": user_id,
                "amount": amount,
                "currency": currency,
                "description": description,
                "metadata": metadata,
                "capture": True,
            },
        )

    async def create_subscription(
        self,
        *,
        user_id: str,
        plan_id: str,
        metadata: dict[str, Any],
        trial_days: int = 0,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/subscriptions",
            json={
                "user_id": user_id,
                "plan_id": plan_id,
                "trial_period_days": trial_days,
                "metadata": metadata,
            },
        )

    async def cancel_subscription(
        self, subscription_id: str, *, cancel_at_period_end: bool = True
    ) -> dict[str, Any]:
        return await self._request(
            "DELETE",
            f"/subscriptions/{subscription_id}",
            json={"cancel_at_period_end": cancel_at_period_end},
        )

    async def create_transfer(
        self,
        *,
        destination: str,
        amount: int,
        method: str,
        destination_account: str | None,
        description: str,
        currency: str = "usd",
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/transfers",
            json={
                "destination": destination,
                "amount": amount,
                "currency": currency,
                "transfer_method": method,
                "destination_account": destination_account,
                "description": description,
            },
        )

    async def refund_payment(
        self, payment_id: str, *, amount: int | None = None, reason: str | None = None
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/payments/{payment_id}/refund",
            json={"amount": amount, "reason": reason},
        )

    async def get_payment(self, payment_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/payments/{payment_id}")

    async def get_transfer(self, transfer_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/transfers/{transfer_id}")

    async def get_balance(self, user_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/balances/{user_id}")


def compute_webhook_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_webhook_signature(raw_body: bytes, signature: str | None, secret: str | None) -> bool:
    """Return ``True`` when ``signature`` is the HMAC-SHA256 hex digest of the body."""

    if not secret or not signature:
        return False
    expected = compute_webhook_signature(raw_body, secret)
    return hmac.compare_digest(signature.strip().encode("utf-8"), expected.encode("utf-8"))


__all__ = [
    "WhopClient",
    "WhopError",
    "compute_webhook_signature",
    "verify_webhook_signature",
]
