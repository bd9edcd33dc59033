"""Pydantic schemas for profiles, the follow graph and creator settings."""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from picks_api.common.schema import BaseSchema, RequestSchema
from picks_api.core.rbac import UserRole
from picks_api.core.security import PASSWORD_MIN_LENGTH

from .models import AccountStatus, PayoutMethod

USERNAME_PATTERN = r"^[a-zA-Z0-9_]{3,30}$"
_WALLET_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_ROUTING_RE = re.compile(r"^\d{9}$")


class UserSummary(BaseSchema):
    """Compact author card embedded in picks, comments and listings."""

    id: UUID
    username: str | None = None
    name: str | None = None
    avatar_url: str | None = None
    is_verified: bool = False


class UserProfile(BaseSchema):
    """Profile of the authenticated user."""

    id: UUID
    email: str
    username: str | None = None
    name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    role: UserRole
    account_status: AccountStatus
    trust_score: int
    is_verified: bool
    email_verified_at: datetime | None = None
    subscription_enabled: bool = False
    subscription_price: float | None = None
    created_at: datetime


class ProfileUpdate(RequestSchema):
    name: str | None = Field(default=None, max_length=255)
    username: str | None = Field(default=None, pattern=USERNAME_PATTERN)
    bio: str | None = Field(default=None, max_length=500)
    avatar_url: str | None = Field(default=None, max_length=1024)


class ProfileStats(BaseSchema):
    picks: int = 0
    followers: int = 0
    following: int = 0
    won: int = 0
    lost: int = 0
    win_rate: int = 0


class PublicProfile(BaseSchema):
    id: UUID
    username: str | None = None
    name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    is_verified: bool = False
    subscription_enabled: bool = False
    subscription_price: float | None = None
    created_at: datetime
    stats: ProfileStats
    is_following: bool = False


class UserSearchResults(BaseSchema):
    users: list[UserSummary]


class TopCreator(UserSummary):
    win_rate: int
    graded_picks: int
    followers: int


class TopCreatorList(BaseSchema):
    creators: list[TopCreator]


class FollowRequest(RequestSchema):
    user_id: UUID


class FollowStatus(BaseSchema):
    following: bool


class FollowList(BaseSchema):
    users: list[UserSummary]
    total: int


class PasswordChangeRequest(RequestSchema):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=128)


class PayoutSettings(BaseSchema):
    payout_method: PayoutMethod | None = None
    whop_user_id: str | None = None
    crypto_wallet_address: str | None = None
    has_bank_account: bool = False
    bank_account_last4: str | None = None
    auto_withdraw: bool = False
    min_payout: int


class PayoutSettingsUpdate(RequestSchema):
    payout_method: PayoutMethod
    whop_user_id: str | None = Field(default=None, max_length=255)
    crypto_wallet_address: str | None = None
    bank_account_number: str | None = Field(default=None, min_length=4, max_length=17)
    bank_routing_number: str | None = None
    bank_account_name: str | None = Field(default=None, max_length=255)
    auto_withdraw: bool | None = None
    min_payout: int | None = Field(default=None, ge=1000)

    @field_validator("crypto_wallet_address")
    @classmethod
    def _validate_wallet(cls, value: str | None) -> str | None:
        if value is not None and not _WALLET_RE.match(value):
            raise ValueError("Invalid wallet address")
        return value

    @field_validator("bank_routing_number")
    @classmethod
    def _validate_routing(cls, value: str | None) -> str | None:
        if value is not None and not _ROUTING_RE.match(value):
            raise ValueError("Routing number must be 9 digits")
        return value

    @model_validator(mode="after")
    def _require_method_details(self) -> PayoutSettingsUpdate:
        if self.payout_method == PayoutMethod.CRYPTO and not self.crypto_wallet_address:
            raise ValueError("Crypto payouts require a wallet address")
        if self.payout_method == PayoutMethod.BANK and not (
            self.bank_account_number and self.bank_routing_number and self.bank_account_name
        ):
            raise ValueError("Bank payouts require account number, routing number and name")
        return self


class SubscriptionPricing(BaseSchema):
    subscription_enabled: bool
    subscription_price: float | None = None


class SubscriptionPricingUpdate(RequestSchema):
    subscription_enabled: bool | None = None
    subscription_price: Decimal | None = Field(
        default=None, ge=0, le=Decimal("999.99"), decimal_places=2
    )


__all__ = [
    "FollowList",
    "FollowRequest",
    "FollowStatus",
    "PasswordChangeRequest",
    "PayoutSettings",
    "PayoutSettingsUpdate",
    "ProfileStats",
    "ProfileUpdate",
    "PublicProfile",
    "SubscriptionPricing",
    "SubscriptionPricingUpdate",
    "TopCreator",
    "TopCreatorList",
    "USERNAME_PATTERN",
    "UserProfile",
    "UserSearchResults",
    "UserSummary",
]
