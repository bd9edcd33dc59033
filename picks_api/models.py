"""Import every ORM model so the shared metadata knows all tables."""

from picks_api.features.audit.models import AuditLog
from picks_api.features.auth.models import EmailVerification, LoginActivity, PasswordReset
from picks_api.features.disputes.models import Dispute
from picks_api.features.payments.models import PaymentConfig, Payout, Purchase, Transaction
from picks_api.features.picks.models import Bookmark, Comment, Pick, View, Vote
from picks_api.features.reports.models import Report
from picks_api.features.subscriptions.models import Subscription
from picks_api.features.users.models import Follow, User
from picks_api.features.webhooks.models import WebhookEvent

__all__ = [
    "AuditLog",
    "Bookmark",
    "Comment",
    "Dispute",
    "EmailVerification",
    "Follow",
    "LoginActivity",
    "PasswordReset",
    "PaymentConfig",
    "Payout",
    "Pick",
    "Purchase",
    "Report",
    "Subscription",
    "Transaction",
    "User",
    "View",
    "Vote",
    "WebhookEvent",
]
