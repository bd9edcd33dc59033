"""Fee arithmetic, purchases, refunds, creator balances and payouts.

Amounts handled here are integer cents. Pick prices are stored in dollars on
the pick and converted with ``round(price * 100)`` at the purchase boundary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from picks_api.common.logging import log_context
from picks_api.common.pagination import PageResult, paginate_sql
from picks_api.common.time import utc_now
from picks_api.settings import Settings

from ..picks.models import Pick
from ..picks.service import UNLOCKING_STATUSES, PickNotFoundError, is_pick_locked
from ..users.models import PayoutMethod, User
from .models import (
    PaymentConfig,
    PaymentStatus,
    Payout,
    PayoutStatus,
    Purchase,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from .whop import WhopClient, WhopError

logger = logging.getLogger(__name__)

BALANCE_TRANSACTION_TYPES = (
    TransactionType.PICK_SALE,
    TransactionType.SUBSCRIPTION_REVENUE,
    TransactionType.SELLER_PAYOUT_REVERSAL,
    TransactionType.PLATFORM_FEE_REVERSAL,
    TransactionType.ADJUSTMENT,
)
OUTSTANDING_PAYOUT_STATUSES = (
    PayoutStatus.PENDING,
    PayoutStatus.UNDER_REVIEW,
    PayoutStatus.APPROVED,
    PayoutStatus.PROCESSING,
    PayoutStatus.PAID,
)
PAYOUT_HISTORY_LIMIT = 50


class PaymentError(ValueError):
    """Raised when a payment operation violates a business rule."""


class PurchaseNotFoundError(LookupError):
    pass


class PayoutNotFoundError(LookupError):
    pass


class WithdrawalsDisabledError(RuntimeError):
    def __init__(self) -> None:
        super().__init__("Withdrawals are currently disabled")


@dataclass(frozen=True, slots=True)
class FeeBreakdown:
    amount: int
    platform_fee: int
    creator_earnings: int
    fee_percent: float


def round_cents(value: Decimal) -> int:
    """Round to a whole cent, halves away from zero."""

    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def dollars_to_cents(value: Decimal | float | int) -> int:
    return round_cents(Decimal(str(value)) * 100)


def cents_to_dollars(value: int | None) -> float:
    return round((value or 0) / 100, 2)


def format_dollars(cents: int) -> str:
    return f"${cents / 100:.2f}"


def split_fees(amount: int, fee_percent: float) -> FeeBreakdown:
    """Split ``amount`` cents into the platform fee and the creator's share."""

    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise PaymentError("Amount must be a positive integer (cents)")
    fee = round_cents(Decimal(amount) * Decimal(str(fee_percent)) / 100)
    return FeeBreakdown(
        amount=amount,
        platform_fee=fee,
        creator_earnings=amount - fee,
        fee_percent=fee_percent,
    )


@dataclass(slots=True)
class TransactionTotals:
    total_spent: int = 0
    total_earned: int = 0
    total_withdrawn: int = 0


@dataclass(slots=True)
class CreatorEarnings:
    available_balance: int
    lifetime_earnings: int
    pick_sales: int


@dataclass(slots=True)
class PaymentService:
    """Service encapsulating money movement between buyers, creators and the platform."""

    session: AsyncSession
    settings: Settings
    whop: WhopClient

    async def get_config(self) -> PaymentConfig:
        """Return the singleton configuration row, creating it with defaults."""

        result = await self.session.execute(
            select(PaymentConfig).order_by(PaymentConfig.updated_at.desc()).limit(1)
        )
        config = result.scalar_one_or_none()
        if config is None:
            config = PaymentConfig(
                platform_fee_percent=self.settings.platform_fee_percent,
                min_pick_price=50,
                max_pick_price=1_000_000,
                min_subscription_price=499,
                max_subscription_price=99_999,
                withdrawal_minimum=1_000,
                withdrawal_enabled=True,
                provider="whop",
            )
            self.session.add(config)
            await self.session.flush()
        return config

    async def update_config(self, changes: dict[str, Any]) -> tuple[PaymentConfig, dict[str, Any]]:
        config = await self.get_config()
        before = {key: getattr(config, key) for key in changes}
        for key, value in changes.items():
            setattr(config, key, value)
        await self.session.flush()
        logger.info("payment.config.updated", extra=log_context(fields=",".join(sorted(changes))))
        return config, before

    async def calculate_fees(
        self, amount: int, custom_percent: float | None = None
    ) -> FeeBreakdown:
        if custom_percent is None:
            custom_percent = (await self.get_config()).platform_fee_percent
        return split_fees(amount, custom_percent)

    async def validate_pick_price(self, amount: int) -> None:
        config = await self.get_config()
        if amount < config.min_pick_price:
            raise PaymentError(f"Price must be at least {format_dollars(config.min_pick_price)}")
        if amount > config.max_pick_price:
            raise PaymentError(f"Price cannot exceed {format_dollars(config.max_pick_price)}")

    async def validate_subscription_price(self, amount: int) -> None:
        config = await self.get_config()
        if amount < config.min_subscription_price:
            raise PaymentError(
                f"Subscription price must be at least {format_dollars(config.min_subscription_price)}"
            )
        if amount > config.max_subscription_price:
            raise PaymentError(
                f"Subscription price cannot exceed {format_dollars(config.max_subscription_price)}"
            )

    # Purchases -----------------------------------------------------------------

    async def find_unlocking_purchase(self, user_id: UUID, pick_id: UUID) -> Purchase | None:
        result = await self.session.execute(
            select(Purchase)
            .where(
                Purchase.user_id == user_id,
                Purchase.pick_id == pick_id,
                Purchase.status.in_(UNLOCKING_STATUSES),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def latest_purchase(self, user_id: UUID, pick_id: UUID) -> Purchase | None:
        result = await self.session.execute(
            select(Purchase)
            .where(Purchase.user_id == user_id, Purchase.pick_id == pick_id)
            .order_by(Purchase.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def purchase_pick(self, buyer: User, pick_id: UUID) -> tuple[Purchase, str]:
        """Charge ``buyer`` for a premium pick and store a pending purchase.

        Returns the purchase and the checkout URL handed back to the client.
        """

        pick = await self.session.get(Pick, pick_id)
        if pick is None:
            raise PickNotFoundError(pick_id)
        if await self.find_unlocking_purchase(buyer.id, pick.id) is not None:
            raise PaymentError("Already purchased")
        if not pick.is_premium or pick.price is None:
            raise PaymentError("This pick is not available for purchase")
        if pick.user_id == buyer.id:
            raise PaymentError("You cannot purchase your own pick")
        if is_pick_locked(pick):
            raise PaymentError("This pick is locked and can no longer be purchased")

        amount = dollars_to_cents(pick.price)
        await self.validate_pick_price(amount)
        fees = await self.calculate_fees(amount)

        payment = await self.whop.create_payment(
            user_id=buyer.whop_user_id or str(buyer.id),
            amount=fees.amount,
            description=f"Purchase pick: {pick.matchup}",
            metadata={
                "pick_id": str(pick.id),
                "seller_id": str(pick.user_id),
                "buyer_id": str(buyer.id),
                "platform_fee": fees.platform_fee,
                "creator_earnings": fees.creator_earnings,
            },
        )
        payment_id = payment.get("id")
        if not payment_id:
            raise PaymentError("Payment provider did not return a payment id")

        purchase = Purchase(
            user_id=buyer.id,
            pick_id=pick.id,
            seller_id=pick.user_id,
            amount=fees.amount,
            platform_fee=fees.platform_fee,
            creator_earnings=fees.creator_earnings,
            status=PaymentStatus.PENDING,
            whop_payment_id=str(payment_id),
        )
        self.session.add(purchase)
        await self.session.flush()
        checkout_url = payment.get("checkout_url") or (
            f"{self.settings.checkout_base_url.rstrip('/')}/{payment_id}"
        )
        logger.info(
            "purchase.create.pending",
            extra=log_context(
                user_id=buyer.id,
                pick_id=pick.id,
                purchase_id=str(purchase.id),
                amount=fees.amount,
            ),
        )
        return purchase, checkout_url

    async def _purchase_by_provider_id(self, provider_payment_id: str) -> Purchase:
        result = await self.session.execute(
            select(Purchase).where(Purchase.whop_payment_id == provider_payment_id)
        )
        purchase = result.scalar_one_or_none()
        if purchase is None:
            raise PurchaseNotFoundError(f"Purchase for payment {provider_payment_id} not found")
        return purchase

    async def complete_purchase(self, provider_payment_id: str) -> Purchase:
        """Mark the purchase paid and write the buyer, seller and fee ledger rows."""

        purchase = await self._purchase_by_provider_id(provider_payment_id)
        if purchase.status == PaymentStatus.COMPLETED:
            logger.info(
                "purchase.complete.duplicate",
                extra=log_context(purchase_id=str(purchase.id)),
            )
            return purchase

        pick = await self.session.get(Pick, purchase.pick_id)
        matchup = pick.matchup if pick is not None else str(purchase.pick_id)
        purchase.status = PaymentStatus.COMPLETED
        purchase.completed_at = utc_now()
        self.session.add_all(
            [
                Transaction(
                    user_id=purchase.user_id,
                    type=TransactionType.PICK_PURCHASE,
                    status=TransactionStatus.COMPLETED,
                    amount=purchase.amount,
                    platform_fee=purchase.platform_fee,
                    purchase_id=purchase.id,
                    description=f"Purchase: {matchup}",
                    details={
                        "pick_id": str(purchase.pick_id),
                        "seller_id": str(purchase.seller_id),
                    },
                ),
                Transaction(
                    user_id=purchase.seller_id,
                    type=TransactionType.PICK_SALE,
                    status=TransactionStatus.COMPLETED,
                    amount=purchase.creator_earnings,
                    purchase_id=purchase.id,
                    description=f"Sale: {matchup}",
                    details={
                        "pick_id": str(purchase.pick_id),
                        "buyer_id": str(purchase.user_id),
                    },
                ),
                Transaction(
                    user_id=purchase.seller_id,
                    type=TransactionType.PLATFORM_FEE,
                    status=TransactionStatus.COMPLETED,
                    amount=purchase.platform_fee,
                    purchase_id=purchase.id,
                    description=f"Platform fee: {matchup}",
                ),
            ]
        )
        await self.session.flush()
        logger.info(
            "purchase.complete.success",
            extra=log_context(
                user_id=purchase.user_id,
                pick_id=purchase.pick_id,
                purchase_id=str(purchase.id),
            ),
        )
        await self.check_auto_withdrawal(purchase.seller_id)
        return purchase

    async def fail_purchase(self, provider_payment_id: str) -> Purchase:
        purchase = await self._purchase_by_provider_id(provider_payment_id)
        purchase.status = PaymentStatus.FAILED
        await self.session.flush()
        logger.info("purchase.failed", extra=log_context(purchase_id=str(purchase.id)))
        return purchase

    async def process_refund(
        self,
        purchase_id: UUID,
        *,
        amount: int | None = None,
        reason: str | None = None,
    ) -> Purchase:
        """Refund part or all of a completed purchase and reverse the seller's share."""

        purchase = await self.session.get(Purchase, purchase_id)
        if purchase is None:
            raise PurchaseNotFoundError(f"Purchase {purchase_id} not found")
        if purchase.status == PaymentStatus.REFUNDED:
            raise PaymentError("Purchase has already been fully refunded")
        if purchase.status not in UNLOCKING_STATUSES:
            raise PaymentError("Can only refund completed purchases")
        if not purchase.whop_payment_id:
            raise PaymentError("Cannot refund: no payment provider reference")

        refund = purchase.remaining_amount if amount is None else amount
        if refund <= 0:
            raise PaymentError("Refund amount must be positive")
        if refund > purchase.amount:
            raise PaymentError("Refund amount cannot exceed the purchase amount")
        if refund > purchase.remaining_amount:
            raise PaymentError("Refund amount exceeds the remaining refundable amount")

        result = await self.whop.refund_payment(
            purchase.whop_payment_id, amount=refund, reason=reason
        )

        purchase.refund_amount = (purchase.refund_amount or 0) + refund
        purchase.status = (
            PaymentStatus.REFUNDED
            if purchase.refund_amount >= purchase.amount
            else PaymentStatus.PARTIALLY_REFUNDED
        )
        purchase.refunded_at = utc_now()
        purchase.refund_reason = reason

        fee_refund = round_cents(Decimal(purchase.platform_fee) * refund / purchase.amount)
        creator_refund = refund - fee_refund
        pick = await self.session.get(Pick, purchase.pick_id)
        matchup = pick.matchup if pick is not None else str(purchase.pick_id)
        suffix = f" - {reason}" if reason else ""
        reference = {"provider_refund_id": result.get("id")}
        self.session.add_all(
            [
                Transaction(
                    user_id=purchase.user_id,
                    type=TransactionType.REFUND,
                    status=TransactionStatus.COMPLETED,
                    amount=refund,
                    purchase_id=purchase.id,
                    description=f"Refund: {matchup}{suffix}",
                    details=reference,
                ),
                Transaction(
                    user_id=purchase.seller_id,
                    type=TransactionType.SELLER_PAYOUT_REVERSAL,
                    status=TransactionStatus.COMPLETED,
                    amount=-creator_refund,
                    purchase_id=purchase.id,
                    description=f"Seller earnings reversal for refund: {matchup}{suffix}",
                    details=reference,
                ),
                Transaction(
                    user_id=purchase.seller_id,
                    type=TransactionType.PLATFORM_FEE_REVERSAL,
                    status=TransactionStatus.COMPLETED,
                    amount=-fee_refund,
                    purchase_id=purchase.id,
                    description=f"Platform fee reversal for refund: {matchup}{suffix}",
                    details=reference,
                ),
            ]
        )
        await self.session.flush()
        logger.info(
            "refund.process.success",
            extra=log_context(
                purchase_id=str(purchase.id),
                refund=refund,
                status=purchase.status.value,
            ),
        )
        return purchase

    # Balances and payouts --------------------------------------------------------

    async def creator_balance(self, user_id: UUID) -> int:
        earned = await self.session.execute(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.user_id == user_id,
                Transaction.type.in_(BALANCE_TRANSACTION_TYPES),
                Transaction.status == TransactionStatus.COMPLETED,
            )
        )
        paid_out = await self.session.execute(
            select(func.coalesce(func.sum(Payout.amount), 0)).where(
                Payout.user_id == user_id,
                Payout.status.in_(OUTSTANDING_PAYOUT_STATUSES),
            )
        )
        return int(earned.scalar_one()) - int(paid_out.scalar_one())

    async def creator_earnings(self, user_id: UUID) -> CreatorEarnings:
        stmt = select(
            func.coalesce(func.sum(Transaction.amount), 0),
            func.sum(case((Transaction.type == TransactionType.PICK_SALE, 1), else_=0)),
        ).where(
            Transaction.user_id == user_id,
            Transaction.type.in_(
                [TransactionType.PICK_SALE, TransactionType.SUBSCRIPTION_REVENUE]
            ),
            Transaction.status == TransactionStatus.COMPLETED,
        )
        lifetime, sales = (await self.session.execute(stmt)).one()
        return CreatorEarnings(
            available_balance=await self.creator_balance(user_id),
            lifetime_earnings=int(lifetime or 0),
            pick_sales=int(sales or 0),
        )

    async def check_auto_withdrawal(self, user_id: UUID) -> Payout | None:
        """Request a payout of the whole balance once it reaches the creator's threshold.

        Failures are logged and never raised to the caller.
        """

        creator = await self.session.get(User, user_id)
        if creator is None or not creator.auto_withdraw or not creator.whop_user_id:
            return None
        balance = await self.creator_balance(user_id)
        if balance < creator.min_payout:
            return None
        try:
            return await self.create_payout_request(creator, balance)
        except (PaymentError, WhopError):
            logger.exception(
                "payout.auto_withdraw.failed",
                extra=log_context(user_id=user_id, amount=balance),
            )
            return None

    async def create_payout_request(self, user: User, amount: int) -> Payout:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise PaymentError("Invalid payout amount: must be greater than zero")
        if not user.whop_user_id:
            raise PaymentError("User does not have a payout account configured")
        if user.payout_method is None:
            raise PaymentError(
                "Payout method not configured. Please set your preferred payout method."
            )

        method = PayoutMethod(user.payout_method)
        if method == PayoutMethod.CRYPTO:
            if not (user.crypto_wallet_address or "").strip():
                raise PaymentError("Crypto wallet address is required for crypto payouts")
            transfer_method = "crypto"
            destination: str | None = user.crypto_wallet_address.strip()
        elif method == PayoutMethod.BANK:
            if not user.bank_account_id:
                raise PaymentError("Bank account is required for bank payouts")
            transfer_method = "bank"
            destination = user.bank_account_id
        else:
            transfer_method = method.value.lower()
            destination = None

        transfer = await self.whop.create_transfer(
            destination=user.whop_user_id,
            amount=amount,
            method=transfer_method,
            destination_account=destination,
            description="Creator payout for earnings",
        )
        payout = Payout(
            user_id=user.id,
            amount=amount,
            status=PayoutStatus.PROCESSING,
            payout_method=method,
            whop_transfer_id=transfer.get("id"),
        )
        self.session.add(payout)
        await self.session.flush()
        self.session.add(
            Transaction(
                user_id=user.id,
                type=TransactionType.PAYOUT,
                status=TransactionStatus.PENDING,
                amount=amount,
                payout_id=payout.id,
                description="Creator payout",
            )
        )
        await self.session.flush()
        logger.info(
            "payout.request.created",
            extra=log_context(user_id=user.id, payout_id=str(payout.id), amount=amount),
        )
        return payout

    async def request_withdrawal(self, user: User, amount: int | None) -> Payout:
        if not user.whop_user_id:
            raise PaymentError("Payout account not configured")
        balance = await self.creator_balance(user.id)
        if balance <= 0:
            raise PaymentError("No funds available for withdrawal")
        requested = balance if amount is None else amount
        if requested > balance:
            raise PaymentError("Insufficient balance")
        config = await self.get_config()
        if requested < config.withdrawal_minimum:
            raise PaymentError(
                f"Below minimum withdrawal amount of {format_dollars(config.withdrawal_minimum)}"
            )
        if not config.withdrawal_enabled:
            raise WithdrawalsDisabledError()
        return await self.create_payout_request(user, requested)

    async def payout_history(self, user: User) -> list[Payout]:
        result = await self.session.execute(
            select(Payout)
            .where(Payout.user_id == user.id)
            .order_by(Payout.created_at.desc())
            .limit(PAYOUT_HISTORY_LIMIT)
        )
        return list(result.scalars().all())

    async def _payout_by_transfer(self, transfer_id: str) -> Payout:
        result = await self.session.execute(
            select(Payout).where(Payout.whop_transfer_id == transfer_id)
        )
        payout = result.scalar_one_or_none()
        if payout is None:
            raise PayoutNotFoundError(f"Payout for transfer {transfer_id} not found")
        return payout

    async def _set_payout_transaction_status(
        self, payout: Payout, status: TransactionStatus
    ) -> None:
        result = await self.session.execute(
            select(Transaction).where(
                Transaction.payout_id == payout.id,
                Transaction.type == TransactionType.PAYOUT,
            )
        )
        for transaction in result.scalars().all():
            transaction.status = status

    async def complete_transfer(self, transfer_id: str) -> Payout:
        payout = await self._payout_by_transfer(transfer_id)
        payout.status = PayoutStatus.PAID
        payout.processed_at = utc_now()
        await self._set_payout_transaction_status(payout, TransactionStatus.COMPLETED)
        await self.session.flush()
        logger.info("payout.transfer.completed", extra=log_context(payout_id=str(payout.id)))
        return payout

    async def fail_transfer(self, transfer_id: str, reason: str | None) -> Payout:
        payout = await self._payout_by_transfer(transfer_id)
        payout.status = PayoutStatus.FAILED
        payout.failure_reason = reason or "Transfer failed"
        await self._set_payout_transaction_status(payout, TransactionStatus.FAILED)
        await self.session.flush()
        logger.warning(
            "payout.transfer.failed",
            extra=log_context(payout_id=str(payout.id), reason=payout.failure_reason),
        )
        return payout

    # Ledger ----------------------------------------------------------------------

    async def list_transactions(
        self,
        user: User,
        *,
        transaction_type: TransactionType | str | None,
        page: int,
        limit: int,
    ) -> PageResult[Transaction]:
        stmt = select(Transaction).where(Transaction.user_id == user.id)
        if transaction_type is not None:
            stmt = stmt.where(Transaction.type == transaction_type)
        return await paginate_sql(
            self.session,
            stmt,
            page=page,
            limit=limit,
            order_by=[Transaction.created_at.desc(), Transaction.id.desc()],
        )

    async def transaction_totals(self, user: User) -> TransactionTotals:
        rows = await self.session.execute(
            select(Transaction.type, func.coalesce(func.sum(Transaction.amount), 0))
            .where(
                Transaction.user_id == user.id,
                Transaction.status == TransactionStatus.COMPLETED,
            )
            .group_by(Transaction.type)
        )
        sums = {TransactionType(kind): int(total) for kind, total in rows.all()}
        return TransactionTotals(
            total_spent=sums.get(TransactionType.PICK_PURCHASE, 0)
            + sums.get(TransactionType.SUBSCRIPTION, 0),
            total_earned=sums.get(TransactionType.PICK_SALE, 0)
            + sums.get(TransactionType.SUBSCRIPTION_REVENUE, 0),
            total_withdrawn=sums.get(TransactionType.PAYOUT, 0),
        )


__all__ = [
    "BALANCE_TRANSACTION_TYPES",
    "CreatorEarnings",
    "FeeBreakdown",
    "PaymentError",
    "PaymentService",
    "PayoutNotFoundError",
    "PurchaseNotFoundError",
    "TransactionTotals",
    "WithdrawalsDisabledError",
    "cents_to_dollars",
    "dollars_to_cents",
    "format_dollars",
    "round_cents",
    "split_fees",
]
