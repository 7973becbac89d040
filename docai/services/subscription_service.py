"""
Subscription Service

Order creation, client-side payment verification and the subscription
status projection.

Webhook-driven transitions live in payment_webhook_service; both paths
compute their changes through docai.services.state_machine.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from docai.core.config import settings
from docai.core.exceptions import (
    ConfigurationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from docai.core.signatures import PaymentSignatureVerifier, VerifiedPayment
from docai.repositories.subscription_repo import SubscriptionRepository
from docai.schemas.subscription import (
    PLAN_CURRENCY,
    CreateOrderResponse,
    Plan,
    SubscriptionResponse,
    SubscriptionStatusResponse,
    VerifyPaymentResponse,
    get_plan_config,
)
from docai.services import state_machine
from docai.services.credit_service import CreditService
from docai.services.razorpay_client import MAX_RECEIPT_LENGTH, RazorpayClient

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_receipt(user_id: str, now_ms: Optional[int] = None) -> str:
    """
    Receipt id for an order: ord_{last 10 of user id}_{last 8 of ms timestamp}.

    Never longer than the provider's 40-character limit.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    receipt = f"ord_{user_id[-10:]}_{str(now_ms)[-8:]}"
    return receipt[:MAX_RECEIPT_LENGTH]


class SubscriptionService:
    """
    Service class for subscription operations.
    """

    def __init__(
        self,
        db: Optional[AsyncSession] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
        credit_service: Optional[CreditService] = None,
        client_factory: Optional[Callable[[], RazorpayClient]] = None,
        verifier: Optional[PaymentSignatureVerifier] = None,
    ):
        self.subscription_repo = subscription_repo or SubscriptionRepository(db)
        self.credit_service = credit_service or CreditService(db)
        self.client_factory = client_factory or RazorpayClient.from_settings
        self.verifier = verifier or PaymentSignatureVerifier(
            key_secret=settings.RAZORPAY_KEY_SECRET,
            webhook_secret=settings.RAZORPAY_WEBHOOK_SECRET,
        )

    # ============================================================
    # CREATE ORDER
    # ============================================================

    async def create_order(self, user_id: str, plan: Optional[str]) -> CreateOrderResponse:
        """
        Create a provider order for a paid plan and record it as pending.

        The plan is validated before any provider call; the amount
        always comes from the plan table.

        Raises:
            ValidationError: Unknown or non-purchasable plan
            ConfigurationError: Payment credentials or public key missing
            UpstreamError: The provider rejected the order
        """
        plan_config = get_plan_config(plan)
        if plan_config is None:
            raise ValidationError('Invalid plan. Choose "pro" or "premium"')

        key_id = settings.RAZORPAY_PUBLIC_KEY_ID or settings.RAZORPAY_KEY_ID
        if not key_id:
            logger.error("Public payment key id is not set")
            raise ConfigurationError("Payment configuration error")

        client = self.client_factory()

        logger.info(
            f"Creating Razorpay order for user: {user_id}, plan: {plan_config.plan.value} "
            f"({plan_config.name})"
        )

        order = await client.create_order(
            amount=plan_config.amount,
            currency=PLAN_CURRENCY,
            receipt=build_receipt(user_id),
            notes={
                "user_id": user_id,
                "plan": plan_config.plan.value,
                "plan_name": plan_config.name,
            },
        )
        logger.info(f"Razorpay order created successfully: {order.id}")

        await self.subscription_repo.upsert_for_user(
            user_id,
            state_machine.order_created(plan_config.plan, order.id, _utcnow()),
        )

        return CreateOrderResponse(
            orderId=order.id,
            amount=order.amount,
            currency=order.currency,
            keyId=key_id,
        )

    # ============================================================
    # VERIFY PAYMENT
    # ============================================================

    async def verify_payment(
        self,
        user_id: str,
        order_id: Optional[str],
        payment_id: Optional[str],
        signature: Optional[str],
    ) -> VerifyPaymentResponse:
        """
        Activate a subscription from a client-reported checkout result.

        The signature is re-verified server-side; the client's word is
        never trusted on its own.

        Raises:
            ValidationError: Missing fields or invalid signature
            NotFoundError: No subscription holds this order id
            StateConflictError: The subscription is cancelled or expired
        """
        if not (order_id and payment_id and signature):
            raise ValidationError("Invalid payment signature")

        verified = self.verifier.verify_payment(order_id, payment_id, signature)
        if verified is None:
            raise ValidationError("Invalid payment signature")

        subscription = await self.subscription_repo.get_by_order_id(order_id)
        if subscription is None:
            raise NotFoundError("Subscription not found")

        if subscription.user_id != user_id:
            logger.warning(
                f"User {user_id} verified payment for order {order_id} "
                f"owned by {subscription.user_id}"
            )

        await self.activate_verified(subscription, verified)

        return VerifyPaymentResponse()

    async def activate_verified(self, subscription, verified: VerifiedPayment):
        """
        Apply one verified payment to its subscription row.

        Entitlement activation on the profile is best-effort and runs
        after the subscription row is committed.
        """
        verified.consume()

        changes = state_machine.payment_activated(
            subscription.status, _utcnow(), settings.SUBSCRIPTION_PERIOD_DAYS
        )
        if changes is None:
            logger.info(
                f"Payment {verified.payment_id} ignored: subscription {subscription.id} "
                f"is {subscription.status}"
            )
            raise StateConflictError(
                f"Subscription is {subscription.status} and cannot be activated. "
                "Create a new order."
            )

        subscription = await self.subscription_repo.apply(subscription, changes)
        logger.info(f"Subscription {subscription.id} activated by payment {verified.payment_id}")

        try:
            await self.credit_service.activate_subscription(subscription.user_id, subscription.plan)
        except Exception as e:
            logger.error(f"Failed to activate subscription in user profile: {e}")

        return subscription

    # ============================================================
    # STATUS
    # ============================================================

    async def get_status(self, user_id: str) -> SubscriptionStatusResponse:
        """
        Current entitlement projection.

        Only an active row counts. An active row whose period has ended
        is flipped to expired here.
        """
        inactive = SubscriptionStatusResponse(isActive=False, plan=Plan.FREE, subscription=None)

        subscription = await self.subscription_repo.get_active_by_user(user_id)
        if subscription is None:
            return inactive

        changes = state_machine.expired_by_date(
            subscription.status, subscription.end_date, _utcnow()
        )
        if changes is not None:
            await self.subscription_repo.apply(subscription, changes)
            logger.info(f"Subscription {subscription.id} expired on {subscription.end_date}")
            return inactive

        return SubscriptionStatusResponse(
            isActive=True,
            plan=Plan(subscription.plan),
            subscription=SubscriptionResponse.model_validate(subscription),
        )
