"""
Payment Reconciliation Dispatcher

Applies authenticated payment provider events to subscription rows and
profile entitlement flags.

Event routing is an exact match on the event name. Unknown events are
logged and ignored, and an event that references no known row is a
no-op, so the provider always gets a 2xx once the signature passed.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from docai.core.config import settings
from docai.models.subscription import Subscription
from docai.repositories.subscription_repo import SubscriptionRepository
from docai.schemas.subscription import SubscriptionStatus
from docai.schemas.webhooks import PaymentWebhookEvent
from docai.services import state_machine
from docai.services.credit_service import CreditService

logger = logging.getLogger(__name__)

Handler = Callable[[PaymentWebhookEvent], Awaitable[Optional[Subscription]]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentWebhookDispatcher:
    """
    Routes payment events to their handlers.

    Handlers return the updated subscription, or None when the event
    changed nothing.
    """

    def __init__(
        self,
        db: Optional[AsyncSession] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
        credit_service: Optional[CreditService] = None,
        period_days: Optional[int] = None,
    ):
        self.subscription_repo = subscription_repo or SubscriptionRepository(db)
        self.credit_service = credit_service or CreditService(db)
        self.period_days = period_days or settings.SUBSCRIPTION_PERIOD_DAYS

        self._handlers: Dict[str, Handler] = {
            "payment.captured": self._payment_captured,
            "payment.failed": self._payment_failed,
            "subscription.activated": self._subscription_activated,
            "subscription.charged": self._subscription_charged,
            "subscription.cancelled": self._subscription_cancelled,
            "subscription.completed": self._subscription_completed,
        }

    async def dispatch(
        self,
        event: Union[PaymentWebhookEvent, Dict[str, Any]]
    ) -> Optional[Subscription]:
        if not isinstance(event, PaymentWebhookEvent):
            event = PaymentWebhookEvent.model_validate(event)

        handler = self._handlers.get(event.event)
        if handler is None:
            logger.info(f"Unhandled event type: {event.event}")
            return None

        return await handler(event)

    # ============================================================
    # HELPERS
    # ============================================================

    async def _by_order(self, event: PaymentWebhookEvent) -> Optional[Subscription]:
        payment = event.payment
        if payment is None or not payment.order_id:
            logger.warning(f"{event.event} without payment order id, ignoring")
            return None
        subscription = await self.subscription_repo.get_by_order_id(payment.order_id)
        if subscription is None:
            logger.info(f"{event.event}: no subscription for order {payment.order_id}")
        return subscription

    async def _by_provider_subscription(
        self,
        event: PaymentWebhookEvent
    ) -> Optional[Subscription]:
        entity = event.subscription
        if entity is None or not entity.id:
            logger.warning(f"{event.event} without subscription entity, ignoring")
            return None
        subscription = await self.subscription_repo.get_by_provider_subscription_id(entity.id)
        if subscription is None:
            logger.info(f"{event.event}: no subscription for provider id {entity.id}")
        return subscription

    async def _apply(
        self,
        event: PaymentWebhookEvent,
        subscription: Subscription,
        changes: Optional[Dict[str, Any]]
    ) -> Optional[Subscription]:
        if changes is None:
            logger.info(
                f"{event.event} ignored for subscription {subscription.id} "
                f"in status {subscription.status}"
            )
            return None
        return await self.subscription_repo.apply(subscription, changes)

    async def _grant_entitlements(self, subscription: Subscription) -> None:
        try:
            await self.credit_service.activate_subscription(subscription.user_id, subscription.plan)
        except Exception as e:
            logger.error(f"Failed to activate subscription in user profile: {e}")

    # ============================================================
    # PAYMENT EVENTS
    # ============================================================

    async def _payment_captured(self, event: PaymentWebhookEvent) -> Optional[Subscription]:
        subscription = await self._by_order(event)
        if subscription is None:
            return None

        updated = await self._apply(
            event,
            subscription,
            state_machine.payment_activated(subscription.status, _utcnow(), self.period_days),
        )
        if updated is not None:
            logger.info(f"Subscription {updated.id} activated by captured payment")
            await self._grant_entitlements(updated)
        return updated

    async def _payment_failed(self, event: PaymentWebhookEvent) -> Optional[Subscription]:
        subscription = await self._by_order(event)
        if subscription is None:
            return None
        return await self._apply(
            event,
            subscription,
            state_machine.payment_failed(subscription.status, _utcnow()),
        )

    # ============================================================
    # RECURRING SUBSCRIPTION EVENTS
    # ============================================================

    async def _subscription_activated(self, event: PaymentWebhookEvent) -> Optional[Subscription]:
        subscription = await self._by_provider_subscription(event)
        if subscription is None:
            return None

        updated = await self._apply(
            event,
            subscription,
            state_machine.recurring_activated(
                subscription.status, event.subscription.id, _utcnow()
            ),
        )
        if updated is not None:
            logger.info(f"Recurring subscription activated for user {updated.user_id}")
            await self._grant_entitlements(updated)
        return updated

    async def _subscription_charged(self, event: PaymentWebhookEvent) -> Optional[Subscription]:
        subscription = await self._by_provider_subscription(event)
        if subscription is None:
            return None
        return await self._apply(
            event,
            subscription,
            state_machine.recurring_charged(
                subscription.status, subscription.end_date, _utcnow(), self.period_days
            ),
        )

    async def _subscription_cancelled(self, event: PaymentWebhookEvent) -> Optional[Subscription]:
        subscription = await self._by_provider_subscription(event)
        if subscription is None:
            return None

        updated = await self._apply(
            event,
            subscription,
            state_machine.recurring_cancelled(subscription.status, _utcnow()),
        )
        if updated is not None:
            try:
                await self.credit_service.deactivate_subscription(
                    updated.user_id, SubscriptionStatus.CANCELLED
                )
            except Exception as e:
                logger.error(f"Failed to update user profile on cancellation: {e}")
        return updated

    async def _subscription_completed(self, event: PaymentWebhookEvent) -> Optional[Subscription]:
        subscription = await self._by_provider_subscription(event)
        if subscription is None:
            return None
        return await self._apply(
            event,
            subscription,
            state_machine.recurring_completed(subscription.status, _utcnow()),
        )
