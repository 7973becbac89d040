"""
Document and Subscription State Transitions

Every mutation of a document or subscription row is computed here as a
pure function of (current persisted state, incoming event) -> field
changes. Repositories only write the returned dict.

Rules shared by both machines:
- Replaying the same event yields the same row (idempotent).
- Terminal states are sticky. A stale or duplicate event never moves a
  row out of completed/failed (documents) or cancelled/expired
  (subscriptions); only an explicit retry or a new order does.
- A function returns None when the event must be ignored for the
  current state.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from docai.schemas.document import (
    CALLBACK_STATUSES,
    DEFAULT_FAILURE_MESSAGE,
    DocumentStatus,
)
from docai.schemas.subscription import Plan, SubscriptionStatus

Changes = Dict[str, Any]


# ============================================================
# DOCUMENTS
# ============================================================

def queued_for_retry(now: datetime) -> Changes:
    """Owner-initiated retry: back to queued with history cleared."""
    return {
        "status": DocumentStatus.QUEUED.value,
        "processed_output": None,
        "error": None,
        "processed_at": None,
        "updated_at": now,
    }


def processor_callback(
    current_status: str,
    new_status: DocumentStatus,
    now: datetime,
    output: Optional[Dict[str, Any]] = None,
    error: Optional[str] = None,
) -> Optional[Changes]:
    """
    Field changes for a status report from the external processor.

    - processing: only from queued/processing; ignored once the
      document reached a terminal status (stale delivery).
    - completed: output attached, error cleared.
    - failed: error attached, output cleared.

    Raises:
        ValueError: If new_status is not a callback status
    """
    if new_status not in CALLBACK_STATUSES:
        raise ValueError(f"Status '{new_status}' cannot be reported by the processor")

    current = DocumentStatus(current_status)

    if new_status == DocumentStatus.PROCESSING:
        if current.is_terminal:
            return None
        return {
            "status": new_status.value,
            "processed_output": None,
            "error": None,
            "updated_at": now,
        }

    if new_status == DocumentStatus.COMPLETED:
        return {
            "status": new_status.value,
            "processed_output": output if output is not None else {},
            "error": None,
            "processed_at": now,
            "updated_at": now,
        }

    return {
        "status": new_status.value,
        "processed_output": None,
        "error": error or DEFAULT_FAILURE_MESSAGE,
        "processed_at": now,
        "updated_at": now,
    }


# ============================================================
# SUBSCRIPTIONS
# ============================================================

def order_created(plan: Plan, order_id: str, now: datetime) -> Changes:
    """
    A new order leaves any previous state, including terminal ones.

    Overwrites a pending order id when one already exists.
    """
    return {
        "plan": plan.value,
        "status": SubscriptionStatus.INACTIVE.value,
        "razorpay_order_id": order_id,
        "updated_at": now,
    }


def payment_activated(
    current_status: str,
    now: datetime,
    period_days: int,
) -> Optional[Changes]:
    """
    Verified or captured payment for a pending order.

    Sets the period to [now, now + period]. Replays reset the same
    window instead of stacking another period on top.
    """
    if SubscriptionStatus(current_status).is_terminal:
        return None
    return {
        "status": SubscriptionStatus.ACTIVE.value,
        "start_date": now,
        "end_date": now + timedelta(days=period_days),
        "updated_at": now,
    }


def payment_failed(current_status: str, now: datetime) -> Optional[Changes]:
    """A failed attempt keeps a pending order pending and never downgrades."""
    if SubscriptionStatus(current_status) != SubscriptionStatus.INACTIVE:
        return None
    return {
        "status": SubscriptionStatus.INACTIVE.value,
        "updated_at": now,
    }


def recurring_activated(
    current_status: str,
    subscription_id: str,
    now: datetime,
) -> Optional[Changes]:
    if SubscriptionStatus(current_status).is_terminal:
        return None
    return {
        "status": SubscriptionStatus.ACTIVE.value,
        "razorpay_subscription_id": subscription_id,
        "updated_at": now,
    }


def recurring_charged(
    current_status: str,
    end_date: Optional[datetime],
    now: datetime,
    period_days: int,
) -> Optional[Changes]:
    """
    A fresh recurring charge extends the period.

    The extension starts from the current end date when it is still in
    the future, otherwise from now.
    """
    if SubscriptionStatus(current_status) != SubscriptionStatus.ACTIVE:
        return None
    base = end_date if end_date is not None and end_date > now else now
    return {
        "end_date": base + timedelta(days=period_days),
        "updated_at": now,
    }


def recurring_cancelled(current_status: str, now: datetime) -> Optional[Changes]:
    if SubscriptionStatus(current_status) == SubscriptionStatus.EXPIRED:
        return None
    return {
        "status": SubscriptionStatus.CANCELLED.value,
        "updated_at": now,
    }


def recurring_completed(current_status: str, now: datetime) -> Optional[Changes]:
    if SubscriptionStatus(current_status) == SubscriptionStatus.CANCELLED:
        return None
    return {
        "status": SubscriptionStatus.EXPIRED.value,
        "updated_at": now,
    }


def expired_by_date(
    current_status: str,
    end_date: Optional[datetime],
    now: datetime,
) -> Optional[Changes]:
    """An active row whose period ended is flipped to expired on read."""
    if SubscriptionStatus(current_status) != SubscriptionStatus.ACTIVE:
        return None
    if end_date is None or end_date >= now:
        return None
    return {
        "status": SubscriptionStatus.EXPIRED.value,
        "updated_at": now,
    }
