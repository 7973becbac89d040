"""
Subscription Endpoints

Order creation, checkout verification and status.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from docai.db.database import get_db
from docai.api.deps import get_current_user_id, to_http_exception
from docai.core.exceptions import DocAIError
from docai.schemas.subscription import (
    CreateOrderRequest,
    CreateOrderResponse,
    SubscriptionStatusResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from docai.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Subscription"])


def get_subscription_service(db: AsyncSession = Depends(get_db)) -> SubscriptionService:
    return SubscriptionService(db)


@router.post(
    "/create-order",
    response_model=CreateOrderResponse,
    summary="Create a payment order for a plan",
    responses={
        400: {"description": "Invalid plan"},
        401: {"description": "Not authenticated"},
        500: {"description": "Payment system not configured or provider error"},
    },
)
async def create_order(
    body: CreateOrderRequest,
    user_id: str = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
):
    try:
        return await service.create_order(user_id, body.plan)
    except DocAIError as e:
        if e.details:
            raise HTTPException(status_code=e.status_code, detail=e.to_response())
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Unexpected error in create-order: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create order"
        )


@router.get(
    "/status",
    response_model=SubscriptionStatusResponse,
    summary="Current subscription status",
)
async def get_subscription_status(
    user_id: str = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
):
    try:
        return await service.get_status(user_id)
    except Exception as e:
        logger.error(f"Error checking subscription for {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to check subscription"
        )


@router.post(
    "/verify-payment",
    response_model=VerifyPaymentResponse,
    summary="Verify a completed checkout",
    responses={
        400: {"description": "Invalid payment signature"},
        401: {"description": "Not authenticated"},
        404: {"description": "Subscription not found"},
    },
)
async def verify_payment(
    body: VerifyPaymentRequest,
    user_id: str = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
):
    try:
        return await service.verify_payment(
            user_id,
            body.razorpay_order_id,
            body.razorpay_payment_id,
            body.razorpay_signature,
        )
    except DocAIError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error verifying payment: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to verify payment"
        )
