"""
User and Credit Endpoints
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from docai.db.database import get_db
from docai.api.deps import get_current_user_id, to_http_exception
from docai.core.exceptions import DocAIError
from docai.schemas.user import (
    CreditStatusResponse,
    UserProfileEnvelope,
    UserProfileResponse,
    UserProfileUpdate,
)
from docai.services.credit_service import CreditService
from docai.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Users"])


@router.get("/credits/status", response_model=CreditStatusResponse)
async def get_credit_status(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await CreditService(db).get_credit_status(user_id)
    except Exception as e:
        logger.error(f"Error getting credit status for {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get credit status"
        )


@router.get("/user/profile", response_model=UserProfileEnvelope)
async def get_profile(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await UserService(db).get_profile(user_id)
    except DocAIError as e:
        raise to_http_exception(e)


@router.patch("/user/profile", response_model=UserProfileResponse)
@router.put("/user/profile", response_model=UserProfileResponse, include_in_schema=False)
async def update_profile(
    update: UserProfileUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await UserService(db).update_profile(user_id, update)
    except DocAIError as e:
        raise to_http_exception(e)
