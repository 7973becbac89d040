from fastapi import APIRouter
from docai.api.v1.endpoints import documents, subscription, users, webhooks

# ============================================================
# Main API v1 Router
# ============================================================

api_router = APIRouter()

api_router.include_router(
    documents.router,
    prefix="/documents"
)

api_router.include_router(
    subscription.router,
    prefix="/subscription"
)

api_router.include_router(
    users.router,
    prefix=""  # Routes define their own prefixes (/credits/status, /user/profile)
)

api_router.include_router(
    webhooks.router,
    prefix="/webhooks"
)
