from docai.repositories.base import BaseRepository
from docai.repositories.document_repo import DocumentRepository
from docai.repositories.subscription_repo import SubscriptionRepository
from docai.repositories.user_profile_repo import UserProfileRepository

__all__ = [
    "BaseRepository",
    "DocumentRepository",
    "SubscriptionRepository",
    "UserProfileRepository",
]
