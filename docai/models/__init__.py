from docai.models.base import Base
from docai.models.user_profile import UserProfile
from docai.models.document import Document
from docai.models.subscription import Subscription

__all__ = [
    "Base",
    "UserProfile",
    "Document",
    "Subscription",
]
