"""
Application Exceptions

Error taxonomy shared by services, webhooks and endpoints.

Every error carries the HTTP status it maps to, so endpoints can
translate service failures without knowing every subclass.
"""

from typing import Any, Optional


class DocAIError(Exception):
    """Base exception for all application errors."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message
        self.details = details

    def to_response(self) -> dict:
        """Body returned to the caller."""
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class AuthenticationError(DocAIError):
    """Missing or invalid caller identity, or bad webhook secret."""

    status_code = 401
    public_message = "Unauthorized"


class ValidationError(DocAIError):
    """Missing or malformed required fields."""

    status_code = 400
    public_message = "Invalid request"


class NotFoundError(DocAIError):
    """Entity absent or not owned by the caller."""

    status_code = 404
    public_message = "Not found"


class StateConflictError(DocAIError):
    """Operation is not valid for the entity's current state."""

    status_code = 400
    public_message = "Invalid state"


class UpstreamError(DocAIError):
    """A third-party API call failed. Provider detail is surfaced."""

    status_code = 500
    public_message = "Upstream provider error"


class ConfigurationError(DocAIError):
    """Required configuration is missing from the environment."""

    status_code = 500
    public_message = "Service not configured"


class InternalError(DocAIError):
    """Unexpected failure. Only a generic message reaches the caller."""

    status_code = 500
    public_message = "Internal server error"

    def to_response(self) -> dict:
        return {"error": self.public_message}


class QuotaExceededError(DocAIError):
    """Free credits used up. The caller must subscribe to continue."""

    status_code = 403
    public_message = "LIMIT_REACHED"

    def __init__(self, reason: str):
        super().__init__(self.public_message, details=reason)

    def to_response(self) -> dict:
        return {
            "error": self.public_message,
            "message": self.details,
            "requiresSubscription": True,
        }
