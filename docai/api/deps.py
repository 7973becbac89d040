from fastapi import HTTPException, Depends, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Callable, Optional, Dict, Any
import logging

from docai.core.config import settings
from docai.core.exceptions import DocAIError, QuotaExceededError
from docai.core.ratelimit import (
    RATE_LIMITS,
    RateLimiter,
    get_rate_limit_key,
    rate_limit_headers,
)
from docai.core.security import TokenValidationError, verify_session_token

logger = logging.getLogger(__name__)

# Security scheme for Swagger UI
security = HTTPBearer(auto_error=False)


def to_http_exception(error: DocAIError) -> HTTPException:
    """Translate a service error into the matching HTTP response."""
    if isinstance(error, QuotaExceededError):
        detail = error.to_response()
    else:
        detail = error.message
    return HTTPException(status_code=error.status_code, detail=detail)


# =====================================================
# Get Current user
# =====================================================
async def get_current_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict[str, Any]:
    """
    Dependency that validates the session token and returns its claims.

    Raises:
        HTTPException 401: If token is invalid or missing
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"}
        )

    try:
        return await verify_session_token(credentials.credentials)
    except TokenValidationError as e:
        logger.info(f"Session token rejected: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"}
        )


async def get_current_user_id(
    claims: Dict[str, Any] = Depends(get_current_claims),
) -> str:
    """Identity provider user id of the caller."""
    return claims["sub"]


# =====================================================
# Rate limiting
# =====================================================
def get_client_ip(request: Request) -> str:
    """Client address, honoring proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


def get_rate_limiter(request: Request) -> RateLimiter:
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        limiter = RateLimiter(sweep_interval=settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS)
        request.app.state.rate_limiter = limiter
    return limiter


def rate_limit(endpoint: str) -> Callable:
    """
    Build a dependency that applies the named rate limit preset.

    Usage:
        @router.post("/upload", dependencies=[Depends(rate_limit("upload"))])
    """
    config = RATE_LIMITS.get(endpoint, RATE_LIMITS["default"])

    async def _check(
        request: Request,
        user_id: str = Depends(get_current_user_id),
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> None:
        if not settings.RATE_LIMIT_ENABLED:
            return

        key = get_rate_limit_key(user_id, get_client_ip(request), endpoint)
        result = limiter.check(key, config)
        if not result.allowed:
            logger.warning(f"Rate limit exceeded for {key}")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later.",
                headers=rate_limit_headers(result),
            )

    return _check
