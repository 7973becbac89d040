from typing import Any, Optional, Dict
import asyncio
import logging
import time

import httpx
from jose import JWTError, jwt

# =====================================================
# Application Settings
# =====================================================
from docai.core.config import settings

logger = logging.getLogger(__name__)


class TokenValidationError(Exception):
    """Raised when a session token cannot be validated."""
    pass


# =====================================================
# JWKS Cache
# =====================================================
class JWKSCache:
    """
    Async JWKS cache with TTL and refetch on unknown key id.

    Session tokens are signed (RS256) by the identity provider with keys
    published at its JWKS endpoint. Keys rotate, so an unknown kid
    triggers one refetch before the token is rejected.
    """

    def __init__(self, jwks_url: str, cache_ttl: int = 600):
        self._jwks_url = jwks_url
        self._cache_ttl = cache_ttl
        self._keys: Dict[str, Dict[str, Any]] = {}
        self._last_fetch: float = 0
        self._lock = asyncio.Lock()

    async def _fetch_jwks(self) -> Dict[str, Dict[str, Any]]:
        """Fetch JWKS and index it by kid."""
        logger.debug(f"Fetching JWKS from {self._jwks_url}")
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.get(self._jwks_url)
            response.raise_for_status()
            jwks = response.json()

        keys = {key["kid"]: key for key in jwks.get("keys", []) if key.get("kid")}
        logger.info(f"Fetched {len(keys)} keys from JWKS endpoint")
        return keys

    def _is_cache_valid(self) -> bool:
        return (time.time() - self._last_fetch) < self._cache_ttl

    async def get_key(self, kid: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            if not self._keys or not self._is_cache_valid():
                self._keys = await self._fetch_jwks()
                self._last_fetch = time.time()

            if kid in self._keys:
                return self._keys[kid]

            # Possible key rotation; 5 second debounce on refetch
            if (time.time() - self._last_fetch) > 5:
                logger.info(f"Key {kid} not found, refetching JWKS")
                self._keys = await self._fetch_jwks()
                self._last_fetch = time.time()
                return self._keys.get(kid)

            logger.warning(f"Key {kid} not found in JWKS")
            return None

    def clear(self) -> None:
        self._keys = {}
        self._last_fetch = 0


_jwks_cache: Optional[JWKSCache] = None


def get_jwks_cache() -> JWKSCache:
    """Get the global JWKS cache instance."""
    global _jwks_cache
    if _jwks_cache is None:
        if not settings.CLERK_JWKS_URL:
            raise TokenValidationError("CLERK_JWKS_URL is not configured")
        _jwks_cache = JWKSCache(
            jwks_url=settings.CLERK_JWKS_URL,
            cache_ttl=settings.CLERK_JWKS_CACHE_TTL
        )
    return _jwks_cache


# =====================================================
# Session Token Verification
# =====================================================
async def verify_session_token(
    token: str,
    jwks_cache: Optional[JWKSCache] = None
) -> Dict[str, Any]:
    """
    Verify an identity provider session token and return its claims.

    Checks signature (RS256 against JWKS), expiry, not-before and,
    when CLERK_ISSUER is set, the issuer.

    Raises:
        TokenValidationError: If the token is invalid
    """
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as e:
        raise TokenValidationError(f"Malformed token: {e}")

    kid = header.get("kid")
    if not kid:
        raise TokenValidationError("Token header has no key id")

    cache = jwks_cache or get_jwks_cache()
    try:
        key = await cache.get_key(kid)
    except httpx.HTTPError as e:
        logger.error(f"JWKS fetch failed: {e}")
        raise TokenValidationError("Unable to fetch signing keys")

    if key is None:
        raise TokenValidationError("Unknown signing key")

    options = {"verify_aud": False}
    try:
        claims = jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            issuer=settings.CLERK_ISSUER,
            options=options,
        )
    except JWTError as e:
        raise TokenValidationError(f"Invalid token: {e}")

    if not claims.get("sub"):
        raise TokenValidationError("Token has no subject")

    return claims
