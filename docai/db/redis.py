"""
Redis Connection Module

Async Redis connection management for the ARQ task queue that carries
processing trigger calls to the external processor.

When a document is queued (upload or retry) we:
1. Commit the document row with status "queued"
2. Push a trigger job to Redis
3. Return the response to the user

The worker process pulls the job and calls the processor webhook.
"""

import logging
import time
from typing import Optional

from redis.asyncio import Redis, ConnectionPool
from arq.connections import RedisSettings, ArqRedis, create_pool

from docai.core.config import settings

# ============================================================
# Logging Setup
# ============================================================
logger = logging.getLogger(__name__)

# ============================================================
# Redis Connection Pool (for health checks)
# ============================================================

_redis_pool: Optional[ConnectionPool] = None

def get_redis_pool() -> ConnectionPool:
    """
    Get or create the Redis connection pool.

    Singleton: created on startup, reused thereafter.
    """
    global _redis_pool

    if _redis_pool is None:
        _redis_pool = ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=10,
            decode_responses=False,
        )
        logger.info("Redis connection pool created")

    return _redis_pool


async def get_redis() -> Redis:
    """Redis client bound to the shared pool."""
    return Redis(connection_pool=get_redis_pool())


async def close_redis_pool():
    """Close Redis connection pool during app shutdown."""
    global _redis_pool

    if _redis_pool is not None:
        await _redis_pool.disconnect()
        _redis_pool = None
        logger.info("Redis connection pool closed")


# ============================================================
# ARQ Redis Settings (for task queue)
# ============================================================

def get_arq_redis_settings(conn_timeout: int = 10, conn_retries: int = 5) -> RedisSettings:
    """
    Redis settings for the ARQ task queue, parsed from REDIS_URL.

    The worker keeps the patient defaults; the API side enqueues on the
    request path and asks for a single short attempt.
    """
    redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)
    # Connection retry settings
    redis_settings.conn_timeout = conn_timeout
    redis_settings.conn_retries = conn_retries
    redis_settings.conn_retry_delay = 1
    return redis_settings


# ============================================================
# ARQ Connection Pool (for enqueueing tasks)
# ============================================================

_arq_pool: Optional[ArqRedis] = None
_arq_pool_failed_at: Optional[float] = None


async def get_arq_pool() -> ArqRedis:
    """
    Get or create the ARQ Redis pool for enqueueing tasks.

    After a failed connection attempt, calls fail immediately until
    REDIS_RECONNECT_BACKOFF_SECONDS have passed.

    Usage:
        pool = await get_arq_pool()
        await pool.enqueue_job('trigger_processing', payload=payload)

    Raises:
        ConnectionError: While Redis is considered unavailable
    """
    global _arq_pool, _arq_pool_failed_at

    if _arq_pool is None:
        if (
            _arq_pool_failed_at is not None
            and time.monotonic() - _arq_pool_failed_at < settings.REDIS_RECONNECT_BACKOFF_SECONDS
        ):
            raise ConnectionError("ARQ Redis pool unavailable, not retrying yet")

        try:
            _arq_pool = await create_pool(get_arq_redis_settings(conn_timeout=2, conn_retries=0))
        except Exception:
            _arq_pool_failed_at = time.monotonic()
            raise

        _arq_pool_failed_at = None
        logger.info("ARQ Redis pool created")

    return _arq_pool


async def close_arq_pool():
    """Close ARQ Redis pool during shutdown."""
    global _arq_pool

    if _arq_pool is not None:
        await _arq_pool.close()
        _arq_pool = None
        logger.info("ARQ Redis pool closed")

# ============================================================
# Health Check
# ============================================================

async def check_redis_connection() -> bool:
    """
    Check if Redis is reachable.

    Returns:
        True if Redis responds to PING, False otherwise
    """
    try:
        redis = await get_redis()
        return bool(await redis.ping())
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return False
