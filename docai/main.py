"""
FastAPI Application Entry Point

This module initializes the FastAPI application with:
- CORS configuration
- Middleware setup (build phase guard, request logging)
- Route registration
- Health check endpoints
- Error handlers
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docai.core.config import settings
from docai.core.exceptions import DocAIError, InternalError
from docai.core.ratelimit import RateLimiter
from docai.db.database import check_db_connection
from docai.db.redis import (
    check_redis_connection,
    get_redis_pool,
    close_redis_pool,
    close_arq_pool,
)
from docai.middleware.build_phase import BuildPhaseMiddleware
from docai.middleware.logging import LoggingMiddleware
from docai.api.v1.router import api_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# ============================================================
# Application Lifespan Events
# ============================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    Startup:
    - Check database connection
    - Initialize Redis connection pool
    - Start the rate limiter sweep

    Shutdown:
    - Stop the rate limiter sweep
    - Close Redis connections
    """
    # ========== STARTUP ==========
    logger.info(f"Starting {settings.PROJECT_NAME}...")
    logger.info(f"Debug mode: {settings.DEBUG}")

    rate_limiter = RateLimiter(sweep_interval=settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS)
    app.state.rate_limiter = rate_limiter

    if settings.BUILD_PHASE:
        logger.info("Build phase: skipping database and Redis checks")
        yield
        return

    try:
        db_healthy = await check_db_connection()
        if db_healthy:
            logger.info("Database connection established successfully")
        else:
            logger.warning("Database connection check failed")
    except Exception as e:
        logger.error(f"Database connection error on startup: {e}")

    try:
        get_redis_pool()  # Creates the pool (singleton)
        redis_healthy = await check_redis_connection()
        if redis_healthy:
            logger.info("Redis connection established successfully")
        else:
            logger.warning("Redis connection check failed - processing triggers will run in-process")
    except Exception as e:
        logger.error(f"Redis connection error on startup: {e}")
        # App works without Redis: triggers fall back to in-process tasks

    rate_limiter.start()

    yield  # Application runs here

    # ========== SHUTDOWN ==========
    logger.info(f"Shutting down {settings.PROJECT_NAME}...")

    await rate_limiter.stop()
    await close_redis_pool()
    await close_arq_pool()

    logger.info("Shutdown complete")


# ============================================================
# Create FastAPI Application
# ============================================================
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    Document processing API

    Features:
    - Session authentication (identity provider JWTs)
    - Document upload registration, retry and export
    - External processor trigger and callback
    - Paid plans through the payment provider
    - Free-tier credits
    """,
    version="1.0.0",
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# ----------------------------------------------------
# Middleware Configuration
# ----------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.DEBUG else settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)

app.add_middleware(BuildPhaseMiddleware, enabled=settings.BUILD_PHASE)

if settings.DEBUG:
    app.add_middleware(LoggingMiddleware)


# ----------------------------------------------------
# Health Check Endpoints
# ----------------------------------------------------
@app.get("/", tags=["Health"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.PROJECT_NAME,
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs" if settings.DEBUG else "disabled"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint for monitoring.

    Checks:
    - Database connectivity
    - Redis connectivity
    """
    try:
        db_healthy = await check_db_connection()
        redis_healthy = await check_redis_connection()

        status = "healthy"
        if not db_healthy or not redis_healthy:
            status = "degraded"

        return {
            "status": status,
            "database": "connected" if db_healthy else "disconnected",
            "redis": "connected" if redis_healthy else "disconnected",
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "error": str(e)
            }
        )

# ============================================================
# Include API Router
# ============================================================
app.include_router(
    api_router,
    prefix=settings.API_V1_PREFIX
)


# ----------------------------------------------------
# Exception Handlers
# ----------------------------------------------------
@app.exception_handler(DocAIError)
async def docai_error_handler(request: Request, exc: DocAIError):
    """Service errors that were not translated by an endpoint."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response()
    )


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    logger.exception(f"Internal server error: {exc}")
    error = InternalError()
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_response()
    )
