"""
ARQ Worker Configuration

Runs the processor trigger jobs enqueued by the API.

Running the Worker:
------------------
    # From project root directory
    arq docai.worker.WorkerSettings

    # With verbose logging
    arq docai.worker.WorkerSettings --verbose

Multiple workers can pull from the same Redis queue.
"""

import logging
from typing import Any, Dict

from docai.core.config import settings
from docai.db.redis import get_arq_redis_settings
from docai.tasks.processing_tasks import trigger_processing

# ============================================================
# Logging Configuration
# ============================================================

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# ============================================================
# Startup and Shutdown Hooks
# ============================================================

async def startup(ctx: Dict[str, Any]) -> None:
    logger.info("ARQ Worker starting up...")

    if not settings.N8N_WEBHOOK_URL:
        logger.warning("N8N_WEBHOOK_URL is not set, trigger jobs will be skipped")

    logger.info("ARQ Worker ready to process jobs")


async def shutdown(ctx: Dict[str, Any]) -> None:
    logger.info("ARQ Worker shutdown complete")


# ============================================================
# Worker Configuration Class
# ============================================================

class WorkerSettings:
    """
    ARQ Worker settings.

    Discovered by ARQ when you run:
        arq docai.worker.WorkerSettings
    """

    functions = [
        trigger_processing,
    ]

    redis_settings = get_arq_redis_settings()

    on_startup = startup
    on_shutdown = shutdown

    # ========================================
    # Job Settings
    # ========================================
    job_timeout = 120      # 3 attempts with backoff fit well inside this
    keep_result = 3600     # 1 hour
    max_tries = 1          # post_to_processor retries on its own

    # ========================================
    # Concurrency Settings
    # ========================================
    max_jobs = 10
    poll_delay = 0.5

    queue_name = "arq:queue"
    health_check_interval = 10
