"""
Background Tasks Module

Task functions for the ARQ worker.

Task functions receive a special `ctx` parameter:
- ctx['redis']: Redis connection for the worker
- ctx['job_id']: Unique ID of this job
- ctx['job_try']: Which retry attempt this is (1, 2, 3...)

Running Workers:
---------------
    arq docai.worker.WorkerSettings
"""

from docai.tasks.processing_tasks import trigger_processing

# These names are used when enqueueing: enqueue_job('trigger_processing', ...)
__all__ = [
    "trigger_processing",
]
