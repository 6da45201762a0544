"""Media video job Celery task.

One task runs one job from start to finish; the orchestrator inside it fans
out candidate generation and QA scoring on the task's event loop.
"""

from typing import Any
from uuid import UUID

from media_engine.errors import JobNotFoundError
from media_engine.logging import get_logger
from media_engine.services.orchestrator import JobOrchestrator
from media_engine.utils import run_async
from media_engine.worker import celery_app

logger = get_logger(__name__)


@celery_app.task(
    bind=True,
    name="media.run_video_job",
    max_retries=0,
    acks_late=True,
)
def run_video_job_task(self: Any, job_id: str) -> dict[str, Any]:
    """Run a submitted video job through the pipeline.

    Args:
        job_id: UUID of the media video job

    Returns:
        Dict with the job's terminal status and output; status is
        ``not_found`` when the job row is missing or was deleted mid-run
    """
    task_id = self.request.id
    logger.info("run_video_job_started", task_id=task_id, job_id=job_id)

    orchestrator = JobOrchestrator()
    try:
        snapshot = run_async(orchestrator.run(UUID(job_id)))
    except JobNotFoundError as e:
        logger.warning("run_video_job_missing", task_id=task_id, job_id=job_id, error=str(e))
        return {
            "job_id": job_id,
            "status": "not_found",
            "stage": None,
            "output_url": None,
            "fallback_used": False,
            "error_message": str(e),
        }

    logger.info(
        "run_video_job_finished",
        task_id=task_id,
        job_id=job_id,
        status=snapshot.status.value,
    )
    return {
        "job_id": job_id,
        "status": snapshot.status.value,
        "stage": snapshot.stage.label,
        "output_url": snapshot.output_url,
        "fallback_used": snapshot.fallback_used,
        "error_message": snapshot.error_message,
    }
