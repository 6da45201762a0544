"""Tests for the media pipeline Celery task."""

from unittest.mock import patch
from uuid import uuid4

from media_engine.domain.models import VideoJobInput
from media_engine.jobs.media_pipeline import run_video_job_task


class TestRunVideoJobTask:
    """Run the task eagerly against the test orchestrator."""

    def test_task_runs_job_to_completion(self, orchestrator) -> None:
        job_id = orchestrator.submit(
            VideoJobInput(tenant_id=uuid4(), brief="Can on ice", niche="packaged_goods")
        )

        with patch("media_engine.jobs.media_pipeline.JobOrchestrator", return_value=orchestrator):
            result = run_video_job_task.apply(args=[str(job_id)]).get()

        assert result["job_id"] == str(job_id)
        assert result["status"] == "completed"
        assert result["stage"] == "completed"
        assert result["fallback_used"] is False
        assert result["output_url"].startswith("https://videos.test/first/")
        assert result["error_message"] is None

    def test_task_on_terminal_job_is_noop(self, orchestrator) -> None:
        job_id = orchestrator.submit(VideoJobInput(tenant_id=uuid4(), brief="Can on ice"))
        orchestrator.request_cancel(job_id)

        with patch("media_engine.jobs.media_pipeline.JobOrchestrator", return_value=orchestrator):
            result = run_video_job_task.apply(args=[str(job_id)]).get()

        assert result["status"] == "cancelled"
        assert result["output_url"] is None

    def test_task_on_missing_job_reports_not_found(self, orchestrator) -> None:
        job_id = uuid4()

        with patch("media_engine.jobs.media_pipeline.JobOrchestrator", return_value=orchestrator):
            result = run_video_job_task.apply(args=[str(job_id)]).get()

        assert result["job_id"] == str(job_id)
        assert result["status"] == "not_found"
        assert result["output_url"] is None
        assert str(job_id) in result["error_message"]

    def test_task_routed_to_media_queue(self) -> None:
        from media_engine.worker import celery_app

        assert run_video_job_task.name == "media.run_video_job"
        assert celery_app.conf.task_routes["media.run_video_job"] == {"queue": "media"}
