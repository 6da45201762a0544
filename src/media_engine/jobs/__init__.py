"""Celery job definitions."""

from media_engine.jobs.media_pipeline import run_video_job_task

__all__ = ["run_video_job_task"]
