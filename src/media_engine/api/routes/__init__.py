"""API route modules."""

from media_engine.api.routes import health, media_jobs, profiles

__all__ = ["health", "media_jobs", "profiles"]
