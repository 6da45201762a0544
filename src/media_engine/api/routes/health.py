"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from media_engine.api.deps import OrchestratorDep
from media_engine.config import settings
from media_engine.logging import get_logger

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    components: dict[str, bool] | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool
    database: bool
    redis: bool
    components: dict[str, bool] | None = None


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="Basic health check endpoint that verifies the API is running.",
)
async def health_check() -> HealthResponse:
    """Basic health check - is the API up?

    Returns which providers are configured with a real backend.
    """
    from media_engine import __version__

    components = {
        "llm": settings.llm_provider,
        "video_gen": settings.video_gen_provider,
        "image_gen": settings.image_gen_provider,
        "cutout": settings.cutout_provider,
        "vision": settings.vision_provider,
        "catalog": settings.catalog_provider,
    }

    return HealthResponse(
        status="healthy",
        version=__version__,
        components={k: v != "stub" for k, v in components.items()},
    )


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Comprehensive readiness check that verifies all dependencies.",
)
async def readiness_check(orchestrator: OrchestratorDep) -> ReadinessResponse:
    """Comprehensive readiness check including dependencies."""
    # Check database
    database_ok = False
    try:
        from sqlalchemy import text

        from media_engine.db.session import engine

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            database_ok = True
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e))

    # Check Redis
    redis_ok = False
    try:
        import redis

        r = redis.from_url(settings.redis_url)
        r.ping()
        redis_ok = True
    except Exception as e:
        logger.error("redis_health_check_failed", error=str(e))

    # Check providers
    providers = orchestrator.providers
    components = {
        "llm": await providers.llm.health_check(),
        "video_gen": await providers.video_gen.health_check(),
        "image_gen": await providers.image_gen.health_check(),
        "cutout": await providers.cutout.health_check(),
        "vision": await providers.vision.health_check(),
    }

    ready = database_ok and redis_ok and all(components.values())

    return ReadinessResponse(
        ready=ready,
        database=database_ok,
        redis=redis_ok,
        components=components,
    )


@router.get(
    "/health/live",
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    description="Simple liveness probe for Kubernetes.",
)
async def liveness_check() -> dict[str, str]:
    """Kubernetes liveness probe - is the process alive?"""
    return {"status": "alive"}
