"""Video job endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from media_engine.api.deps import OrchestratorDep
from media_engine.domain.enums import AspectRatio
from media_engine.domain.models import CandidateSnapshot, JobSnapshot, VideoJobInput
from media_engine.errors import InvalidJobInputError, JobNotFoundError, PersistenceError
from media_engine.logging import get_logger

router = APIRouter(prefix="/jobs", tags=["Media Jobs"])
logger = get_logger(__name__)


class CreateVideoJobRequest(BaseModel):
    """Request to create a product video."""

    tenant_id: UUID
    brief: str = Field(..., min_length=1, max_length=5000, description="Free-text video brief")
    niche: str | None = Field(None, max_length=100, description="Category niche key")
    product_id: UUID | None = Field(None, description="Catalog product to feature")
    product_image_url: str | None = Field(None, max_length=2048)
    calendar_item_id: UUID | None = None
    campaign_id: UUID | None = None
    preset_id: str | None = Field(None, max_length=100)
    aspect_ratio: AspectRatio = AspectRatio.VERTICAL_9_16
    duration_seconds: int = Field(default=6, ge=1, le=60)
    variation_count: int = Field(default=4, ge=1, le=8)
    enable_qa: bool = True
    enable_fallback: bool = True


class CreateVideoJobResponse(BaseModel):
    """Response when a job is accepted."""

    job_id: UUID
    status: str


class CandidateResponse(BaseModel):
    """One generated candidate."""

    id: UUID
    candidate_index: int
    attempt: int
    status: str
    video_url: str | None
    thumbnail_url: str | None
    qa_scores: dict[str, float | None]
    final_score: float | None
    qa_passed: bool | None
    is_best: bool
    rejection_reason: str | None = None
    error_message: str | None = None


class VideoJobResponse(BaseModel):
    """Job snapshot."""

    id: UUID
    tenant_id: UUID
    stage: int
    stage_name: str
    status: str
    progress_percent: int
    current_step: str | None
    niche: str
    original_prompt: str
    rewritten_prompt: str | None
    shot_plan: dict[str, Any] | None
    product_cutout_url: str | None
    qa_threshold: float | None
    best_candidate_id: UUID | None
    output_url: str | None
    output_thumbnail_url: str | None
    fallback_used: bool
    retry_count: int
    qa_summary: dict[str, Any] | None
    error_message: str | None
    candidates: list[CandidateResponse]
    created_at: datetime | None
    started_at: datetime | None
    completed_at: datetime | None


class CancelJobResponse(BaseModel):
    """Response to a cancellation request."""

    job_id: UUID
    status: str
    message: str


def _candidate_to_response(candidate: CandidateSnapshot) -> CandidateResponse:
    return CandidateResponse(
        id=candidate.id,
        candidate_index=candidate.candidate_index,
        attempt=candidate.attempt,
        status=candidate.status.value,
        video_url=candidate.video_url,
        thumbnail_url=candidate.thumbnail_url,
        qa_scores=candidate.qa_scores,
        final_score=candidate.final_score,
        qa_passed=candidate.qa_passed,
        is_best=candidate.is_best,
        rejection_reason=candidate.rejection_reason,
        error_message=candidate.error_message,
    )


def _snapshot_to_response(snapshot: JobSnapshot) -> VideoJobResponse:
    """Convert a JobSnapshot to VideoJobResponse."""
    return VideoJobResponse(
        id=snapshot.id,
        tenant_id=snapshot.tenant_id,
        stage=int(snapshot.stage),
        stage_name=snapshot.stage.label,
        status=snapshot.status.value,
        progress_percent=snapshot.progress_percent,
        current_step=snapshot.current_step,
        niche=snapshot.niche,
        original_prompt=snapshot.original_prompt,
        rewritten_prompt=snapshot.rewritten_prompt,
        shot_plan=snapshot.shot_plan,
        product_cutout_url=snapshot.product_cutout_url,
        qa_threshold=snapshot.qa_threshold,
        best_candidate_id=snapshot.best_candidate_id,
        output_url=snapshot.output_url,
        output_thumbnail_url=snapshot.output_thumbnail_url,
        fallback_used=snapshot.fallback_used,
        retry_count=snapshot.retry_count,
        qa_summary=snapshot.qa_summary,
        error_message=snapshot.error_message,
        candidates=[_candidate_to_response(c) for c in snapshot.candidates],
        created_at=snapshot.created_at,
        started_at=snapshot.started_at,
        completed_at=snapshot.completed_at,
    )


@router.post(
    "",
    response_model=CreateVideoJobResponse,
    status_code=status.HTTP_200_OK,
    summary="Create video job",
    description="Validate a brief, create a pending job and enqueue it for processing.",
)
async def create_video_job(
    request: CreateVideoJobRequest,
    orchestrator: OrchestratorDep,
) -> CreateVideoJobResponse:
    """Create and enqueue a video job."""
    logger.info(
        "video_job_requested",
        tenant_id=str(request.tenant_id),
        niche=request.niche,
        brief=request.brief[:50],
    )

    job_input = VideoJobInput(
        tenant_id=request.tenant_id,
        brief=request.brief,
        niche=request.niche or "",
        duration_seconds=request.duration_seconds,
        variation_count=request.variation_count,
        enable_qa=request.enable_qa,
        enable_fallback=request.enable_fallback,
        product_id=request.product_id,
        product_image_url=request.product_image_url,
        calendar_item_id=request.calendar_item_id,
        campaign_id=request.campaign_id,
        preset_id=request.preset_id,
        aspect_ratio=request.aspect_ratio,
    )

    try:
        job_id = orchestrator.submit(job_input)
    except InvalidJobInputError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    except PersistenceError as e:
        logger.error("video_job_create_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job could not be stored",
        ) from e

    return CreateVideoJobResponse(job_id=job_id, status="pending")


@router.get(
    "/{job_id}",
    response_model=VideoJobResponse,
    summary="Get video job",
    description="Current stage, status, outputs and per-candidate QA scores of a job.",
)
async def get_video_job(job_id: UUID, orchestrator: OrchestratorDep) -> VideoJobResponse:
    """Get a job snapshot."""
    try:
        snapshot = orchestrator.get_status(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    return _snapshot_to_response(snapshot)


@router.post(
    "/{job_id}/cancel",
    response_model=CancelJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Cancel video job",
    description="Request cancellation; a running job stops at its next stage boundary.",
)
async def cancel_video_job(job_id: UUID, orchestrator: OrchestratorDep) -> CancelJobResponse:
    """Request cancellation of a job."""
    try:
        snapshot = orchestrator.request_cancel(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    if snapshot.status.is_terminal:
        message = f"Job is {snapshot.status.value}"
    else:
        message = "Cancellation requested; the job stops at its next stage boundary"

    return CancelJobResponse(job_id=job_id, status=snapshot.status.value, message=message)
