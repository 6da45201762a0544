"""Concurrent candidate generation."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.orm import Session

from media_engine.adapters.video_gen.base import VideoGenProvider, VideoGenRequest, VideoGenResult
from media_engine.db.models import MediaVideoCandidateModel, MediaVideoJobModel
from media_engine.db.session import commit_or_raise
from media_engine.domain.enums import CandidateStatus
from media_engine.errors import ProviderTimeoutError
from media_engine.logging import get_logger
from media_engine.services.prompt_rewriter import variation_prompt
from media_engine.utils import gather_settled

logger = get_logger(__name__)


@dataclass
class GenerationRound:
    """Outcome of one fan-out of candidate generations."""

    attempt: int
    candidate_ids: list[UUID] = field(default_factory=list)
    # Ids of candidates that reached COMPLETED, in the order they finished
    completion_order: list[UUID] = field(default_factory=list)
    failed_ids: list[UUID] = field(default_factory=list)

    @property
    def completed_count(self) -> int:
        return len(self.completion_order)

    @property
    def all_failed(self) -> bool:
        return not self.completion_order


class CandidateGenerator:
    """Creates candidate rows and renders them concurrently.

    Each candidate's provider call is independent: an exception or timeout
    marks only that candidate ``failed``. A persistence error is re-raised
    only after every sibling has settled. The session is shared by all
    candidate coroutines; they run on one event loop thread and commit
    between awaits, so writes never interleave.
    """

    def __init__(
        self,
        session: Session,
        video_gen: VideoGenProvider,
        timeout_seconds: float | None = None,
    ) -> None:
        self.session = session
        self.video_gen = video_gen
        self.timeout_seconds = timeout_seconds

    def create_candidates(
        self,
        job: MediaVideoJobModel,
        prompt: str,
        n: int,
        attempt: int,
        start_index: int,
    ) -> list[MediaVideoCandidateModel]:
        """Insert ``n`` pending candidate rows and commit them."""
        candidates = []
        for offset in range(n):
            index = start_index + offset
            candidate = MediaVideoCandidateModel(
                job_id=job.id,
                candidate_index=index,
                attempt=attempt,
                status=CandidateStatus.PENDING,
                prompt=variation_prompt(prompt, index),
                provider=self.video_gen.name,
            )
            self.session.add(candidate)
            candidates.append(candidate)

        commit_or_raise(self.session)
        return candidates

    async def generate(
        self,
        job: MediaVideoJobModel,
        prompt: str,
        n: int,
        attempt: int = 0,
        start_index: int = 0,
        reference_image_url: str | None = None,
        negative_prompt: str | None = None,
    ) -> GenerationRound:
        """Create ``n`` candidates and wait until every one is terminal.

        Args:
            job: Owning job
            prompt: Shared generation prompt; each candidate adds its variation
            n: Number of candidates
            attempt: 0 for the first round, 1 for the retry round
            start_index: First candidate index of this round
            reference_image_url: Product reference for image-to-video providers
            negative_prompt: Things the provider should avoid

        Returns:
            GenerationRound with ids, completion order, and failures
        """
        candidates = self.create_candidates(job, prompt, n, attempt, start_index)
        generation = GenerationRound(
            attempt=attempt,
            candidate_ids=[c.id for c in candidates],
        )

        logger.info(
            "candidate_generation_started",
            job_id=str(job.id),
            count=n,
            attempt=attempt,
            provider=self.video_gen.name,
        )

        await gather_settled(
            *(
                self._run_candidate(
                    candidate,
                    VideoGenRequest(
                        prompt=candidate.prompt or prompt,
                        duration_seconds=job.duration_seconds,
                        aspect_ratio=job.aspect_ratio,
                        reference_image_url=reference_image_url,
                        negative_prompt=negative_prompt,
                    ),
                    generation,
                )
                for candidate in candidates
            )
        )

        logger.info(
            "candidate_generation_finished",
            job_id=str(job.id),
            attempt=attempt,
            completed=generation.completed_count,
            failed=len(generation.failed_ids),
        )
        return generation

    async def _run_candidate(
        self,
        candidate: MediaVideoCandidateModel,
        request: VideoGenRequest,
        generation: GenerationRound,
    ) -> None:
        candidate.status = CandidateStatus.RUNNING
        candidate.started_at = datetime.now(UTC)
        commit_or_raise(self.session)

        try:
            result = await asyncio.wait_for(
                self.video_gen.generate(request),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            error = ProviderTimeoutError(self.video_gen.name, self.timeout_seconds or 0)
            self._mark_failed(candidate, str(error), generation)
            return
        except Exception as e:
            self._mark_failed(candidate, f"{type(e).__name__}: {e}", generation)
            return

        if not result.success or not result.video_url:
            self._mark_failed(
                candidate,
                result.error_message or "Provider returned no video",
                generation,
            )
            return

        self._mark_completed(candidate, result, generation)

    def _mark_completed(
        self,
        candidate: MediaVideoCandidateModel,
        result: VideoGenResult,
        generation: GenerationRound,
    ) -> None:
        candidate.status = CandidateStatus.COMPLETED
        candidate.video_url = result.video_url
        candidate.thumbnail_url = result.thumbnail_url
        candidate.duration_seconds = result.duration_seconds
        candidate.generation_metadata = result.metadata or None
        candidate.completed_at = datetime.now(UTC)
        commit_or_raise(self.session)

        generation.completion_order.append(candidate.id)
        logger.info(
            "candidate_completed",
            candidate_id=str(candidate.id),
            candidate_index=candidate.candidate_index,
        )

    def _mark_failed(
        self,
        candidate: MediaVideoCandidateModel,
        error_message: str,
        generation: GenerationRound,
    ) -> None:
        candidate.status = CandidateStatus.FAILED
        candidate.error_message = error_message[:2000]
        candidate.completed_at = datetime.now(UTC)
        commit_or_raise(self.session)

        generation.failed_ids.append(candidate.id)
        logger.warning(
            "candidate_failed",
            candidate_id=str(candidate.id),
            candidate_index=candidate.candidate_index,
            error=error_message[:200],
        )
