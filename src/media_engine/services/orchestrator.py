"""Video job orchestration.

The orchestrator is the only writer of a job's ``stage`` and ``status``.
Stages run in order:

1. PREPROCESS - resolve the category profile, build cutout and mask
2. REWRITE - brief to shot plan to generation prompt
3. GENERATE_CANDIDATES - N concurrent renders
4. QA_SELECT - weighted scoring and winner selection
5. RETRY - one hard-fidelity rewrite, then stages 3 and 4 again
6. FALLBACK - cutout composited over a background
7. COMPLETED

Every transition is committed as soon as it happens, so a status read always
sees the latest stage, progress and partial outputs.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import inspect, select
from sqlalchemy.exc import InvalidRequestError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import ObjectDeletedError

from media_engine.config import Settings, get_settings
from media_engine.db.models import MediaVideoCandidateModel, MediaVideoJobModel
from media_engine.db.session import SessionLocal, commit_or_raise
from media_engine.domain.enums import AspectRatio, CandidateStatus, JobStage, JobStatus
from media_engine.domain.models import (
    CandidateSnapshot,
    CategoryProfile,
    JobSnapshot,
    PreparedAsset,
    ScoredCandidate,
    ShotPlan,
    VideoJobInput,
)
from media_engine.errors import (
    FallbackNotViableError,
    InvalidJobInputError,
    JobCancelledError,
    JobDeletedError,
    JobNotFoundError,
    MediaPipelineError,
    PersistenceError,
    ProviderError,
)
from media_engine.logging import get_logger
from media_engine.services.candidate_generator import CandidateGenerator
from media_engine.services.category_profiles import CategoryProfileResolver
from media_engine.services.fallback_compositor import FallbackCompositor, FallbackConstraints
from media_engine.services.preprocessor import Preprocessor
from media_engine.services.prompt_rewriter import PromptRewriter
from media_engine.services.providers import ProviderSet, build_provider_set
from media_engine.services.qa import QAScorer
from media_engine.services.selector import Selector, select_best, select_first_completed

logger = get_logger(__name__)

STAGE_PROGRESS: dict[JobStage, int] = {
    JobStage.PENDING: 0,
    JobStage.PREPROCESS: 10,
    JobStage.REWRITE: 20,
    JobStage.GENERATE_CANDIDATES: 30,
    JobStage.QA_SELECT: 70,
    JobStage.RETRY: 80,
    JobStage.FALLBACK: 90,
    JobStage.COMPLETED: 100,
}

# Progress of the retry round's generate and QA stages
RETRY_GENERATE_PROGRESS = 84
RETRY_QA_PROGRESS = 88

MAX_BRIEF_LENGTH = 5000
MAX_DURATION_SECONDS = 60

Enqueuer = Callable[[UUID], str | None]


def celery_enqueue(job_id: UUID) -> str:
    """Send the job to the media worker queue. Returns the Celery task id."""
    from media_engine.jobs.media_pipeline import run_video_job_task

    result = run_video_job_task.delay(str(job_id))
    return str(result.id)


def _now() -> datetime:
    return datetime.now(UTC)


def _audit(job: MediaVideoJobModel, event: str, **details: Any) -> None:
    """Append a diagnostic entry. Reassigned so the JSON column is flagged dirty."""
    entry = {"at": _now().isoformat(), "event": event, **details}
    job.audit_log = [*(job.audit_log or []), entry]


def build_candidate_snapshot(candidate: MediaVideoCandidateModel) -> CandidateSnapshot:
    return CandidateSnapshot(
        id=candidate.id,
        candidate_index=candidate.candidate_index,
        attempt=candidate.attempt or 0,
        status=CandidateStatus(candidate.status),
        video_url=candidate.video_url,
        thumbnail_url=candidate.thumbnail_url,
        duration_seconds=candidate.duration_seconds,
        qa_scores={
            "similarity": candidate.similarity_score,
            "label_ocr": candidate.label_ocr_score,
            "quality": candidate.quality_score,
            "temporal_stability": candidate.temporal_stability_score,
        },
        final_score=candidate.final_score,
        qa_passed=candidate.qa_passed,
        is_best=bool(candidate.is_best),
        rejection_reason=candidate.rejection_reason,
        error_message=candidate.error_message,
    )


def build_snapshot(job: MediaVideoJobModel) -> JobSnapshot:
    """Read-only view of a job and its candidates."""
    return JobSnapshot(
        id=job.id,
        tenant_id=job.tenant_id,
        stage=JobStage(job.stage or 0),
        status=JobStatus(job.status),
        progress_percent=job.progress_percent or 0,
        current_step=job.current_step,
        niche=job.niche,
        original_prompt=job.original_prompt,
        rewritten_prompt=job.rewritten_prompt,
        shot_plan=job.shot_plan,
        product_cutout_url=job.product_cutout_url,
        qa_threshold=job.qa_threshold,
        best_candidate_id=job.best_candidate_id,
        output_url=job.output_url,
        output_thumbnail_url=job.output_thumbnail_url,
        fallback_used=bool(job.fallback_used),
        retry_count=job.retry_count or 0,
        qa_summary=job.qa_summary,
        error_message=job.error_message,
        candidates=[build_candidate_snapshot(c) for c in job.candidates],
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
    )


@dataclass
class _RunState:
    """Working state of one pipeline run, shared between stages."""

    profile: CategoryProfile
    asset: PreparedAsset = field(default_factory=PreparedAsset)
    product_hint: str | None = None
    plan: ShotPlan | None = None
    prompt: str = ""
    negative_prompt: str = ""
    scored: list[ScoredCandidate] = field(default_factory=list)


class JobOrchestrator:
    """Submits, runs, inspects and cancels video jobs.

    Args:
        providers: External collaborators; built from settings when omitted
        session_factory: Session factory; defaults to the application's
        settings: Settings; defaults to the cached application settings
        enqueue: Callable that schedules a job run and returns a task id
    """

    def __init__(
        self,
        providers: ProviderSet | None = None,
        session_factory: sessionmaker[Session] | Callable[[], Session] | None = None,
        settings: Settings | None = None,
        enqueue: Enqueuer | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.providers = providers or build_provider_set(self.settings)
        self.session_factory = session_factory or SessionLocal
        self.enqueue = enqueue or celery_enqueue

    # -------------------------------------------------------------------------
    # Submission and reads
    # -------------------------------------------------------------------------

    def validate(self, job_input: VideoJobInput) -> VideoJobInput:
        """Check a submission and fill in defaults.

        Raises:
            InvalidJobInputError: If the input cannot produce a job
        """
        brief = (job_input.brief or "").strip()
        if not brief:
            raise InvalidJobInputError("brief must not be empty")
        if len(brief) > MAX_BRIEF_LENGTH:
            raise InvalidJobInputError(f"brief must be at most {MAX_BRIEF_LENGTH} characters")

        max_variations = self.settings.max_variation_count
        if not 1 <= job_input.variation_count <= max_variations:
            raise InvalidJobInputError(f"variation_count must be between 1 and {max_variations}")
        if not 1 <= job_input.duration_seconds <= MAX_DURATION_SECONDS:
            raise InvalidJobInputError(
                f"duration_seconds must be between 1 and {MAX_DURATION_SECONDS}"
            )

        try:
            aspect_ratio = AspectRatio(job_input.aspect_ratio)
        except ValueError as e:
            raise InvalidJobInputError(f"unsupported aspect_ratio: {job_input.aspect_ratio}") from e

        niche = (job_input.niche or "").strip().lower() or self.settings.default_niche
        image_url = (job_input.product_image_url or "").strip() or None
        if image_url is not None and not self.providers.storage.is_fetchable(image_url):
            raise InvalidJobInputError("product_image_url must be an http(s) URL")

        return VideoJobInput(
            tenant_id=job_input.tenant_id,
            brief=brief,
            niche=niche,
            duration_seconds=job_input.duration_seconds,
            variation_count=job_input.variation_count,
            enable_qa=job_input.enable_qa,
            enable_fallback=job_input.enable_fallback,
            product_id=job_input.product_id,
            product_image_url=image_url,
            calendar_item_id=job_input.calendar_item_id,
            campaign_id=job_input.campaign_id,
            preset_id=job_input.preset_id,
            aspect_ratio=aspect_ratio,
        )

    def submit(self, job_input: VideoJobInput) -> UUID:
        """Create a pending job and schedule it. Returns without waiting.

        Raises:
            InvalidJobInputError: If validation fails
            PersistenceError: If the job row cannot be written
        """
        data = self.validate(job_input)

        with self.session_factory() as session:
            job = MediaVideoJobModel(
                tenant_id=data.tenant_id,
                calendar_item_id=data.calendar_item_id,
                campaign_id=data.campaign_id,
                product_id=data.product_id,
                original_prompt=data.brief,
                product_image_url=data.product_image_url,
                niche=data.niche,
                preset_id=data.preset_id,
                aspect_ratio=data.aspect_ratio.value,
                duration_seconds=data.duration_seconds,
                variation_count=data.variation_count,
                enable_qa=data.enable_qa,
                enable_fallback=data.enable_fallback,
                status=JobStatus.PENDING,
                stage=int(JobStage.PENDING),
                progress_percent=0,
                current_step="Queued",
                cancel_requested=False,
                retry_count=0,
                fallback_used=False,
            )
            _audit(job, "submitted", niche=data.niche, variation_count=data.variation_count)
            session.add(job)
            commit_or_raise(session)
            job_id = job.id

            try:
                task_id = self.enqueue(job_id)
            except Exception as e:
                logger.error("job_enqueue_failed", job_id=str(job_id), error=str(e))
                job.status = JobStatus.FAILED
                job.error_message = f"Failed to enqueue job: {e}"
                job.completed_at = _now()
                commit_or_raise(session)
                raise

            job.celery_task_id = task_id
            commit_or_raise(session)

        logger.info(
            "job_submitted",
            job_id=str(job_id),
            tenant_id=str(data.tenant_id),
            niche=data.niche,
            task_id=task_id,
        )
        return job_id

    def get_status(self, job_id: UUID) -> JobSnapshot:
        """Current snapshot of a job.

        Raises:
            JobNotFoundError: If no job has this id
        """
        with self.session_factory() as session:
            job = session.get(MediaVideoJobModel, job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            return build_snapshot(job)

    def request_cancel(self, job_id: UUID) -> JobSnapshot:
        """Ask a job to stop.

        A pending job is cancelled immediately; a running job stops at its next
        stage boundary. Terminal jobs are left as they are.
        """
        with self.session_factory() as session:
            job = session.get(MediaVideoJobModel, job_id)
            if job is None:
                raise JobNotFoundError(job_id)

            status = JobStatus(job.status)
            if status.is_terminal:
                logger.info("job_cancel_ignored", job_id=str(job_id), status=status.value)
                return build_snapshot(job)

            job.cancel_requested = True
            if status == JobStatus.PENDING:
                job.status = JobStatus.CANCELLED
                job.current_step = "Cancelled"
                job.completed_at = _now()
            _audit(job, "cancel_requested", status=status.value)
            commit_or_raise(session)

            logger.info("job_cancel_requested", job_id=str(job_id), status=status.value)
            return build_snapshot(job)

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    async def run(self, job_id: UUID) -> JobSnapshot:
        """Drive a job through every stage until it is terminal.

        Re-delivery of a job that is already terminal is a no-op.

        Raises:
            JobNotFoundError: If no job has this id
            JobDeletedError: If the job row is deleted mid-run (nothing is recorded)
            PersistenceError: If a stage write fails (after recording the failure)
        """
        session = self.session_factory()
        try:
            job = session.get(MediaVideoJobModel, job_id)
            if job is None:
                raise JobNotFoundError(job_id)

            if JobStatus(job.status).is_terminal:
                logger.info("job_run_skipped", job_id=str(job_id), status=job.status)
                return build_snapshot(job)

            logger.info("job_run_started", job_id=str(job_id), niche=job.niche)

            try:
                await self._execute(session, job)
            except JobDeletedError:
                session.rollback()
                logger.info("job_run_abandoned", job_id=str(job_id), reason="job deleted")
                raise
            except (PersistenceError, ObjectDeletedError) as e:
                session.rollback()
                if not self._job_exists(session, job_id):
                    logger.info("job_run_abandoned", job_id=str(job_id), reason="job deleted")
                    raise JobDeletedError(job_id) from e
                logger.error("job_persistence_failed", job_id=str(job_id), error=str(e))
                self._record_failure(job_id, f"Persistence error: {e}")
                raise
            except JobCancelledError:
                self._mark_cancelled(session, job)
            except MediaPipelineError as e:
                session.rollback()
                self._fail(session, job, str(e))
            except Exception as e:
                logger.exception("job_pipeline_crashed", job_id=str(job_id), error=str(e))
                session.rollback()
                self._fail(session, job, f"Pipeline error: {type(e).__name__}: {e}")
                raise

            snapshot = build_snapshot(job)
            logger.info(
                "job_run_finished",
                job_id=str(job_id),
                status=snapshot.status.value,
                stage=snapshot.stage.label,
                fallback_used=snapshot.fallback_used,
            )
            return snapshot
        finally:
            session.close()

    async def _execute(self, session: Session, job: MediaVideoJobModel) -> None:
        providers = self.providers

        # Stage 1: profile snapshot and product reference
        self._advance(session, job, JobStage.PREPROCESS, "Preparing product assets")
        if job.category_profile:
            # Redelivered run: profile edits since the first attempt do not apply
            profile = CategoryProfile.from_dict(job.category_profile)
        else:
            profile = CategoryProfileResolver(session).resolve(job.niche)
            job.category_profile = profile.to_dict()
        job.qa_threshold = profile.qa_pass_threshold

        preprocessor = Preprocessor(
            providers.cutout,
            providers.storage,
            catalog=providers.catalog,
            timeout_seconds=self.settings.preprocess_timeout_seconds,
        )
        image_url = await preprocessor.resolve_image(
            job.tenant_id, job.product_id, job.product_image_url
        )
        asset = await preprocessor.prepare(image_url)
        job.product_cutout_url = asset.cutout_url
        job.product_mask_url = asset.mask_url
        _audit(
            job,
            "preprocessed",
            profile_source=profile.source,
            has_product=asset.reference_url is not None,
            has_cutout=asset.has_cutout,
        )
        commit_or_raise(session)

        state = _RunState(profile=profile, asset=asset)
        state.product_hint = await self._product_hint(job)

        # Stage 2: shot plan
        self._advance(session, job, JobStage.REWRITE, "Rewriting brief into a shot plan")
        rewriter = PromptRewriter(
            providers.llm, timeout_seconds=self.settings.rewrite_timeout_seconds
        )
        await self._rewrite(session, job, rewriter, state, hard_fidelity=False)

        # Stages 3 and 4
        winner = await self._attempt(session, job, state, attempt=0)

        # Stage 5: one hard-fidelity retry
        if winner is None:
            self._advance(session, job, JobStage.RETRY, "Retrying with hard fidelity constraints")
            job.retry_count = 1
            await self._rewrite(session, job, rewriter, state, hard_fidelity=True)
            winner = await self._attempt(session, job, state, attempt=1)

        if winner is not None:
            self._complete(session, job, state, winner=winner)
            return

        # Stage 6: fallback composition
        if not job.enable_fallback:
            self._fail(session, job, self._exhausted_message(job, state))
            return

        self._advance(session, job, JobStage.FALLBACK, "Composing fallback video")
        compositor = FallbackCompositor(
            providers.image_gen,
            providers.storage,
            fps=self.settings.fallback_fps,
            zoom=self.settings.fallback_zoom,
            product_scale=self.settings.fallback_product_scale,
        )
        plan = state.plan
        try:
            composed = await compositor.compose(
                job.product_cutout_url,
                FallbackConstraints(
                    aspect_ratio=AspectRatio(job.aspect_ratio),
                    duration_seconds=float(job.duration_seconds),
                    scene_description=plan.lighting_notes if plan else None,
                    style_tokens=list(plan.style_tokens) if plan else [],
                ),
            )
        except FallbackNotViableError as e:
            self._fail(session, job, f"{self._exhausted_message(job, state)}. {e}")
            return

        job.output_url = composed.asset_url
        job.output_thumbnail_url = composed.thumbnail_url
        _audit(
            job,
            "fallback_composed",
            background_source=composed.background_source,
            frame_count=composed.frame_count,
        )
        self._complete(session, job, state, winner=None)

    async def _product_hint(self, job: MediaVideoJobModel) -> str | None:
        """Product name for OCR checks, when the catalog knows it."""
        if job.product_id is None:
            return None
        try:
            product = await self.providers.catalog.get_product(job.tenant_id, job.product_id)
        except ProviderError as e:
            logger.warning("product_hint_lookup_failed", job_id=str(job.id), error=str(e))
            return None
        return product.name if product else None

    async def _rewrite(
        self,
        session: Session,
        job: MediaVideoJobModel,
        rewriter: PromptRewriter,
        state: _RunState,
        hard_fidelity: bool,
    ) -> None:
        plan = await rewriter.rewrite(
            job.original_prompt,
            job.niche,
            float(job.duration_seconds),
            state.profile,
            hard_fidelity=hard_fidelity,
        )
        state.plan = plan
        state.prompt = rewriter.build_prompt(
            plan, state.asset.reference_url is not None, hard_fidelity=hard_fidelity
        )
        state.negative_prompt = rewriter.build_negative_prompt(state.profile)

        job.shot_plan = plan.model_dump(mode="json")
        job.rewritten_prompt = state.prompt
        job.negative_prompt = state.negative_prompt
        _audit(job, "prompt_rewritten", hard_fidelity=hard_fidelity)
        commit_or_raise(session)

    async def _attempt(
        self,
        session: Session,
        job: MediaVideoJobModel,
        state: _RunState,
        attempt: int,
    ) -> MediaVideoCandidateModel | None:
        """One generate-and-select round. Returns the winner, if any."""
        n = job.variation_count
        retry = attempt > 0

        self._advance(
            session,
            job,
            JobStage.GENERATE_CANDIDATES,
            f"Generating {n} hard-fidelity variations" if retry else f"Generating {n} variations",
            progress=RETRY_GENERATE_PROGRESS if retry else None,
        )
        generator = CandidateGenerator(
            session,
            self.providers.video_gen,
            timeout_seconds=self.settings.generation_timeout_seconds,
        )
        generation = await generator.generate(
            job,
            state.prompt,
            n,
            attempt=attempt,
            start_index=attempt * n,
            reference_image_url=state.asset.reference_url,
            negative_prompt=state.negative_prompt,
        )
        if not retry:
            job.progress_percent = 60
        _audit(
            job,
            "candidates_generated",
            attempt=attempt,
            completed=generation.completed_count,
            failed=len(generation.failed_ids),
        )
        commit_or_raise(session)

        candidates = list(
            session.scalars(
                select(MediaVideoCandidateModel)
                .where(MediaVideoCandidateModel.id.in_(generation.candidate_ids))
                .order_by(MediaVideoCandidateModel.candidate_index)
            )
        )

        self._advance(
            session,
            job,
            JobStage.QA_SELECT,
            "Scoring candidates" if job.enable_qa else "Selecting first completed candidate",
            progress=RETRY_QA_PROGRESS if retry else None,
        )

        selector = Selector(session)
        if job.enable_qa:
            completed = [c for c in candidates if c.status == CandidateStatus.COMPLETED]
            scorer = QAScorer(
                session,
                self.providers.vision,
                timeout_seconds=self.settings.qa_timeout_seconds,
            )
            scored = await scorer.score_all(
                completed, state.asset.reference_url, state.profile, state.product_hint
            )
            state.scored.extend(scored)
            best = select_best(scored)
            winner_id = best.candidate_id if best else None
        else:
            winner_id = select_first_completed(generation.completion_order)

        if winner_id is None:
            rejected = selector.reject(candidates)
            _audit(job, "no_candidate_selected", attempt=attempt, rejected=rejected)
            commit_or_raise(session)
            logger.info(
                "no_candidate_selected",
                job_id=str(job.id),
                attempt=attempt,
                completed=generation.completed_count,
            )
            return None

        return selector.finalize(candidates, winner_id)

    def _job_exists(self, session: Session, job_id: UUID) -> bool:
        """Whether the job row is still there. Assumes it is if the check fails."""
        try:
            return session.scalar(
                select(MediaVideoJobModel.id).where(MediaVideoJobModel.id == job_id)
            ) is not None
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning("job_existence_check_failed", job_id=str(job_id), error=str(e))
            return True

    def _check_cancelled(self, session: Session, job: MediaVideoJobModel) -> None:
        """Pick up a cancel request written by another session."""
        job_id = inspect(job).identity[0]
        try:
            session.refresh(job, attribute_names=["cancel_requested", "status"])
        except InvalidRequestError as e:
            # Refresh finds no row once the job is deleted
            session.rollback()
            if not self._job_exists(session, job_id):
                raise JobDeletedError(job_id) from e
            raise PersistenceError(f"Could not reload job {job_id}: {e}") from e
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Could not reload job {job_id}: {e}") from e
        if job.cancel_requested or job.status == JobStatus.CANCELLED:
            raise JobCancelledError(f"Job {job.id} cancelled")

    def _advance(
        self,
        session: Session,
        job: MediaVideoJobModel,
        stage: JobStage,
        step: str,
        progress: int | None = None,
    ) -> None:
        """Record a stage transition; stops here if cancellation was requested."""
        self._check_cancelled(session, job)

        job.stage = int(stage)
        job.status = JobStatus.RUNNING
        job.progress_percent = STAGE_PROGRESS[stage] if progress is None else progress
        job.current_step = step
        if job.started_at is None:
            job.started_at = _now()
        _audit(job, "stage_changed", stage=stage.label, step=step, progress=job.progress_percent)
        commit_or_raise(session)

        logger.info(
            "job_stage_changed",
            job_id=str(job.id),
            stage=stage.label,
            progress=job.progress_percent,
        )

    def _qa_summary(
        self,
        session: Session,
        job: MediaVideoJobModel,
        state: _RunState,
        fallback_used: bool,
    ) -> dict[str, Any]:
        total = len(
            session.scalars(
                select(MediaVideoCandidateModel.id).where(MediaVideoCandidateModel.job_id == job.id)
            ).all()
        )
        passed = [s for s in state.scored if s.qa_passed]
        return {
            "total_candidates": total,
            "scored_count": len(state.scored),
            "passed_count": len(passed),
            "best_score": max((s.final_score for s in state.scored), default=None),
            "threshold": state.profile.qa_pass_threshold,
            "retry_count": job.retry_count or 0,
            "fallback_used": fallback_used,
        }

    def _exhausted_message(self, job: MediaVideoJobModel, state: _RunState) -> str:
        attempts = (job.retry_count or 0) + 1
        if not job.enable_qa or not state.scored:
            return f"No candidate completed after {attempts} generation attempt(s)"
        best = max(s.final_score for s in state.scored)
        return (
            f"No candidate passed QA after {attempts} attempt(s) "
            f"(best score {best:.2f}, threshold {state.profile.qa_pass_threshold:.2f})"
        )

    def _complete(
        self,
        session: Session,
        job: MediaVideoJobModel,
        state: _RunState,
        winner: MediaVideoCandidateModel | None,
    ) -> None:
        fallback_used = winner is None
        if winner is not None:
            job.best_candidate_id = winner.id
            job.output_url = winner.video_url
            job.output_thumbnail_url = winner.thumbnail_url
            job.qa_passed = True if job.enable_qa else None
        else:
            job.best_candidate_id = None
            job.qa_passed = False if job.enable_qa else None

        job.fallback_used = fallback_used
        job.qa_summary = self._qa_summary(session, job, state, fallback_used)
        job.stage = int(JobStage.COMPLETED)
        job.status = JobStatus.COMPLETED
        job.progress_percent = STAGE_PROGRESS[JobStage.COMPLETED]
        job.current_step = "Completed with fallback composition" if fallback_used else "Completed"
        job.error_message = None
        job.completed_at = _now()
        _audit(
            job,
            "completed",
            fallback_used=fallback_used,
            best_candidate_id=str(winner.id) if winner else None,
        )
        commit_or_raise(session)

        logger.info(
            "job_completed",
            job_id=str(job.id),
            fallback_used=fallback_used,
            output_url=job.output_url,
        )

    def _fail(self, session: Session, job: MediaVideoJobModel, message: str) -> None:
        """Terminal failure; ``stage`` stays where the failure happened."""
        job.status = JobStatus.FAILED
        job.error_message = message[:2000]
        job.current_step = "Failed"
        job.best_candidate_id = None
        job.completed_at = _now()
        _audit(job, "failed", stage=JobStage(job.stage or 0).label, error=message[:500])
        commit_or_raise(session)

        logger.warning(
            "job_failed",
            job_id=str(job.id),
            stage=JobStage(job.stage or 0).label,
            error=message[:200],
        )

    def _mark_cancelled(self, session: Session, job: MediaVideoJobModel) -> None:
        stage = JobStage(job.stage or 0)
        job.status = JobStatus.CANCELLED
        job.current_step = "Cancelled"
        job.error_message = f"Cancelled during {stage.label}"
        job.completed_at = _now()
        _audit(job, "cancelled", stage=stage.label)
        commit_or_raise(session)
        logger.info("job_cancelled", job_id=str(job.id), stage=stage.label)

    def _record_failure(self, job_id: UUID, message: str) -> None:
        """Best-effort failure write from a fresh session after a persistence error."""
        with self.session_factory() as session:
            try:
                job = session.get(MediaVideoJobModel, job_id)
                if job is None or JobStatus(job.status).is_terminal:
                    return
                job.status = JobStatus.FAILED
                job.error_message = message[:2000]
                job.current_step = "Failed"
                job.best_candidate_id = None
                job.completed_at = _now()
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error("job_failure_not_recorded", job_id=str(job_id), error=str(e))
