"""End-to-end tests for the video job pipeline."""

from uuid import uuid4

import pytest
from sqlalchemy import delete, select

from media_engine.adapters.llm.stub import StubLLMProvider
from media_engine.db.models import MediaVideoJobModel
from media_engine.domain.enums import AspectRatio, CandidateStatus, JobStage, JobStatus
from media_engine.domain.models import VideoJobInput
from media_engine.errors import InvalidJobInputError, JobDeletedError, JobNotFoundError
from media_engine.services.orchestrator import JobOrchestrator


def job_input(**overrides) -> VideoJobInput:
    values = {
        "tenant_id": uuid4(),
        "brief": "Hero shot of our sparkling water can on a summer table",
        "niche": "packaged_goods",
    }
    values.update(overrides)
    return VideoJobInput(**values)


@pytest.fixture
def score_rounds(vision, scripted_provider, scores):
    """Give every candidate of the named rounds the same vision scores."""

    def apply(round_names, **axes) -> None:
        for round_name in round_names:
            for slot in range(4):
                url = scripted_provider.url_for(round_name, slot)
                vision.overrides[url] = scores(**axes)

    return apply


def stage_trail(session, job_id) -> list[str]:
    job = session.get(MediaVideoJobModel, job_id)
    return [e["stage"] for e in job.audit_log if e["event"] == "stage_changed"]


def delete_job(session_factory, job_id) -> None:
    """Delete a job row from another session, as an operator would."""
    with session_factory() as other:
        other.execute(delete(MediaVideoJobModel).where(MediaVideoJobModel.id == job_id))
        other.commit()


class TestSubmission:
    """Tests for validation and submission."""

    def test_submit_creates_pending_job_and_enqueues(self, orchestrator, enqueued):
        job_id = orchestrator.submit(job_input())

        assert enqueued == [job_id]
        snapshot = orchestrator.get_status(job_id)
        assert snapshot.status == JobStatus.PENDING
        assert snapshot.stage == JobStage.PENDING
        assert snapshot.progress_percent == 0
        assert snapshot.candidates == []

    def test_submit_records_task_id(self, orchestrator, session):
        job_id = orchestrator.submit(job_input())

        job = session.get(MediaVideoJobModel, job_id)
        assert job.celery_task_id == "task-1"
        assert job.current_step == "Queued"

    def test_niche_is_normalized_and_defaulted(self, orchestrator):
        assert orchestrator.validate(job_input(niche="  Beauty ")).niche == "beauty"
        assert orchestrator.validate(job_input(niche="")).niche == "social_product"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"brief": "   "},
            {"brief": "x" * 5001},
            {"variation_count": 0},
            {"variation_count": 9},
            {"duration_seconds": 0},
            {"duration_seconds": 61},
            {"aspect_ratio": "4:3"},
            {"product_image_url": "/etc/passwd"},
            {"product_image_url": "file:///etc/passwd"},
            {"product_image_url": "http://assets.test/../outside/secret.png"},
        ],
    )
    def test_invalid_input_is_rejected(self, orchestrator, enqueued, overrides):
        with pytest.raises(InvalidJobInputError):
            orchestrator.submit(job_input(**overrides))
        assert enqueued == []

    def test_remote_and_stored_image_urls_are_accepted(self, orchestrator, product_image):
        remote = job_input(product_image_url="https://cdn.test/can.png")

        assert orchestrator.validate(remote).product_image_url == "https://cdn.test/can.png"
        stored = orchestrator.validate(job_input(product_image_url=product_image))
        assert stored.product_image_url == product_image

    def test_enqueue_failure_marks_job_failed(
        self, providers, session_factory, test_settings, session
    ):
        def broken_enqueue(job_id):
            raise RuntimeError("broker unreachable")

        orchestrator = JobOrchestrator(
            providers=providers,
            session_factory=session_factory,
            settings=test_settings,
            enqueue=broken_enqueue,
        )

        with pytest.raises(RuntimeError):
            orchestrator.submit(job_input())

        job = session.scalars(select(MediaVideoJobModel)).one()
        assert job.status == JobStatus.FAILED
        assert "broker unreachable" in job.error_message

    def test_unknown_job(self, orchestrator):
        with pytest.raises(JobNotFoundError):
            orchestrator.get_status(uuid4())


class TestPipeline:
    """Tests for full pipeline runs."""

    @pytest.mark.asyncio
    async def test_best_passing_candidate_wins(
        self, orchestrator, vision, video_gen, product_image, session, scripted_provider, scores
    ):
        for slot, similarity in enumerate([0.9, 0.5, 0.8, 0.6]):
            vision.overrides[scripted_provider.url_for("first", slot)] = scores(
                similarity
            )

        job_id = orchestrator.submit(job_input(product_image_url=product_image))
        snapshot = await orchestrator.run(job_id)

        assert snapshot.status == JobStatus.COMPLETED
        assert snapshot.stage == JobStage.COMPLETED
        assert snapshot.progress_percent == 100
        assert snapshot.retry_count == 0
        assert snapshot.fallback_used is False
        assert snapshot.qa_threshold == pytest.approx(0.7)

        best = [c for c in snapshot.candidates if c.is_best]
        assert len(best) == 1
        assert best[0].candidate_index == 0
        assert best[0].status == CandidateStatus.SELECTED
        assert best[0].final_score == pytest.approx(0.9)
        assert snapshot.best_candidate_id == best[0].id
        assert snapshot.output_url == scripted_provider.url_for("first", 0)

        others = [c for c in snapshot.candidates if not c.is_best]
        assert {c.status for c in others} == {CandidateStatus.REJECTED}
        assert [round(c.final_score, 2) for c in others] == [0.74, 0.86, 0.78]

        # Generation and QA both see the cutout, not the raw photo
        assert snapshot.product_cutout_url.startswith("http://assets.test/cutouts/")
        assert {r.reference_image_url for r in video_gen.requests} == {
            snapshot.product_cutout_url
        }
        assert snapshot.qa_summary["passed_count"] == 4

        job = session.get(MediaVideoJobModel, job_id)
        assert job.qa_passed is True
        assert job.category_profile["niche"] == "packaged_goods"

    @pytest.mark.asyncio
    async def test_retry_then_fallback_when_nothing_passes(
        self, orchestrator, score_rounds, video_gen, product_image, fake_encoder, session
    ):
        score_rounds(["first", "retry"], similarity=0.66, label_ocr=0.66, quality=0.66)

        job_id = orchestrator.submit(job_input(product_image_url=product_image))
        snapshot = await orchestrator.run(job_id)

        assert snapshot.status == JobStatus.COMPLETED
        assert snapshot.stage == JobStage.COMPLETED
        assert snapshot.fallback_used is True
        assert snapshot.retry_count == 1
        assert snapshot.best_candidate_id is None
        assert snapshot.output_url.startswith("http://assets.test/fallback/")
        assert snapshot.output_thumbnail_url.startswith("http://assets.test/thumbnails/")

        assert len(snapshot.candidates) == 8
        assert [c.candidate_index for c in snapshot.candidates] == list(range(8))
        assert [c.attempt for c in snapshot.candidates] == [0] * 4 + [1] * 4
        assert {c.status for c in snapshot.candidates} == {CandidateStatus.REJECTED}
        assert not any(c.is_best for c in snapshot.candidates)

        # Retry round carries the hard-fidelity clause
        retry_prompts = [r.prompt for r in video_gen.requests[4:]]
        assert all("SHARP, READABLE" in p for p in retry_prompts)
        assert snapshot.shot_plan["hard_fidelity"] is True

        assert len(fake_encoder) == 1
        assert snapshot.qa_summary["fallback_used"] is True
        assert snapshot.qa_summary["total_candidates"] == 8
        assert snapshot.qa_summary["passed_count"] == 0

        assert stage_trail(session, job_id) == [
            "preprocess",
            "rewrite",
            "generate_candidates",
            "qa_select",
            "retry",
            "generate_candidates",
            "qa_select",
            "fallback",
        ]

    @pytest.mark.asyncio
    async def test_fallback_without_product_image_fails(
        self, orchestrator, score_rounds, fake_encoder
    ):
        score_rounds(["first", "retry"], similarity=0.1, label_ocr=0.1, quality=0.1)

        job_id = orchestrator.submit(job_input())
        snapshot = await orchestrator.run(job_id)

        assert snapshot.status == JobStatus.FAILED
        assert snapshot.stage == JobStage.FALLBACK
        assert "not viable" in snapshot.error_message
        assert "No candidate passed QA after 2 attempt(s)" in snapshot.error_message
        assert snapshot.output_url is None
        assert snapshot.best_candidate_id is None
        assert fake_encoder == []

    @pytest.mark.asyncio
    async def test_malformed_rewrite_output_uses_brief(self, orchestrator, providers):
        providers.llm = StubLLMProvider(canned_content="{not json")
        brief = "Slow reveal of the moisturiser jar"

        job_id = orchestrator.submit(job_input(brief=brief, niche="beauty"))
        snapshot = await orchestrator.run(job_id)

        assert snapshot.status == JobStatus.COMPLETED
        assert snapshot.shot_plan["main_action"] == brief
        assert snapshot.shot_plan["duration_seconds"] == 6
        assert brief in snapshot.rewritten_prompt

    @pytest.mark.asyncio
    async def test_without_qa_first_completed_wins(
        self, providers, orchestrator, vision, scripted_provider
    ):
        providers.video_gen = scripted_provider(delays={0: 0.05, 1: 0.05, 2: 0.0, 3: 0.05})

        job_id = orchestrator.submit(job_input(enable_qa=False))
        snapshot = await orchestrator.run(job_id)

        assert snapshot.status == JobStatus.COMPLETED
        assert vision.calls == []
        best = [c for c in snapshot.candidates if c.is_best]
        assert [c.candidate_index for c in best] == [2]
        assert all(c.final_score is None for c in snapshot.candidates)
        assert snapshot.output_url == scripted_provider.url_for("first", 2)

    @pytest.mark.asyncio
    async def test_failed_candidates_do_not_block_selection(
        self, providers, orchestrator, scripted_provider
    ):
        providers.video_gen = scripted_provider(fail_slots=(0, 1))

        job_id = orchestrator.submit(job_input())
        snapshot = await orchestrator.run(job_id)

        assert snapshot.status == JobStatus.COMPLETED
        statuses = {c.candidate_index: c.status for c in snapshot.candidates}
        assert statuses[0] == CandidateStatus.FAILED
        assert statuses[1] == CandidateStatus.FAILED
        assert "render farm unavailable" in snapshot.candidates[0].error_message
        assert snapshot.candidates[0].qa_passed is None
        best = [c for c in snapshot.candidates if c.is_best]
        assert best[0].candidate_index in (2, 3)

    @pytest.mark.asyncio
    async def test_all_generations_failing_without_product_fails(
        self, providers, orchestrator, scripted_provider
    ):
        providers.video_gen = scripted_provider(fail_all=True)

        job_id = orchestrator.submit(job_input())
        snapshot = await orchestrator.run(job_id)

        assert snapshot.status == JobStatus.FAILED
        assert snapshot.retry_count == 1
        assert len(snapshot.candidates) == 8
        assert {c.status for c in snapshot.candidates} == {CandidateStatus.FAILED}
        assert snapshot.error_message.startswith(
            "No candidate completed after 2 generation attempt(s)"
        )

    @pytest.mark.asyncio
    async def test_all_generations_failing_falls_back(
        self, providers, orchestrator, product_image, fake_encoder, scripted_provider
    ):
        providers.video_gen = scripted_provider(fail_all=True)

        job_id = orchestrator.submit(job_input(product_image_url=product_image))
        snapshot = await orchestrator.run(job_id)

        assert snapshot.status == JobStatus.COMPLETED
        assert snapshot.fallback_used is True
        assert len(fake_encoder) == 1

    @pytest.mark.asyncio
    async def test_fallback_disabled_fails_after_retry(self, orchestrator, score_rounds):
        score_rounds(["first", "retry"], similarity=0.2, label_ocr=0.2, quality=0.2)

        job_id = orchestrator.submit(job_input(enable_fallback=False))
        snapshot = await orchestrator.run(job_id)

        assert snapshot.status == JobStatus.FAILED
        assert snapshot.stage == JobStage.QA_SELECT
        assert snapshot.retry_count == 1
        assert snapshot.error_message.startswith("No candidate passed QA after 2 attempt(s)")
        assert "threshold 0.70" in snapshot.error_message

    @pytest.mark.asyncio
    async def test_retry_round_can_win(self, orchestrator, score_rounds):
        score_rounds(["first"], similarity=0.3, label_ocr=0.3, quality=0.3)

        job_id = orchestrator.submit(job_input())
        snapshot = await orchestrator.run(job_id)

        assert snapshot.status == JobStatus.COMPLETED
        assert snapshot.retry_count == 1
        assert snapshot.fallback_used is False
        best = [c for c in snapshot.candidates if c.is_best]
        assert len(best) == 1
        assert best[0].attempt == 1
        assert best[0].candidate_index >= 4

    @pytest.mark.asyncio
    async def test_catalog_product_image_is_used(
        self, orchestrator, providers, video_gen, product_image
    ):
        from media_engine.adapters.catalog.base import CatalogProduct

        tenant_id, product_id = uuid4(), uuid4()
        providers.catalog.add(
            CatalogProduct(
                id=product_id,
                tenant_id=tenant_id,
                name="Fizz Lime 330ml",
                image_url=product_image,
            )
        )

        job_id = orchestrator.submit(job_input(tenant_id=tenant_id, product_id=product_id))
        snapshot = await orchestrator.run(job_id)

        assert snapshot.status == JobStatus.COMPLETED
        assert snapshot.product_cutout_url is not None
        assert video_gen.requests[0].reference_image_url == snapshot.product_cutout_url

    @pytest.mark.asyncio
    async def test_progress_never_decreases(self, orchestrator, score_rounds, session):
        score_rounds(["first"], similarity=0.3, label_ocr=0.3, quality=0.3)

        job_id = orchestrator.submit(job_input(enable_fallback=False))
        await orchestrator.run(job_id)

        job = session.get(MediaVideoJobModel, job_id)
        progress = [e["progress"] for e in job.audit_log if e["event"] == "stage_changed"]
        assert progress == sorted(progress)
        assert progress == [10, 20, 30, 70, 80, 84, 88]
        assert job.progress_percent == 100
        assert job.completed_at is not None
        assert job.started_at is not None

    @pytest.mark.asyncio
    async def test_rerun_of_terminal_job_is_noop(self, orchestrator, video_gen):
        job_id = orchestrator.submit(job_input())
        first = await orchestrator.run(job_id)
        request_count = len(video_gen.requests)

        second = await orchestrator.run(job_id)

        assert second.status == first.status == JobStatus.COMPLETED
        assert second.best_candidate_id == first.best_candidate_id
        assert len(video_gen.requests) == request_count

    @pytest.mark.asyncio
    async def test_redelivered_job_keeps_its_profile_snapshot(
        self, orchestrator, score_rounds, session
    ):
        from media_engine.db.models import CategoryProfileModel
        from media_engine.presets import PROFILES

        score_rounds(["first", "retry"], similarity=0.9)
        job_id = orchestrator.submit(job_input(enable_fallback=False))

        # A worker died mid-run after taking the snapshot, then the live profile was loosened
        job = session.get(MediaVideoJobModel, job_id)
        job.category_profile = {
            **PROFILES["packaged_goods"].to_dict(),
            "qa_pass_threshold": 0.95,
            "source": "database",
        }
        job.status = JobStatus.RUNNING
        session.add(
            CategoryProfileModel(
                niche="packaged_goods", display_name="Packaged Goods", qa_pass_threshold=0.1
            )
        )
        session.commit()

        snapshot = await orchestrator.run(job_id)

        assert snapshot.qa_threshold == pytest.approx(0.95)
        assert snapshot.retry_count == 1
        assert snapshot.status == JobStatus.FAILED
        assert "threshold 0.95" in snapshot.error_message

    @pytest.mark.asyncio
    async def test_run_unknown_job(self, orchestrator):
        with pytest.raises(JobNotFoundError):
            await orchestrator.run(uuid4())


class TestCancellation:
    """Tests for cooperative cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_pending_job(self, orchestrator, video_gen):
        job_id = orchestrator.submit(job_input())

        snapshot = orchestrator.request_cancel(job_id)
        assert snapshot.status == JobStatus.CANCELLED

        snapshot = await orchestrator.run(job_id)
        assert snapshot.status == JobStatus.CANCELLED
        assert video_gen.requests == []

    @pytest.mark.asyncio
    async def test_cancel_during_generation_stops_at_next_stage(
        self, providers, orchestrator, vision, scripted_provider
    ):
        job_ids = []

        def cancel_once(request):
            if len(job_ids) == 1:
                orchestrator.request_cancel(job_ids.pop())

        providers.video_gen = scripted_provider(on_generate=cancel_once)

        job_id = orchestrator.submit(job_input())
        job_ids.append(job_id)
        snapshot = await orchestrator.run(job_id)

        assert snapshot.status == JobStatus.CANCELLED
        assert snapshot.stage == JobStage.GENERATE_CANDIDATES
        assert snapshot.error_message == "Cancelled during generate_candidates"
        # The in-flight round finishes, but no candidate is scored or selected
        assert vision.calls == []
        assert not any(c.is_best for c in snapshot.candidates)
        assert {c.status for c in snapshot.candidates} == {CandidateStatus.COMPLETED}

    @pytest.mark.asyncio
    async def test_cancel_completed_job_is_ignored(self, orchestrator):
        job_id = orchestrator.submit(job_input())
        await orchestrator.run(job_id)

        snapshot = orchestrator.request_cancel(job_id)

        assert snapshot.status == JobStatus.COMPLETED
        assert snapshot.output_url is not None

    def test_cancel_unknown_job(self, orchestrator):
        with pytest.raises(JobNotFoundError):
            orchestrator.request_cancel(uuid4())

    @pytest.mark.asyncio
    async def test_job_deleted_between_stages_stops_quietly(
        self, orchestrator, providers, video_gen, session_factory
    ):
        job_id = orchestrator.submit(job_input(product_id=uuid4()))
        lookups = []

        async def delete_job_then_miss(tenant_id, product_id):
            lookups.append(product_id)
            delete_job(session_factory, job_id)
            return None

        providers.catalog.get_product = delete_job_then_miss

        with pytest.raises(JobDeletedError):
            await orchestrator.run(job_id)

        assert len(lookups) == 1
        assert video_gen.requests == []

    @pytest.mark.asyncio
    async def test_job_deleted_during_generation_stops_quietly(
        self, providers, orchestrator, vision, scripted_provider, session_factory
    ):
        job_ids = []

        def delete_once(request):
            if job_ids:
                delete_job(session_factory, job_ids.pop())

        providers.video_gen = scripted_provider(on_generate=delete_once)

        job_id = orchestrator.submit(job_input())
        job_ids.append(job_id)
        with pytest.raises(JobDeletedError):
            await orchestrator.run(job_id)

        assert vision.calls == []
        with session_factory() as session:
            assert session.get(MediaVideoJobModel, job_id) is None


class TestAspectRatio:
    """Tests for aspect ratio handling."""

    @pytest.mark.asyncio
    async def test_aspect_ratio_is_passed_to_generation(self, orchestrator, video_gen):
        job_id = orchestrator.submit(job_input(aspect_ratio=AspectRatio.SQUARE_1_1))
        await orchestrator.run(job_id)

        assert {r.aspect_ratio for r in video_gen.requests} == {"1:1"}
