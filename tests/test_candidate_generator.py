"""Tests for concurrent candidate generation."""

import asyncio

import pytest

from media_engine.adapters.video_gen.base import VideoGenProvider, VideoGenRequest, VideoGenResult
from media_engine.adapters.video_gen.stub import StubVideoGenProvider
from media_engine.db.models import MediaVideoCandidateModel
from media_engine.domain.enums import CandidateStatus
from media_engine.errors import PersistenceError
from media_engine.services.candidate_generator import CandidateGenerator


class UnsuccessfulProvider(VideoGenProvider):
    """Reports failure through the result instead of raising."""

    @property
    def name(self) -> str:
        return "unsuccessful"

    async def generate(self, request: VideoGenRequest) -> VideoGenResult:
        return VideoGenResult(success=False, error_message="content policy rejection")


class HangingProvider(VideoGenProvider):
    @property
    def name(self) -> str:
        return "hanging"

    async def generate(self, request: VideoGenRequest) -> VideoGenResult:
        await asyncio.sleep(5)
        return VideoGenResult(success=True, video_url="https://videos.test/late.mp4")


def rows(session, generation) -> list[MediaVideoCandidateModel]:
    return [session.get(MediaVideoCandidateModel, cid) for cid in generation.candidate_ids]


class TestCandidateGenerator:
    """Tests for CandidateGenerator."""

    @pytest.mark.asyncio
    async def test_creates_one_row_per_variation(self, session, make_job, video_gen):
        job = make_job()
        generator = CandidateGenerator(session, video_gen)

        generation = await generator.generate(
            job,
            "Opening: can on ice",
            4,
            reference_image_url="http://assets.test/cutouts/a.png",
            negative_prompt="blurry",
        )

        candidates = rows(session, generation)
        assert [c.candidate_index for c in candidates] == [0, 1, 2, 3]
        assert {c.status for c in candidates} == {CandidateStatus.COMPLETED}
        assert {c.provider for c in candidates} == {"scripted"}
        assert candidates[2].prompt == "Opening: can on ice. Variation: closer zoom"
        assert candidates[0].video_url == video_gen.url_for("first", 0)
        assert generation.completed_count == 4
        assert {r.negative_prompt for r in video_gen.requests} == {"blurry"}
        assert {r.duration_seconds for r in video_gen.requests} == {job.duration_seconds}

    @pytest.mark.asyncio
    async def test_completion_order_follows_finish_time(self, session, make_job, scripted_provider):
        job = make_job()
        provider = scripted_provider(delays={0: 0.06, 1: 0.0, 2: 0.03, 3: 0.09})

        generation = await CandidateGenerator(session, provider).generate(job, "prompt", 4)

        by_id = {c.id: c.candidate_index for c in rows(session, generation)}
        assert [by_id[cid] for cid in generation.completion_order] == [1, 2, 0, 3]

    @pytest.mark.asyncio
    async def test_failures_are_isolated(self, session, make_job, scripted_provider):
        job = make_job()
        provider = scripted_provider(fail_slots=(1,))

        generation = await CandidateGenerator(session, provider).generate(job, "prompt", 4)

        candidates = rows(session, generation)
        assert candidates[1].status == CandidateStatus.FAILED
        assert "render farm unavailable" in candidates[1].error_message
        assert [c.status for c in candidates if c.candidate_index != 1] == [
            CandidateStatus.COMPLETED
        ] * 3
        assert generation.failed_ids == [candidates[1].id]
        assert not generation.all_failed

    @pytest.mark.asyncio
    async def test_unsuccessful_result_marks_failed(self, session, make_job):
        job = make_job()

        generation = await CandidateGenerator(session, UnsuccessfulProvider()).generate(
            job, "prompt", 2
        )

        candidates = rows(session, generation)
        assert {c.status for c in candidates} == {CandidateStatus.FAILED}
        assert candidates[0].error_message == "content policy rejection"
        assert generation.all_failed

    @pytest.mark.asyncio
    async def test_timeout_marks_failed(self, session, make_job):
        job = make_job()
        generator = CandidateGenerator(session, HangingProvider(), timeout_seconds=0.05)

        generation = await generator.generate(job, "prompt", 1)

        candidate = rows(session, generation)[0]
        assert candidate.status == CandidateStatus.FAILED
        assert "timed out" in candidate.error_message

    @pytest.mark.asyncio
    async def test_retry_round_continues_indexes(self, session, make_job, video_gen):
        job = make_job()
        generator = CandidateGenerator(session, video_gen)

        await generator.generate(job, "prompt", 4, attempt=0, start_index=0)
        generation = await generator.generate(job, "prompt", 4, attempt=1, start_index=4)

        candidates = rows(session, generation)
        assert [c.candidate_index for c in candidates] == [4, 5, 6, 7]
        assert {c.attempt for c in candidates} == {1}
        assert candidates[0].prompt.endswith("Variation: slight left angle")

    @pytest.mark.asyncio
    async def test_stub_provider_returns_distinct_urls(self, session, make_job):
        job = make_job()

        generation = await CandidateGenerator(
            session, StubVideoGenProvider(latency_seconds=0)
        ).generate(job, "prompt", 3)

        urls = {c.video_url for c in rows(session, generation)}
        assert len(urls) == 3

    @pytest.mark.asyncio
    async def test_persistence_error_waits_for_siblings(
        self, session, make_job, scripted_provider, monkeypatch
    ):
        job = make_job()
        provider = scripted_provider(delays={0: 0.0, 1: 0.03, 2: 0.03, 3: 0.03})
        commits = []

        def flaky_commit(session):
            commits.append(session)
            # Insert, four RUNNING transitions, then the first completion fails
            if len(commits) == 6:
                raise PersistenceError("disk full")
            session.commit()

        monkeypatch.setattr(
            "media_engine.services.candidate_generator.commit_or_raise", flaky_commit
        )

        with pytest.raises(PersistenceError, match="disk full"):
            await CandidateGenerator(session, provider).generate(job, "prompt", 4)

        assert len(commits) == 9
        assert len(provider.requests) == 4
