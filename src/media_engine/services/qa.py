"""Weighted QA scoring of generated candidates."""

import asyncio
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from media_engine.adapters.vision.base import VisionQAProvider
from media_engine.db.models import MediaVideoCandidateModel
from media_engine.db.session import commit_or_raise
from media_engine.domain.enums import QAAxis
from media_engine.domain.models import AxisScores, CategoryProfile, ScoredCandidate
from media_engine.errors import ProviderTimeoutError, ScoresAlreadySetError
from media_engine.logging import get_logger
from media_engine.utils import gather_settled

logger = get_logger(__name__)

QA_ERROR_REASON = "QA evaluation error"


def weighted_score(scores: AxisScores, weights: dict[QAAxis, float]) -> float:
    """Sum of axis score times axis weight.

    Rounded to 6 places so equal inputs compare equal when selecting.
    """
    values = scores.as_dict()
    return round(sum(values[axis] * weights.get(axis, 0.0) for axis in QAAxis), 6)


def evaluate(
    scores: AxisScores,
    profile: CategoryProfile,
) -> tuple[AxisScores, float, bool]:
    """Clamp scores, compute the weighted final, and apply the threshold."""
    clamped = scores.clamped()
    final = weighted_score(clamped, profile.weights)
    return clamped, final, final >= profile.qa_pass_threshold


class QAScorer:
    """Scores candidates through a vision provider and persists the breakdown.

    The vision provider supplies raw axis scores; this class owns weighting,
    thresholding, and persistence. A provider failure produces a non-passing
    record instead of an exception.
    """

    def __init__(
        self,
        session: Session,
        vision: VisionQAProvider,
        timeout_seconds: float | None = None,
    ) -> None:
        self.session = session
        self.vision = vision
        self.timeout_seconds = timeout_seconds

    async def _fetch_scores(
        self,
        candidate: MediaVideoCandidateModel,
        reference_url: str | None,
        product_hint: str | None,
    ) -> tuple[AxisScores, str | None]:
        """Raw scores plus an error description when the provider failed."""
        try:
            scores = await asyncio.wait_for(
                self.vision.score(candidate.video_url or "", reference_url, product_hint),
                timeout=self.timeout_seconds,
            )
            return scores, None
        except TimeoutError:
            error = str(ProviderTimeoutError(self.vision.name, self.timeout_seconds or 0))
        except Exception as e:
            error = f"{type(e).__name__}: {e}"

        logger.warning(
            "qa_provider_error",
            candidate_id=str(candidate.id),
            provider=self.vision.name,
            error=error[:200],
        )
        return AxisScores(similarity=0.0, label_ocr=0.0, quality=0.0, temporal_stability=0.0), error

    async def score(
        self,
        candidate: MediaVideoCandidateModel,
        reference_url: str | None,
        profile: CategoryProfile,
        product_hint: str | None = None,
    ) -> ScoredCandidate:
        """Score one candidate and persist the result.

        Raises:
            ScoresAlreadySetError: If the candidate already carries scores
        """
        if candidate.final_score is not None or candidate.scored_at is not None:
            raise ScoresAlreadySetError(candidate.id)

        raw, error = await self._fetch_scores(candidate, reference_url, product_hint)

        if error is not None:
            clamped, final, passed = raw, 0.0, False
            rejection_reason: str | None = QA_ERROR_REASON
        else:
            clamped, final, passed = evaluate(raw, profile)
            rejection_reason = None
            if not passed:
                rejection_reason = "; ".join(clamped.issues) or (
                    f"Score {final:.2f} below threshold {profile.qa_pass_threshold:.2f}"
                )

        scored = ScoredCandidate(
            candidate_id=candidate.id,
            candidate_index=candidate.candidate_index,
            scores=clamped,
            weights=profile.weights,
            final_score=final,
            threshold=profile.qa_pass_threshold,
            qa_passed=passed,
            rejection_reason=rejection_reason,
        )
        self._persist(candidate, scored, error)

        logger.info(
            "candidate_scored",
            candidate_id=str(candidate.id),
            candidate_index=candidate.candidate_index,
            final_score=final,
            threshold=profile.qa_pass_threshold,
            passed=passed,
        )
        return scored

    def _persist(
        self,
        candidate: MediaVideoCandidateModel,
        scored: ScoredCandidate,
        error: str | None,
    ) -> None:
        scores = scored.scores
        candidate.similarity_score = scores.similarity
        candidate.label_ocr_score = scores.label_ocr
        candidate.quality_score = scores.quality
        candidate.temporal_stability_score = scores.temporal_stability
        candidate.final_score = scored.final_score
        candidate.qa_passed = scored.qa_passed
        candidate.ocr_text = scores.ocr_text
        candidate.rejection_reason = scored.rejection_reason
        candidate.qa_details = {
            "weights": {axis.value: weight for axis, weight in scored.weights.items()},
            "scores": {axis.value: value for axis, value in scores.as_dict().items()},
            "threshold": scored.threshold,
            "issues": list(scores.issues),
            "provider": self.vision.name,
            "error": error,
        }
        candidate.scored_at = datetime.now(UTC)
        commit_or_raise(self.session)

    async def score_all(
        self,
        candidates: list[MediaVideoCandidateModel],
        reference_url: str | None,
        profile: CategoryProfile,
        product_hint: str | None = None,
    ) -> list[ScoredCandidate]:
        """Score candidates concurrently; results follow the input order.

        Every candidate settles before a persistence error propagates.
        """
        return await gather_settled(
            *(self.score(c, reference_url, profile, product_hint) for c in candidates)
        )
