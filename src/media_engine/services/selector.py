"""Winner selection among scored candidates."""

from collections.abc import Iterable, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from media_engine.db.models import MediaVideoCandidateModel
from media_engine.db.session import commit_or_raise
from media_engine.domain.enums import CandidateStatus
from media_engine.domain.models import ScoredCandidate
from media_engine.logging import get_logger

logger = get_logger(__name__)


def select_best(scored: Sequence[ScoredCandidate]) -> ScoredCandidate | None:
    """Highest final score among passing candidates; lowest index wins ties."""
    passing = [s for s in scored if s.qa_passed]
    if not passing:
        return None
    return min(passing, key=lambda s: (-s.final_score, s.candidate_index))


def select_first_completed(completion_order: Sequence[UUID]) -> UUID | None:
    """Winner for unscored jobs: whichever candidate finished first."""
    return completion_order[0] if completion_order else None


class Selector:
    """Applies selection outcomes to candidate rows.

    Every candidate that reached ``completed`` moves to ``selected`` or
    ``rejected`` exactly once; failed candidates are left untouched.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def reject(self, candidates: Iterable[MediaVideoCandidateModel]) -> int:
        """Reject every still-completed candidate. Returns how many changed."""
        count = 0
        for candidate in candidates:
            if candidate.status == CandidateStatus.COMPLETED:
                candidate.status = CandidateStatus.REJECTED
                candidate.is_best = False
                count += 1
        commit_or_raise(self.session)
        return count

    def finalize(
        self,
        candidates: Iterable[MediaVideoCandidateModel],
        winner_id: UUID,
    ) -> MediaVideoCandidateModel:
        """Mark the winner selected and reject the remaining completed candidates."""
        winner: MediaVideoCandidateModel | None = None
        for candidate in candidates:
            if candidate.id == winner_id:
                if candidate.status != CandidateStatus.COMPLETED:
                    raise ValueError(
                        f"Candidate {winner_id} cannot be selected from status {candidate.status}"
                    )
                candidate.status = CandidateStatus.SELECTED
                candidate.is_best = True
                winner = candidate
            elif candidate.status == CandidateStatus.COMPLETED:
                candidate.status = CandidateStatus.REJECTED
                candidate.is_best = False

        if winner is None:
            raise ValueError(f"Candidate {winner_id} does not belong to this job")

        commit_or_raise(self.session)
        logger.info(
            "candidate_selected",
            candidate_id=str(winner.id),
            candidate_index=winner.candidate_index,
            final_score=winner.final_score,
        )
        return winner
