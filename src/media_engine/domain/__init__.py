"""Domain models and business logic."""

from media_engine.domain.enums import (
    AspectRatio,
    CandidateStatus,
    JobStage,
    JobStatus,
    QAAxis,
)
from media_engine.domain.models import (
    AxisScores,
    CandidateSnapshot,
    CategoryProfile,
    JobSnapshot,
    PreparedAsset,
    ScoredCandidate,
    ShotPlan,
    VideoJobInput,
)

__all__ = [
    "AspectRatio",
    "AxisScores",
    "CandidateSnapshot",
    "CandidateStatus",
    "CategoryProfile",
    "JobSnapshot",
    "JobStage",
    "JobStatus",
    "PreparedAsset",
    "QAAxis",
    "ScoredCandidate",
    "ShotPlan",
    "VideoJobInput",
]
