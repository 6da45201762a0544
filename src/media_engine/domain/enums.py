"""Domain enumerations."""

from enum import IntEnum, StrEnum


class JobStage(IntEnum):
    """Pipeline stage of a video job.

    Stages advance strictly in order except for the retry branch, which
    re-enters GENERATE_CANDIDATES, and the fallback branch.
    """

    PENDING = 0
    PREPROCESS = 1
    REWRITE = 2
    GENERATE_CANDIDATES = 3
    QA_SELECT = 4
    RETRY = 5
    FALLBACK = 6
    COMPLETED = 7

    @property
    def label(self) -> str:
        return self.name.lower()


class JobStatus(StrEnum):
    """Lifecycle status of a video job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class CandidateStatus(StrEnum):
    """Status of a single generated candidate."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    REJECTED = "rejected"
    SELECTED = "selected"


class AspectRatio(StrEnum):
    """Supported output aspect ratios."""

    VERTICAL_9_16 = "9:16"  # Reels, TikTok, Shorts
    SQUARE_1_1 = "1:1"  # Feed posts
    HORIZONTAL_16_9 = "16:9"  # Storefront banners

    @property
    def resolution(self) -> tuple[int, int]:
        """Output frame size (width, height) for this ratio."""
        return {
            AspectRatio.VERTICAL_9_16: (720, 1280),
            AspectRatio.SQUARE_1_1: (1080, 1080),
            AspectRatio.HORIZONTAL_16_9: (1280, 720),
        }[self]


class QAAxis(StrEnum):
    """The four weighted quality dimensions."""

    SIMILARITY = "similarity"
    LABEL_OCR = "label_ocr"
    QUALITY = "quality"
    TEMPORAL_STABILITY = "temporal_stability"
