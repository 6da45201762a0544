"""Domain models - pure Python classes independent of database."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from media_engine.domain.enums import AspectRatio, CandidateStatus, JobStage, JobStatus, QAAxis


@dataclass(frozen=True)
class CategoryProfile:
    """Per-niche QA weighting and content vocabulary."""

    niche: str
    display_name: str
    product_fidelity_weight: float = 0.40
    label_ocr_weight: float = 0.30
    quality_weight: float = 0.30
    temporal_stability_weight: float = 0.00
    qa_pass_threshold: float = 0.70
    context_tokens: tuple[str, ...] = ()
    forbidden_actions: tuple[str, ...] = ()
    negative_rules: tuple[str, ...] = ()
    source: str = "default"  # database, registry, default

    @property
    def weights(self) -> dict[QAAxis, float]:
        return {
            QAAxis.SIMILARITY: self.product_fidelity_weight,
            QAAxis.LABEL_OCR: self.label_ocr_weight,
            QAAxis.QUALITY: self.quality_weight,
            QAAxis.TEMPORAL_STABILITY: self.temporal_stability_weight,
        }

    def to_dict(self) -> dict[str, Any]:
        """Snapshot for storing on the job row."""
        return {
            "niche": self.niche,
            "display_name": self.display_name,
            "product_fidelity_weight": self.product_fidelity_weight,
            "label_ocr_weight": self.label_ocr_weight,
            "quality_weight": self.quality_weight,
            "temporal_stability_weight": self.temporal_stability_weight,
            "qa_pass_threshold": self.qa_pass_threshold,
            "context_tokens": list(self.context_tokens),
            "forbidden_actions": list(self.forbidden_actions),
            "negative_rules": list(self.negative_rules),
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CategoryProfile":
        """Rebuild a profile from a job snapshot."""
        return cls(
            niche=data["niche"],
            display_name=data.get("display_name", data["niche"]),
            product_fidelity_weight=float(data.get("product_fidelity_weight", 0.40)),
            label_ocr_weight=float(data.get("label_ocr_weight", 0.30)),
            quality_weight=float(data.get("quality_weight", 0.30)),
            temporal_stability_weight=float(data.get("temporal_stability_weight", 0.00)),
            qa_pass_threshold=float(data.get("qa_pass_threshold", 0.70)),
            context_tokens=tuple(data.get("context_tokens") or ()),
            forbidden_actions=tuple(data.get("forbidden_actions") or ()),
            negative_rules=tuple(data.get("negative_rules") or ()),
            source=data.get("source", "snapshot"),
        )


class ShotPlan(BaseModel):
    """Structured decomposition of a brief into a single product shot.

    Parsed and validated at the language-model boundary; once attached to a
    generation attempt it is never mutated (the model is frozen).
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    opening: str = Field(..., min_length=1)
    main_action: str = Field(..., min_length=1)
    closing: str = Field(..., min_length=1)
    camera_movement: str = Field(..., min_length=1)
    lighting_notes: str = Field(..., min_length=1)
    duration_seconds: float = Field(..., gt=0, le=60)
    style_tokens: list[str] = Field(default_factory=list)
    hard_fidelity: bool = False

    @field_validator("opening", "main_action", "closing", "camera_movement", "lighting_notes")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("style_tokens")
    @classmethod
    def _clean_tokens(cls, value: list[str]) -> list[str]:
        return [token.strip() for token in value if token and token.strip()]

    @staticmethod
    def llm_schema() -> dict[str, Any]:
        """JSON schema the rewrite model is constrained to."""
        return {
            "type": "object",
            "properties": {
                "opening": {"type": "string"},
                "main_action": {"type": "string"},
                "closing": {"type": "string"},
                "camera_movement": {"type": "string"},
                "lighting_notes": {"type": "string"},
                "duration_seconds": {"type": "number"},
                "style_tokens": {"type": "array", "items": {"type": "string"}},
            },
            "required": [
                "opening",
                "main_action",
                "closing",
                "camera_movement",
                "lighting_notes",
                "duration_seconds",
                "style_tokens",
            ],
            "additionalProperties": False,
        }


@dataclass
class VideoJobInput:
    """Submission payload for a video job."""

    tenant_id: UUID
    brief: str
    niche: str
    duration_seconds: int = 6
    variation_count: int = 4
    enable_qa: bool = True
    enable_fallback: bool = True
    product_id: UUID | None = None
    product_image_url: str | None = None
    calendar_item_id: UUID | None = None
    campaign_id: UUID | None = None
    preset_id: str | None = None
    aspect_ratio: AspectRatio = AspectRatio.VERTICAL_9_16


@dataclass(frozen=True)
class PreparedAsset:
    """Product reference produced by the preprocessor."""

    source_url: str | None = None
    cutout_url: str | None = None
    mask_url: str | None = None
    checksum: str | None = None

    @property
    def has_cutout(self) -> bool:
        return bool(self.cutout_url)

    @property
    def reference_url(self) -> str | None:
        """Image handed to generation and QA: the cutout if one exists."""
        return self.cutout_url or self.source_url


@dataclass
class AxisScores:
    """Raw per-axis scores returned by the vision provider, each in [0, 1]."""

    similarity: float
    label_ocr: float
    quality: float
    temporal_stability: float
    ocr_text: str | None = None
    issues: list[str] = field(default_factory=list)

    def clamped(self) -> "AxisScores":
        """Copy with every axis bounded to [0, 1]."""

        def clamp(value: float) -> float:
            return max(0.0, min(1.0, float(value)))

        return AxisScores(
            similarity=clamp(self.similarity),
            label_ocr=clamp(self.label_ocr),
            quality=clamp(self.quality),
            temporal_stability=clamp(self.temporal_stability),
            ocr_text=self.ocr_text,
            issues=list(self.issues),
        )

    def as_dict(self) -> dict[QAAxis, float]:
        return {
            QAAxis.SIMILARITY: self.similarity,
            QAAxis.LABEL_OCR: self.label_ocr,
            QAAxis.QUALITY: self.quality,
            QAAxis.TEMPORAL_STABILITY: self.temporal_stability,
        }


@dataclass
class ScoredCandidate:
    """QA outcome of one candidate."""

    candidate_id: UUID
    candidate_index: int
    scores: AxisScores
    weights: dict[QAAxis, float]
    final_score: float
    threshold: float
    qa_passed: bool
    rejection_reason: str | None = None


@dataclass
class CandidateSnapshot:
    """Read-only view of a candidate for status callers."""

    id: UUID
    candidate_index: int
    attempt: int
    status: CandidateStatus
    video_url: str | None
    thumbnail_url: str | None
    duration_seconds: float | None
    qa_scores: dict[str, float | None]
    final_score: float | None
    qa_passed: bool | None
    is_best: bool
    rejection_reason: str | None = None
    error_message: str | None = None


@dataclass
class JobSnapshot:
    """Read-only view of a job returned by status lookups."""

    id: UUID
    tenant_id: UUID
    stage: JobStage
    status: JobStatus
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
    candidates: list[CandidateSnapshot] = field(default_factory=list)
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
