"""SQLAlchemy ORM models."""

from datetime import datetime
from typing import Any
from uuid import UUID as PyUUID
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

# JSONB on PostgreSQL, plain JSON elsewhere (tests run on SQLite)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class CategoryProfileModel(Base):
    """Per-niche QA weights and content vocabulary."""

    __tablename__ = "media_category_profiles"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    niche: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_fidelity_weight: Mapped[float] = mapped_column(Float, default=0.40)
    label_ocr_weight: Mapped[float] = mapped_column(Float, default=0.30)
    quality_weight: Mapped[float] = mapped_column(Float, default=0.30)
    temporal_stability_weight: Mapped[float] = mapped_column(Float, default=0.00)
    qa_pass_threshold: Mapped[float] = mapped_column(Float, default=0.70)
    context_tokens: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    forbidden_actions: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    negative_rules: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )


class MediaVideoJobModel(Base):
    """One brief-to-video request."""

    __tablename__ = "media_video_jobs"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[PyUUID] = mapped_column(Uuid, nullable=False, index=True)
    calendar_item_id: Mapped[PyUUID | None] = mapped_column(Uuid, nullable=True, index=True)
    campaign_id: Mapped[PyUUID | None] = mapped_column(Uuid, nullable=True)
    product_id: Mapped[PyUUID | None] = mapped_column(Uuid, nullable=True, index=True)

    # Input
    original_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    product_image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    niche: Mapped[str] = mapped_column(String(100), nullable=False)
    preset_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    aspect_ratio: Mapped[str] = mapped_column(String(10), default="9:16")
    duration_seconds: Mapped[int] = mapped_column(Integer, default=6)
    variation_count: Mapped[int] = mapped_column(Integer, default=4)
    enable_qa: Mapped[bool] = mapped_column(Boolean, default=True)
    enable_fallback: Mapped[bool] = mapped_column(Boolean, default=True)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(50), default="pending", index=True)
    stage: Mapped[int] = mapped_column(Integer, default=0, index=True)
    progress_percent: Mapped[int] = mapped_column(Integer, default=0)
    current_step: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cancel_requested: Mapped[bool] = mapped_column(Boolean, default=False)
    celery_task_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Stage outputs
    category_profile: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    qa_threshold: Mapped[float | None] = mapped_column(Float, nullable=True)
    product_cutout_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    product_mask_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    rewritten_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    negative_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    shot_plan: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    best_candidate_id: Mapped[PyUUID | None] = mapped_column(
        Uuid,
        ForeignKey(
            "media_video_candidates.id",
            ondelete="SET NULL",
            use_alter=True,
            name="fk_media_video_jobs_best_candidate",
        ),
        nullable=True,
    )
    output_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    output_thumbnail_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    fallback_used: Mapped[bool] = mapped_column(Boolean, default=False)
    qa_passed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    qa_summary: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    # Human-readable diagnostics only; never read by the pipeline
    audit_log: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    # Relationships
    candidates: Mapped[list["MediaVideoCandidateModel"]] = relationship(
        "MediaVideoCandidateModel",
        back_populates="job",
        cascade="all, delete-orphan",
        foreign_keys="MediaVideoCandidateModel.job_id",
        order_by="MediaVideoCandidateModel.candidate_index",
    )


class MediaVideoCandidateModel(Base):
    """One generated rendering attempt belonging to a job."""

    __tablename__ = "media_video_candidates"

    id: Mapped[PyUUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    job_id: Mapped[PyUUID] = mapped_column(
        Uuid, ForeignKey("media_video_jobs.id", ondelete="CASCADE"), index=True
    )
    candidate_index: Mapped[int] = mapped_column(Integer, nullable=False)
    attempt: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(50), default="pending", index=True)
    prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    provider: Mapped[str | None] = mapped_column(String(100), nullable=True)
    video_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    duration_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    generation_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    # QA
    similarity_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    label_ocr_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    quality_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    temporal_stability_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    final_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    qa_passed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    qa_details: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    ocr_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_best: Mapped[bool] = mapped_column(Boolean, default=False)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    scored_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("job_id", "candidate_index", name="uq_media_candidate_index"),
        # At most one best candidate per job
        Index(
            "uq_media_video_candidates_one_best",
            "job_id",
            unique=True,
            postgresql_where=text("is_best"),
            sqlite_where=text("is_best = 1"),
        ),
    )

    job: Mapped["MediaVideoJobModel"] = relationship(
        "MediaVideoJobModel",
        back_populates="candidates",
        foreign_keys=[job_id],
    )
