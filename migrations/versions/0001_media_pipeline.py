"""Media video pipeline schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Adds:
- media_category_profiles for per-niche QA weights and vocabulary
- media_video_jobs with typed per-stage outputs
- media_video_candidates with per-axis QA scores

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Category profiles
    op.create_table(
        "media_category_profiles",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("niche", sa.String(100), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("product_fidelity_weight", sa.Float(), nullable=False, server_default="0.40"),
        sa.Column("label_ocr_weight", sa.Float(), nullable=False, server_default="0.30"),
        sa.Column("quality_weight", sa.Float(), nullable=False, server_default="0.30"),
        sa.Column("temporal_stability_weight", sa.Float(), nullable=False, server_default="0.00"),
        sa.Column("qa_pass_threshold", sa.Float(), nullable=False, server_default="0.70"),
        sa.Column("context_tokens", JSONB(), nullable=True),
        sa.Column("forbidden_actions", JSONB(), nullable=True),
        sa.Column("negative_rules", JSONB(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("niche", name="uq_media_category_profiles_niche"),
    )
    op.create_index("ix_media_category_profiles_niche", "media_category_profiles", ["niche"])
    op.create_index(
        "ix_media_category_profiles_is_active", "media_category_profiles", ["is_active"]
    )

    # Video jobs
    op.create_table(
        "media_video_jobs",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("tenant_id", sa.UUID(), nullable=False),
        sa.Column("calendar_item_id", sa.UUID(), nullable=True),
        sa.Column("campaign_id", sa.UUID(), nullable=True),
        sa.Column("product_id", sa.UUID(), nullable=True),
        # Input
        sa.Column("original_prompt", sa.Text(), nullable=False),
        sa.Column("product_image_url", sa.String(2048), nullable=True),
        sa.Column("niche", sa.String(100), nullable=False),
        sa.Column("preset_id", sa.String(100), nullable=True),
        sa.Column("aspect_ratio", sa.String(10), nullable=False, server_default="9:16"),
        sa.Column("duration_seconds", sa.Integer(), nullable=False, server_default="6"),
        sa.Column("variation_count", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("enable_qa", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("enable_fallback", sa.Boolean(), nullable=False, server_default=sa.true()),
        # Lifecycle
        sa.Column("status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("stage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("progress_percent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_step", sa.String(255), nullable=True),
        sa.Column("cancel_requested", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("celery_task_id", sa.String(255), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        # Stage outputs
        sa.Column("category_profile", JSONB(), nullable=True),
        sa.Column("qa_threshold", sa.Float(), nullable=True),
        sa.Column("product_cutout_url", sa.String(2048), nullable=True),
        sa.Column("product_mask_url", sa.String(2048), nullable=True),
        sa.Column("rewritten_prompt", sa.Text(), nullable=True),
        sa.Column("negative_prompt", sa.Text(), nullable=True),
        sa.Column("shot_plan", JSONB(), nullable=True),
        sa.Column("best_candidate_id", sa.UUID(), nullable=True),
        sa.Column("output_url", sa.String(2048), nullable=True),
        sa.Column("output_thumbnail_url", sa.String(2048), nullable=True),
        sa.Column("fallback_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("qa_passed", sa.Boolean(), nullable=True),
        sa.Column("qa_summary", JSONB(), nullable=True),
        sa.Column("audit_log", JSONB(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_media_video_jobs_tenant_id", "media_video_jobs", ["tenant_id"])
    op.create_index(
        "ix_media_video_jobs_calendar_item_id", "media_video_jobs", ["calendar_item_id"]
    )
    op.create_index("ix_media_video_jobs_product_id", "media_video_jobs", ["product_id"])
    op.create_index("ix_media_video_jobs_status", "media_video_jobs", ["status"])
    op.create_index("ix_media_video_jobs_stage", "media_video_jobs", ["stage"])

    # Candidates
    op.create_table(
        "media_video_candidates",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("job_id", sa.UUID(), nullable=False),
        sa.Column("candidate_index", sa.Integer(), nullable=False),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("prompt", sa.Text(), nullable=True),
        sa.Column("provider", sa.String(100), nullable=True),
        sa.Column("video_url", sa.String(2048), nullable=True),
        sa.Column("thumbnail_url", sa.String(2048), nullable=True),
        sa.Column("duration_seconds", sa.Float(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("generation_metadata", JSONB(), nullable=True),
        # QA breakdown
        sa.Column("similarity_score", sa.Float(), nullable=True),
        sa.Column("label_ocr_score", sa.Float(), nullable=True),
        sa.Column("quality_score", sa.Float(), nullable=True),
        sa.Column("temporal_stability_score", sa.Float(), nullable=True),
        sa.Column("final_score", sa.Float(), nullable=True),
        sa.Column("qa_passed", sa.Boolean(), nullable=True),
        sa.Column("qa_details", JSONB(), nullable=True),
        sa.Column("ocr_text", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("is_best", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scored_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["job_id"], ["media_video_jobs.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("job_id", "candidate_index", name="uq_media_candidate_index"),
    )
    op.create_index("ix_media_video_candidates_job_id", "media_video_candidates", ["job_id"])
    op.create_index("ix_media_video_candidates_status", "media_video_candidates", ["status"])

    # At most one best candidate per job
    op.create_index(
        "uq_media_video_candidates_one_best",
        "media_video_candidates",
        ["job_id"],
        unique=True,
        postgresql_where=sa.text("is_best"),
    )

    op.create_foreign_key(
        "fk_media_video_jobs_best_candidate",
        "media_video_jobs",
        "media_video_candidates",
        ["best_candidate_id"],
        ["id"],
        ondelete="SET NULL",
    )


def downgrade() -> None:
    op.drop_constraint("fk_media_video_jobs_best_candidate", "media_video_jobs", type_="foreignkey")
    op.drop_index("uq_media_video_candidates_one_best", table_name="media_video_candidates")
    op.drop_index("ix_media_video_candidates_status", table_name="media_video_candidates")
    op.drop_index("ix_media_video_candidates_job_id", table_name="media_video_candidates")
    op.drop_table("media_video_candidates")
    op.drop_index("ix_media_video_jobs_stage", table_name="media_video_jobs")
    op.drop_index("ix_media_video_jobs_status", table_name="media_video_jobs")
    op.drop_index("ix_media_video_jobs_product_id", table_name="media_video_jobs")
    op.drop_index("ix_media_video_jobs_calendar_item_id", table_name="media_video_jobs")
    op.drop_index("ix_media_video_jobs_tenant_id", table_name="media_video_jobs")
    op.drop_table("media_video_jobs")
    op.drop_index("ix_media_category_profiles_is_active", table_name="media_category_profiles")
    op.drop_index("ix_media_category_profiles_niche", table_name="media_category_profiles")
    op.drop_table("media_category_profiles")
