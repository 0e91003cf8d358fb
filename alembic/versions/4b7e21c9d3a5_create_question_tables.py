"""Create section, question and backfill job tables.

Revision ID: 4b7e21c9d3a5
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "4b7e21c9d3a5"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "sections",
    sa.Column("section_id", sa.String(), nullable=False),
    sa.Column("user_id", sa.String(), nullable=False),
    sa.Column("course_id", sa.String(), nullable=False),
    sa.Column("title", sa.String(), server_default="", nullable=False),
    sa.Column("file_id", sa.String(), nullable=True),
    sa.Column("file_name", sa.String(), nullable=True),
    sa.Column("difficulty", sa.Integer(), server_default=sa.text("3"), nullable=False),
    sa.Column("topic_tags", postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'[]'::jsonb"), nullable=False),
    sa.Column("blueprint", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("questions_status", sa.String(), server_default="IDLE", nullable=False),
    sa.Column("questions_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
    sa.Column("questions_error_message", sa.Text(), nullable=True),
    sa.Column("last_error_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("active_question_job_id", sa.String(), nullable=True),
    sa.Column("last_questions_duration_ms", sa.Integer(), nullable=True),
    sa.Column("question_gen_stats", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("section_id"),
  )
  op.create_index(op.f("ix_sections_user_id"), "sections", ["user_id"], unique=False)
  op.create_index(op.f("ix_sections_course_id"), "sections", ["course_id"], unique=False)
  op.create_index("ix_sections_status_updated_at", "sections", ["questions_status", "updated_at"], unique=False)

  op.create_table(
    "questions",
    sa.Column("question_id", sa.String(), nullable=False),
    sa.Column("user_id", sa.String(), nullable=False),
    sa.Column("course_id", sa.String(), nullable=False),
    sa.Column("section_id", sa.String(), nullable=False),
    sa.Column("stem", sa.Text(), nullable=False),
    sa.Column("stem_key", sa.Text(), nullable=False),
    sa.Column("options", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("correct_index", sa.Integer(), nullable=False),
    sa.Column("explanation", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("difficulty", sa.Integer(), nullable=False),
    sa.Column("topic_tags", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("source_ref", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("question_type", sa.String(), server_default="SBA", nullable=False),
    sa.Column("stats", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("question_id"),
    sa.UniqueConstraint("user_id", "section_id", "stem_key", name="ux_questions_user_section_stem_key"),
  )
  op.create_index("ix_questions_user_course_section", "questions", ["user_id", "course_id", "section_id"], unique=False)

  op.create_table(
    "question_jobs",
    sa.Column("job_id", sa.String(), nullable=False),
    sa.Column("user_id", sa.String(), nullable=False),
    sa.Column("course_id", sa.String(), nullable=False),
    sa.Column("section_id", sa.String(), nullable=False),
    sa.Column("target_count", sa.Integer(), nullable=False),
    sa.Column("attempt", sa.Integer(), nullable=False),
    sa.Column("max_attempts", sa.Integer(), nullable=False),
    sa.Column("no_progress_streak", sa.Integer(), server_default=sa.text("0"), nullable=False),
    sa.Column("parent_job_id", sa.String(), nullable=True),
    sa.Column("next_job_id", sa.String(), nullable=True),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("result_json", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("error", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("duration_ms", sa.Integer(), nullable=True),
    sa.PrimaryKeyConstraint("job_id"),
  )
  op.create_index(op.f("ix_question_jobs_user_id"), "question_jobs", ["user_id"], unique=False)
  op.create_index(op.f("ix_question_jobs_section_id"), "question_jobs", ["section_id"], unique=False)
  op.create_index(op.f("ix_question_jobs_parent_job_id"), "question_jobs", ["parent_job_id"], unique=False)
  op.create_index(op.f("ix_question_jobs_status"), "question_jobs", ["status"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index(op.f("ix_question_jobs_status"), table_name="question_jobs")
  op.drop_index(op.f("ix_question_jobs_parent_job_id"), table_name="question_jobs")
  op.drop_index(op.f("ix_question_jobs_section_id"), table_name="question_jobs")
  op.drop_index(op.f("ix_question_jobs_user_id"), table_name="question_jobs")
  op.drop_table("question_jobs")
  op.drop_index("ix_questions_user_course_section", table_name="questions")
  op.drop_table("questions")
  op.drop_index("ix_sections_status_updated_at", table_name="sections")
  op.drop_index(op.f("ix_sections_course_id"), table_name="sections")
  op.drop_index(op.f("ix_sections_user_id"), table_name="sections")
  op.drop_table("sections")
