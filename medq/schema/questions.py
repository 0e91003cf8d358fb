from __future__ import annotations

import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, UniqueConstraint, func, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from medq.core.database import Base


class Section(Base):
  __tablename__ = "sections"
  __table_args__ = (Index("ix_sections_status_updated_at", "questions_status", "updated_at"),)

  section_id: Mapped[str] = mapped_column(String, primary_key=True)
  user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  course_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False, server_default="")
  file_id: Mapped[str | None] = mapped_column(String, nullable=True)
  file_name: Mapped[str | None] = mapped_column(String, nullable=True)
  difficulty: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("3"))
  topic_tags: Mapped[list] = mapped_column(JSONB, nullable=False, server_default=text("'[]'::jsonb"))
  blueprint: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  questions_status: Mapped[str] = mapped_column(String, nullable=False, server_default="IDLE")
  questions_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
  questions_error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
  last_error_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  active_question_job_id: Mapped[str | None] = mapped_column(String, nullable=True)
  last_questions_duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
  question_gen_stats: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Question(Base):
  __tablename__ = "questions"
  __table_args__ = (
    UniqueConstraint("user_id", "section_id", "stem_key", name="ux_questions_user_section_stem_key"),
    Index("ix_questions_user_course_section", "user_id", "course_id", "section_id"),
  )

  question_id: Mapped[str] = mapped_column(String, primary_key=True)
  user_id: Mapped[str] = mapped_column(String, nullable=False)
  course_id: Mapped[str] = mapped_column(String, nullable=False)
  section_id: Mapped[str] = mapped_column(String, nullable=False)
  stem: Mapped[str] = mapped_column(Text, nullable=False)
  stem_key: Mapped[str] = mapped_column(Text, nullable=False)
  options: Mapped[list] = mapped_column(JSONB, nullable=False)
  correct_index: Mapped[int] = mapped_column(Integer, nullable=False)
  explanation: Mapped[dict] = mapped_column(JSONB, nullable=False)
  difficulty: Mapped[int] = mapped_column(Integer, nullable=False)
  topic_tags: Mapped[list] = mapped_column(JSONB, nullable=False)
  source_ref: Mapped[dict] = mapped_column(JSONB, nullable=False)
  question_type: Mapped[str] = mapped_column(String, nullable=False, server_default="SBA")
  stats: Mapped[dict] = mapped_column(JSONB, nullable=False)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class QuestionJob(Base):
  __tablename__ = "question_jobs"

  job_id: Mapped[str] = mapped_column(String, primary_key=True)
  user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  course_id: Mapped[str] = mapped_column(String, nullable=False)
  section_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  target_count: Mapped[int] = mapped_column(Integer, nullable=False)
  attempt: Mapped[int] = mapped_column(Integer, nullable=False)
  max_attempts: Mapped[int] = mapped_column(Integer, nullable=False)
  no_progress_streak: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
  parent_job_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
  next_job_id: Mapped[str | None] = mapped_column(String, nullable=True)
  status: Mapped[str] = mapped_column(String, nullable=False, index=True)
  result_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  error: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  started_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  finished_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
