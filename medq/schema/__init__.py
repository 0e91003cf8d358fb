"""Schema package exports."""

from .questions import Question, QuestionJob, Section

__all__ = ["Question", "QuestionJob", "Section"]
