"""Validation and sanitizing of generated question candidates."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError, field_validator, model_validator

from medq.questions.dedup import normalize_stem_key
from medq.questions.models import QuestionRecord, SectionRecord
from medq.utils.ids import generate_question_id

STEM_MAX_CHARS = 2000
OPTION_MAX_CHARS = 500
MAX_OPTIONS = 8
MIN_OPTIONS = 2
CORRECT_WHY_MAX_CHARS = 1000
WHY_WRONG_MAX_CHARS = 400
KEY_TAKEAWAY_MAX_CHARS = 500
LABEL_MAX_CHARS = 200
MAX_TAGS = 10
WHY_WRONG_FALLBACK = "This option is incorrect."

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_STYLE_BLOCK = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE)
_HTML_TAG = re.compile(r"<[^>]*>")
_JS_URL = re.compile(r"javascript:", re.IGNORECASE)
_HTML_DATA_URL = re.compile(r"data:text/html", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def sanitize_text(value: Any) -> str:
  """Strip markup and script vectors from model text and collapse whitespace."""
  if not isinstance(value, str) or not value:
    return ""
  text = _SCRIPT_BLOCK.sub("", value)
  text = _STYLE_BLOCK.sub("", text)
  text = _HTML_TAG.sub("", text)
  text = _JS_URL.sub("", text)
  text = _HTML_DATA_URL.sub("", text)
  text = _EVENT_HANDLER.sub("", text)
  return _WHITESPACE.sub(" ", text).strip()


def truncate(value: str, limit: int) -> str:
  return value if len(value) <= limit else value[:limit]


def _first_present(data: dict[str, Any], *keys: str) -> Any:
  for key in keys:
    if data.get(key) is not None:
      return data[key]
  return None


class CandidateExplanation(BaseModel):
  correct_why: str = ""
  why_others_wrong: list[str] = Field(default_factory=list)
  key_takeaway: str = ""

  model_config = ConfigDict(extra="ignore")

  @model_validator(mode="before")
  @classmethod
  def accept_camel_case(cls, data: Any) -> Any:
    if not isinstance(data, dict):
      return {}
    return {
      "correct_why": _first_present(data, "correct_why", "correctWhy") or "",
      "why_others_wrong": _first_present(data, "why_others_wrong", "whyOthersWrong") or [],
      "key_takeaway": _first_present(data, "key_takeaway", "keyTakeaway") or "",
    }

  @field_validator("correct_why")
  @classmethod
  def clean_correct_why(cls, value: str) -> str:
    return truncate(sanitize_text(value), CORRECT_WHY_MAX_CHARS)

  @field_validator("key_takeaway")
  @classmethod
  def clean_key_takeaway(cls, value: str) -> str:
    return truncate(sanitize_text(value), KEY_TAKEAWAY_MAX_CHARS)

  @field_validator("why_others_wrong", mode="before")
  @classmethod
  def clean_why_others_wrong(cls, value: Any) -> list[str]:
    if not isinstance(value, list):
      return []
    return [truncate(sanitize_text(item), WHY_WRONG_MAX_CHARS) for item in value]


class CandidateQuestion(BaseModel):
  """One generated single-best-answer item, validated before anything trusts it.

  How/Why:
    - Model output is untrusted; every field is sanitized and length-capped here.
    - Both snake_case and camelCase keys are accepted because providers drift between them.
    - Structurally unusable items (no stem, fewer than two options, an answer index outside the options)
      raise ``ValidationError`` so the batch can count and drop them.
  """

  stem: str = Field(min_length=1)
  options: list[str] = Field(min_length=MIN_OPTIONS, max_length=MAX_OPTIONS)
  correct_index: StrictInt
  difficulty: int = 3
  tags: list[str] = Field(default_factory=list)
  explanation: CandidateExplanation = Field(default_factory=CandidateExplanation)
  section_label: str | None = None
  file_name: str | None = None

  model_config = ConfigDict(extra="ignore")

  @model_validator(mode="before")
  @classmethod
  def accept_aliases(cls, data: Any) -> Any:
    if not isinstance(data, dict):
      raise ValueError("candidate must be an object")
    source_ref = _first_present(data, "source_ref", "sourceRef")
    source_ref = source_ref if isinstance(source_ref, dict) else {}
    normalized = {
      "stem": data.get("stem"),
      "options": data.get("options"),
      "correct_index": _first_present(data, "correct_index", "correctIndex"),
      "tags": _first_present(data, "tags", "topicTags") or [],
      "explanation": data.get("explanation") or {},
      "section_label": _first_present(source_ref, "sectionLabel", "section_label"),
      "file_name": _first_present(source_ref, "fileName", "file_name"),
    }
    if data.get("difficulty") is not None:
      normalized["difficulty"] = data["difficulty"]
    return normalized

  @field_validator("stem", mode="before")
  @classmethod
  def clean_stem(cls, value: Any) -> str:
    return truncate(sanitize_text(value), STEM_MAX_CHARS)

  @field_validator("options", mode="before")
  @classmethod
  def clean_options(cls, value: Any) -> list[str]:
    if not isinstance(value, list):
      raise ValueError("options must be a list")
    options = [truncate(sanitize_text(option), OPTION_MAX_CHARS) for option in value[:MAX_OPTIONS]]
    if any(not option for option in options):
      raise ValueError("options must not be empty after sanitizing")
    return options

  @field_validator("difficulty", mode="before")
  @classmethod
  def clamp_difficulty(cls, value: Any) -> int:
    try:
      number = int(value)
    except (TypeError, ValueError):
      return 3
    return max(1, min(5, number))

  @field_validator("tags", mode="before")
  @classmethod
  def clean_tags(cls, value: Any) -> list[str]:
    if not isinstance(value, list):
      return []
    cleaned = [sanitize_text(tag) for tag in value[:MAX_TAGS]]
    return [tag for tag in cleaned if tag]

  @model_validator(mode="after")
  def validate_answer(self) -> CandidateQuestion:
    if not 0 <= self.correct_index < len(self.options):
      raise ValueError("correct_index must point at one of the options")
    return self

  def why_others_wrong(self) -> list[str]:
    """Per-option rationale padded to the option count."""
    reasons = list(self.explanation.why_others_wrong[: len(self.options)])
    reasons.extend([WHY_WRONG_FALLBACK] * (len(self.options) - len(reasons)))
    return reasons

  def to_record(self, section: SectionRecord) -> QuestionRecord:
    label = truncate(sanitize_text(self.section_label or section.title), LABEL_MAX_CHARS)
    file_name = truncate(sanitize_text(self.file_name or section.file_name or ""), LABEL_MAX_CHARS)
    return QuestionRecord(
      question_id=generate_question_id(),
      user_id=section.user_id,
      course_id=section.course_id,
      section_id=section.section_id,
      stem=self.stem,
      stem_key=normalize_stem_key(self.stem),
      options=list(self.options),
      correct_index=self.correct_index,
      explanation={"correctWhy": self.explanation.correct_why, "whyOthersWrong": self.why_others_wrong(), "keyTakeaway": self.explanation.key_takeaway},
      difficulty=self.difficulty,
      topic_tags=self.tags or list(section.topic_tags or [])[:MAX_TAGS],
      source_ref={"fileId": section.file_id, "fileName": file_name, "sectionId": section.section_id, "label": label},
    )


def normalize_candidate(raw: Any, section: SectionRecord) -> QuestionRecord | None:
  """Return a storable record for ``raw`` or ``None`` when it fails validation."""
  try:
    candidate = CandidateQuestion.model_validate(raw)
  except ValidationError:
    return None
  return candidate.to_record(section)
