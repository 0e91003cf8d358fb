"""Error codes surfaced by the question generation entry points."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
  NOT_FOUND = "NOT_FOUND"
  INVALID_ARGUMENT = "INVALID_ARGUMENT"
  NOT_ANALYZED = "NOT_ANALYZED"
  AI_FAILED = "AI_FAILED"
  INTERNAL = "INTERNAL"


_HTTP_STATUS_BY_CODE = {ErrorCode.NOT_FOUND: 404, ErrorCode.INVALID_ARGUMENT: 400, ErrorCode.NOT_ANALYZED: 409, ErrorCode.AI_FAILED: 502, ErrorCode.INTERNAL: 500}


class QuestionGenerationError(Exception):
  """Raised when a generation request cannot be fulfilled."""

  def __init__(self, code: ErrorCode, message: str) -> None:
    super().__init__(message)
    self.code = code
    self.message = message

  @property
  def http_status(self) -> int:
    return _HTTP_STATUS_BY_CODE[self.code]
