"""Unit tests for API exception sanitization behavior."""

from __future__ import annotations

from medq.core.exceptions import _error_payload, _sanitize_validation_errors
from medq.questions.errors import ErrorCode, QuestionGenerationError


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Ensure validation errors stay JSON-serializable and redact raw request payloads."""
  errors = [{"type": "value_error", "loc": ("body", "courseId"), "msg": "Value error, must not be blank", "input": {"courseId": "  "}, "ctx": {"error": ValueError("must not be blank"), "input": "  "}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["loc"] == ["body", "courseId"]
  assert sanitized[0]["ctx"]["error"] == "ValueError: must not be blank"
  assert "input" not in sanitized[0]["ctx"]


def test_error_payload_omits_missing_fields() -> None:
  assert _error_payload("Section not found.") == {"detail": "Section not found."}
  assert _error_payload("Section not found.", code="NOT_FOUND", request_id="req-1") == {"detail": "Section not found.", "code": "NOT_FOUND", "requestId": "req-1"}


def test_error_codes_map_to_http_statuses() -> None:
  expected = {ErrorCode.NOT_FOUND: 404, ErrorCode.INVALID_ARGUMENT: 400, ErrorCode.NOT_ANALYZED: 409, ErrorCode.AI_FAILED: 502, ErrorCode.INTERNAL: 500}
  for code, http_status in expected.items():
    assert QuestionGenerationError(code, "boom").http_status == http_status
