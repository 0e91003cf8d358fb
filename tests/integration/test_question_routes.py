"""HTTP surface of the question endpoints with storage and auth swapped for fakes."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient

from medq.api.deps import get_question_service
from medq.core.security import get_current_uid
from medq.main import app
from medq.services.questions import QuestionGenerationService
from tests.fakes import InMemorySectionsRepo, ScriptedModel, make_items, make_section


@pytest.fixture
def wire_app(settings, questions_repo, jobs_repo, enqueuer, build_writer):
  """Install auth and service overrides; returns a client bound to the app."""

  def _wire(sections_repo, model):
    service = QuestionGenerationService(settings=settings, sections_repo=sections_repo, questions_repo=questions_repo, jobs_repo=jobs_repo, writer=build_writer(model), enqueuer=enqueuer)
    app.dependency_overrides[get_current_uid] = lambda: "uid-1"
    app.dependency_overrides[get_question_service] = lambda: service
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

  yield _wire
  app.dependency_overrides.clear()


@pytest.mark.anyio
async def test_generate_returns_camel_case_outcome(wire_app, sections_repo, enqueuer) -> None:
  model = ScriptedModel([{"questions": make_items("route", 3)}])

  async with wire_app(sections_repo, model) as client:
    response = await client.post("/v1/questions/generate", json={"courseId": "course-1", "sectionId": "sec-1", "count": 10})

  assert response.status_code == 200
  body = response.json()
  assert body["questionCount"] == 3
  assert body["generatedNow"] == 3
  assert body["skippedCount"] == 0
  assert body["backgroundQueued"] is True
  assert body["remainingCount"] == 7
  assert body["targetCount"] == 10
  assert body["jobId"] == enqueuer.payloads[0]["jobId"]
  assert isinstance(body["durationMs"], int)
  assert response.headers["x-request-id"]


@pytest.mark.anyio
async def test_unknown_section_maps_to_not_found(wire_app, sections_repo) -> None:
  async with wire_app(sections_repo, ScriptedModel([{"questions": []}])) as client:
    response = await client.post("/v1/questions/generate", json={"courseId": "course-1", "sectionId": "nope"})

  assert response.status_code == 404
  body = response.json()
  assert body["code"] == "NOT_FOUND"
  assert body["requestId"] == response.headers["x-request-id"]


@pytest.mark.anyio
async def test_unanalyzed_section_maps_to_conflict(wire_app) -> None:
  sections_repo = InMemorySectionsRepo([make_section(blueprint=None)])

  async with wire_app(sections_repo, ScriptedModel([{"questions": []}])) as client:
    response = await client.post("/v1/questions/generate", json={"courseId": "course-1", "sectionId": "sec-1"})

  assert response.status_code == 409
  assert response.json()["code"] == "NOT_ANALYZED"


@pytest.mark.anyio
async def test_model_failure_maps_to_bad_gateway(wire_app, sections_repo) -> None:
  async with wire_app(sections_repo, ScriptedModel([RuntimeError("model unavailable")])) as client:
    response = await client.post("/v1/questions/generate", json={"courseId": "course-1", "sectionId": "sec-1"})

  assert response.status_code == 502
  assert response.json()["code"] == "AI_FAILED"


@pytest.mark.anyio
@pytest.mark.parametrize(
  "body",
  [
    {"courseId": "course-1", "sectionId": "sec-1", "count": "5"},
    {"courseId": "course-1", "sectionId": "sec-1", "count": 99},
    {"courseId": "   ", "sectionId": "sec-1"},
    {"courseId": "course-1"},
    {"courseId": "course-1", "sectionId": "sec-1", "extra": True},
  ],
)
async def test_invalid_bodies_map_to_invalid_argument(wire_app, sections_repo, body) -> None:
  async with wire_app(sections_repo, ScriptedModel([{"questions": []}])) as client:
    response = await client.post("/v1/questions/generate", json=body)

  assert response.status_code == 400
  assert response.json()["code"] == "INVALID_ARGUMENT"
  assert sections_repo.status_history == []


@pytest.mark.anyio
async def test_status_endpoint_reports_section_state(wire_app) -> None:
  sections_repo = InMemorySectionsRepo([make_section(questions_status="GENERATING", questions_count=4, active_question_job_id="job-9")])

  async with wire_app(sections_repo, ScriptedModel([{"questions": []}])) as client:
    response = await client.get("/v1/questions/sections/sec-1/status")

  assert response.status_code == 200
  assert response.json() == {
    "sectionId": "sec-1",
    "courseId": "course-1",
    "questionsStatus": "GENERATING",
    "questionsCount": 4,
    "activeQuestionJobId": "job-9",
    "questionsErrorMessage": None,
    "lastQuestionsDurationMs": None,
  }


@pytest.mark.anyio
async def test_unexpected_error_is_masked(wire_app, sections_repo) -> None:
  wire_app(sections_repo, ScriptedModel([{"questions": []}]))
  # The default transport re-raises app errors after the handler has answered.
  client = AsyncClient(transport=ASGITransport(app=app, raise_app_exceptions=False), base_url="http://test")
  with patch.object(QuestionGenerationService, "get_section_status", side_effect=KeyError("secret detail")):
    async with client:
      response = await client.get("/v1/questions/sections/sec-1/status")

  assert response.status_code == 500
  body = response.json()
  assert body["code"] == "INTERNAL"
  assert "secret detail" not in response.text
