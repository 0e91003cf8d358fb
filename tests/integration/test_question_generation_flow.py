"""End-to-end request and backfill flows against in-memory storage."""

from __future__ import annotations

import pytest

from medq.jobs.backfill import QuestionBackfillWorker
from medq.jobs.models import BackfillTask
from medq.questions.errors import ErrorCode, QuestionGenerationError
from medq.services.questions import IN_PROGRESS_MESSAGE, QuestionGenerationService
from tests.fakes import InMemoryQuestionsRepo, InMemorySectionsRepo, RecordingEnqueuer, ScriptedModel, make_item, make_items, make_question, make_section


def _service(settings, sections_repo, questions_repo, jobs_repo, enqueuer, writer) -> QuestionGenerationService:
  return QuestionGenerationService(settings=settings, sections_repo=sections_repo, questions_repo=questions_repo, jobs_repo=jobs_repo, writer=writer, enqueuer=enqueuer)


def _worker(settings, sections_repo, questions_repo, jobs_repo, enqueuer, writer) -> QuestionBackfillWorker:
  return QuestionBackfillWorker(settings=settings, sections_repo=sections_repo, questions_repo=questions_repo, jobs_repo=jobs_repo, writer=writer, enqueuer=enqueuer)


def _task(payload: dict) -> BackfillTask:
  return BackfillTask(
    job_id=payload["jobId"],
    user_id=payload["uid"],
    course_id=payload["courseId"],
    section_id=payload["sectionId"],
    target_count=payload["targetCount"],
    attempt=payload["attempt"],
    max_attempts=payload["maxAttempts"],
    no_progress_streak=payload["noProgressStreak"],
  )


async def _drain(worker: QuestionBackfillWorker, enqueuer: RecordingEnqueuer) -> list[str | None]:
  """Deliver queued payloads until the chain stops re-queueing."""
  statuses = []
  delivered = 0
  while delivered < len(enqueuer.payloads):
    statuses.append(await worker.process(_task(enqueuer.payloads[delivered])))
    delivered += 1
  return statuses


@pytest.mark.anyio
async def test_fast_start_then_backfill_reaches_target(settings, sections_repo, questions_repo, jobs_repo, enqueuer, build_writer) -> None:
  first_call = make_items("initial", 8) + [make_item("Initial question number 0?"), make_item("initial QUESTION number 1?")]
  model = ScriptedModel([{"questions": first_call}, {"questions": make_items("backfill", 3)}])
  writer = build_writer(model)

  outcome = await _service(settings, sections_repo, questions_repo, jobs_repo, enqueuer, writer).generate(uid="uid-1", course_id="course-1", section_id="sec-1", count=10)

  assert outcome.question_count == 8
  assert outcome.generated_now == 8
  assert outcome.skipped_count == 2
  assert outcome.background_queued is True
  assert outcome.remaining_count == 2
  assert outcome.target_count == 10
  assert outcome.job_id is not None
  section = sections_repo.get()
  assert section.questions_status == "GENERATING"
  assert section.active_question_job_id == outcome.job_id
  assert section.question_gen_stats["runs"] == 1
  assert enqueuer.payloads[0]["attempt"] == 1
  assert enqueuer.payloads[0]["maxAttempts"] == 30

  statuses = await _drain(_worker(settings, sections_repo, questions_repo, jobs_repo, enqueuer, writer), enqueuer)

  assert statuses == ["done"]
  section = sections_repo.get()
  assert section.questions_status == "COMPLETED"
  assert section.questions_count >= 10
  assert section.questions_count == len(questions_repo.for_section())
  assert section.active_question_job_id is None
  assert section.question_gen_stats["runs"] == 2
  assert jobs_repo.jobs[outcome.job_id].status == "done"
  stem_keys = [question.stem_key for question in questions_repo.for_section()]
  assert len(stem_keys) == len(set(stem_keys))


@pytest.mark.anyio
async def test_failing_model_with_empty_section_ends_failed(settings, sections_repo, questions_repo, jobs_repo, enqueuer, build_writer) -> None:
  writer = build_writer(ScriptedModel([RuntimeError("model unavailable")]))

  with pytest.raises(QuestionGenerationError) as exc_info:
    await _service(settings, sections_repo, questions_repo, jobs_repo, enqueuer, writer).generate(uid="uid-1", course_id="course-1", section_id="sec-1", count=10)

  assert exc_info.value.code is ErrorCode.AI_FAILED
  assert exc_info.value.http_status == 502
  section = sections_repo.get()
  assert section.questions_status == "FAILED"
  assert section.questions_count == 0
  assert section.questions_error_message
  assert jobs_repo.jobs == {}
  assert enqueuer.payloads == []


@pytest.mark.anyio
async def test_failing_model_keeps_existing_questions_completed(settings, jobs_repo, enqueuer, build_writer) -> None:
  section = make_section(questions_count=4, questions_status="COMPLETED")
  sections_repo = InMemorySectionsRepo([section])
  questions_repo = InMemoryQuestionsRepo([make_question(section, f"Stored question {index}?") for index in range(4)])
  writer = build_writer(ScriptedModel([RuntimeError("model unavailable")]))

  outcome = await _service(settings, sections_repo, questions_repo, jobs_repo, enqueuer, writer).generate(uid="uid-1", course_id="course-1", section_id="sec-1", count=10)

  assert outcome.question_count == 4
  assert outcome.generated_now == 0
  assert outcome.background_queued is False
  stored = sections_repo.get()
  assert stored.questions_status == "COMPLETED"
  assert stored.questions_count == 4
  assert stored.active_question_job_id is None


@pytest.mark.anyio
async def test_request_satisfied_by_fast_batch_completes_without_backfill(settings, sections_repo, questions_repo, jobs_repo, enqueuer, build_writer) -> None:
  writer = build_writer(ScriptedModel([{"questions": make_items("quick", 3)}]))

  outcome = await _service(settings, sections_repo, questions_repo, jobs_repo, enqueuer, writer).generate(uid="uid-1", course_id="course-1", section_id="sec-1", count=3)

  assert outcome.question_count == 3
  assert outcome.background_queued is False
  assert outcome.job_id is None
  assert sections_repo.get().questions_status == "COMPLETED"
  assert enqueuer.payloads == []


@pytest.mark.anyio
async def test_enough_existing_questions_skips_generation(settings, jobs_repo, enqueuer, build_writer) -> None:
  section = make_section(questions_count=12, questions_status="FAILED", questions_error_message="old failure")
  sections_repo = InMemorySectionsRepo([section])
  questions_repo = InMemoryQuestionsRepo([make_question(section, f"Stored question {index}?") for index in range(12)])
  model = ScriptedModel([{"questions": []}])

  outcome = await _service(settings, sections_repo, questions_repo, jobs_repo, enqueuer, build_writer(model)).generate(uid="uid-1", course_id="course-1", section_id="sec-1", count=10)

  assert outcome.question_count == 12
  assert outcome.target_count == 12
  assert outcome.generated_now == 0
  assert model.calls == []
  assert sections_repo.get().questions_status == "COMPLETED"
  assert sections_repo.get().questions_error_message is None


@pytest.mark.anyio
async def test_concurrent_request_short_circuits(settings, questions_repo, jobs_repo, enqueuer, build_writer) -> None:
  sections_repo = InMemorySectionsRepo([make_section(questions_status="GENERATING", questions_count=3, active_question_job_id="job-live")])
  model = ScriptedModel([{"questions": make_items("unused", 3)}])

  outcome = await _service(settings, sections_repo, questions_repo, jobs_repo, enqueuer, build_writer(model)).generate(uid="uid-1", course_id="course-1", section_id="sec-1", count=10)

  assert outcome.message == IN_PROGRESS_MESSAGE
  assert outcome.question_count == 3
  assert outcome.job_id == "job-live"
  assert model.calls == []
  assert sections_repo.status_history == []


@pytest.mark.anyio
@pytest.mark.parametrize(
  ("section", "kwargs", "code"),
  [
    (make_section(), {"course_id": "course-1", "section_id": "missing"}, ErrorCode.NOT_FOUND),
    (make_section(), {"course_id": "other-course", "section_id": "sec-1"}, ErrorCode.INVALID_ARGUMENT),
    (make_section(blueprint=None), {"course_id": "course-1", "section_id": "sec-1"}, ErrorCode.NOT_ANALYZED),
    (make_section(), {"course_id": "course-1", "section_id": "sec-1", "count": 0}, ErrorCode.INVALID_ARGUMENT),
    (make_section(), {"course_id": "course-1", "section_id": "sec-1", "count": 31}, ErrorCode.INVALID_ARGUMENT),
    (make_section(), {"course_id": "course-1", "section_id": "sec-1", "count": True}, ErrorCode.INVALID_ARGUMENT),
    (make_section(), {"course_id": "", "section_id": "sec-1"}, ErrorCode.INVALID_ARGUMENT),
  ],
)
async def test_precondition_errors_leave_status_untouched(settings, questions_repo, jobs_repo, enqueuer, build_writer, section, kwargs, code) -> None:
  sections_repo = InMemorySectionsRepo([section])
  model = ScriptedModel([{"questions": make_items("unused", 3)}])

  with pytest.raises(QuestionGenerationError) as exc_info:
    await _service(settings, sections_repo, questions_repo, jobs_repo, enqueuer, build_writer(model)).generate(uid="uid-1", **kwargs)

  assert exc_info.value.code is code
  assert sections_repo.status_history == []
  assert model.calls == []


@pytest.mark.anyio
async def test_dispatch_failure_does_not_leave_dangling_job(settings, sections_repo, questions_repo, jobs_repo, build_writer) -> None:
  enqueuer = RecordingEnqueuer(fail=True)
  writer = build_writer(ScriptedModel([{"questions": make_items("quick", 3)}]))

  outcome = await _service(settings, sections_repo, questions_repo, jobs_repo, enqueuer, writer).generate(uid="uid-1", course_id="course-1", section_id="sec-1", count=10)

  assert outcome.background_queued is False
  assert outcome.job_id is None
  section = sections_repo.get()
  assert section.questions_status == "COMPLETED"
  assert section.questions_count == 3
  assert section.active_question_job_id is None
  assert [job.status for job in jobs_repo.jobs.values()] == ["aborted"]


@pytest.mark.anyio
async def test_unexpected_enqueue_error_settles_fast_start_result(settings, sections_repo, questions_repo, jobs_repo, build_writer) -> None:
  enqueuer = RecordingEnqueuer(error=RuntimeError("client misconfigured"))
  writer = build_writer(ScriptedModel([{"questions": make_items("quick", 3)}]))

  outcome = await _service(settings, sections_repo, questions_repo, jobs_repo, enqueuer, writer).generate(uid="uid-1", course_id="course-1", section_id="sec-1", count=10)

  assert outcome.background_queued is False
  section = sections_repo.get()
  assert section.questions_status == "COMPLETED"
  assert section.questions_count == 3
  assert section.active_question_job_id is None
  assert [job.status for job in jobs_repo.jobs.values()] == ["aborted"]


@pytest.mark.anyio
async def test_persistence_failure_rolls_back_and_reports_internal(settings, sections_repo, questions_repo, jobs_repo, enqueuer, build_writer) -> None:
  questions_repo.insert_error = RuntimeError("disk full")
  writer = build_writer(ScriptedModel([{"questions": make_items("quick", 3)}]))

  with pytest.raises(QuestionGenerationError) as exc_info:
    await _service(settings, sections_repo, questions_repo, jobs_repo, enqueuer, writer).generate(uid="uid-1", course_id="course-1", section_id="sec-1", count=10)

  assert exc_info.value.code is ErrorCode.INTERNAL
  section = sections_repo.get()
  assert section.questions_status == "FAILED"
  assert section.active_question_job_id is None


@pytest.mark.anyio
async def test_chain_never_ends_generating(settings, sections_repo, questions_repo, jobs_repo, enqueuer, build_writer) -> None:
  # Each attempt yields one new question and repeats an old one.
  responses = [{"questions": [make_item(f"Round {index} stem?"), make_item("Round 0 stem?")]} for index in range(40)]
  writer = build_writer(ScriptedModel(responses))

  await _service(settings, sections_repo, questions_repo, jobs_repo, enqueuer, writer).generate(uid="uid-1", course_id="course-1", section_id="sec-1", count=8)
  statuses = await _drain(_worker(settings, sections_repo, questions_repo, jobs_repo, enqueuer, writer), enqueuer)

  assert statuses[-1] in {"done", "aborted"}
  assert all(status == "retry" for status in statuses[:-1])
  section = sections_repo.get()
  assert section.questions_status in {"COMPLETED", "FAILED"}
  assert section.active_question_job_id is None
  assert section.questions_count == len(questions_repo.for_section())
