"""Unit tests for a single generate-and-persist batch."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from medq.questions.pipeline import fold_batch_stats, generate_and_persist_batch, resolve_existing_state_or_assume_empty
from tests.fakes import InMemoryQuestionsRepo, ScriptedModel, make_item, make_items, make_question, make_section


@pytest.mark.anyio
async def test_batch_is_noop_when_target_already_met(build_writer) -> None:
  section = make_section()
  repo = InMemoryQuestionsRepo()
  model = ScriptedModel([{"questions": make_items("unused", 3)}])
  result = await generate_and_persist_batch(section=section, existing_count=5, existing_stems=set(), target_count=5, questions_repo=repo, writer=build_writer(model))
  assert result.success is True
  assert result.generated_now == 0
  assert model.calls == []
  assert repo.insert_calls == 0


@pytest.mark.anyio
async def test_batch_drops_duplicates_and_malformed_items(build_writer) -> None:
  section = make_section()
  repo = InMemoryQuestionsRepo([make_question(section, "Already stored?")])
  items = make_items("fresh", 3) + [make_item("ALREADY   stored?"), make_item("Fresh question number 0?"), {"stem": "broken"}]
  model = ScriptedModel([{"questions": items}])
  result = await generate_and_persist_batch(section=section, existing_count=1, existing_stems={"already stored?"}, target_count=4, questions_repo=repo, writer=build_writer(model))

  assert result.success is True
  assert result.generated_now == 3
  assert result.duplicate_stem_skipped == 2
  assert result.skipped_count == 1
  assert result.raw_generated == 6
  assert repo.insert_calls == 1
  stem_keys = [question.stem_key for question in repo.for_section()]
  assert len(stem_keys) == len(set(stem_keys)) == 4


@pytest.mark.anyio
async def test_rows_lost_to_unique_key_count_as_duplicates(build_writer) -> None:
  section = make_section()
  # A concurrent batch stored this stem after our existing-state snapshot.
  repo = InMemoryQuestionsRepo([make_question(section, "Fresh question number 1?")])
  model = ScriptedModel([{"questions": make_items("fresh", 3)}])
  result = await generate_and_persist_batch(section=section, existing_count=0, existing_stems=set(), target_count=3, questions_repo=repo, writer=build_writer(model))
  assert result.generated_now == 2
  assert result.duplicate_stem_skipped == 1


@pytest.mark.anyio
async def test_generation_failure_is_returned_not_raised(build_writer) -> None:
  model = ScriptedModel([RuntimeError("upstream 500")])
  repo = InMemoryQuestionsRepo()
  result = await generate_and_persist_batch(section=make_section(), existing_count=0, existing_stems=set(), target_count=3, questions_repo=repo, writer=build_writer(model))
  assert result.success is False
  assert result.error == "upstream 500"
  assert repo.insert_calls == 0
  # One retry from the default plan.
  assert len(model.calls) == 2
  assert fold_batch_stats(None, result) is None


@pytest.mark.anyio
async def test_payload_without_question_list_is_a_failure(build_writer) -> None:
  model = ScriptedModel([{"answer": "no list here"}])
  result = await generate_and_persist_batch(section=make_section(), existing_count=0, existing_stems=set(), target_count=3, questions_repo=InMemoryQuestionsRepo(), writer=build_writer(model))
  assert result.success is False


@pytest.mark.anyio
async def test_persistence_errors_propagate(build_writer) -> None:
  repo = InMemoryQuestionsRepo()
  repo.insert_error = RuntimeError("disk full")
  model = ScriptedModel([make_items("fresh", 3)])
  with pytest.raises(RuntimeError, match="disk full"):
    await generate_and_persist_batch(section=make_section(), existing_count=0, existing_stems=set(), target_count=3, questions_repo=repo, writer=build_writer(model))


@pytest.mark.anyio
async def test_request_size_follows_cost_plan(build_writer) -> None:
  model = ScriptedModel([{"questions": make_items("fresh", 5)}])
  result = await generate_and_persist_batch(section=make_section(), existing_count=0, existing_stems=set(), target_count=3, questions_repo=InMemoryQuestionsRepo(), writer=build_writer(model))
  # ceil(3 / 0.779) = 4, plus a 10% buffer -> 5
  assert result.ai_request_count == 5
  assert sum(result.distribution.values()) == 5
  assert model.calls[0]["max_output_tokens"] == result.token_budget
  stats = fold_batch_stats(None, result)
  assert stats is not None
  assert stats["runs"] == 1
  assert stats["validProduced"] == 5


@pytest.mark.anyio
async def test_unreachable_store_is_treated_as_empty() -> None:
  class BrokenRepo(InMemoryQuestionsRepo):
    async def list_stem_keys(self, user_id, course_id, section_id, *, limit=None):
      raise OperationalError("SELECT", {}, ConnectionRefusedError())

  state = await resolve_existing_state_or_assume_empty(BrokenRepo(), "uid-1", "course-1", "sec-1")
  assert state.count == 0
  assert state.count_known is False
