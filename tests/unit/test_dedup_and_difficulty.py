from __future__ import annotations

import pytest

from medq.questions.dedup import DedupIndex, normalize_stem_key
from medq.questions.difficulty import compute_difficulty_distribution


def test_stem_key_trims_case_folds_and_collapses_whitespace() -> None:
  assert normalize_stem_key("  Which   DRUG\n is first?  ") == "which drug is first?"
  assert normalize_stem_key(None) == ""
  assert normalize_stem_key("") == ""


def test_stem_key_matches_caseless_variants() -> None:
  assert normalize_stem_key("STRASSE sign?") == normalize_stem_key("straße sign?")
  assert normalize_stem_key("ΣIGN of toxicity?") == normalize_stem_key("σign OF toxicity?")


def test_dedup_index_rejects_existing_and_in_batch_repeats() -> None:
  index = DedupIndex(["which drug?", ""])
  assert "which drug?" in index
  assert index.add("which drug?") is False
  assert index.add("which dose?") is True
  assert index.add("which dose?") is False
  assert index.add("") is False
  assert index.batch_keys == frozenset({"which dose?"})
  assert index.all_keys() == frozenset({"which drug?", "which dose?"})
  assert len(index) == 2


@pytest.mark.parametrize("count", [0, 1, 2, 3, 5, 7, 15, 30, 45])
@pytest.mark.parametrize("difficulty", [1, 2, 3, 4, 5, None])
def test_distribution_always_sums_to_count(count: int, difficulty: int | None) -> None:
  split = compute_difficulty_distribution(count, difficulty)
  assert sum(split.values()) == count
  assert all(value >= 0 for value in split.values())


def test_harder_sections_skew_toward_hard_questions() -> None:
  easy_section = compute_difficulty_distribution(20, 1)
  hard_section = compute_difficulty_distribution(20, 5)
  assert easy_section["easy"] > hard_section["easy"]
  assert hard_section["hard"] > easy_section["hard"]
