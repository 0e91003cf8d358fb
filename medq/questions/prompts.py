"""Prompt text for the SBA question writer."""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

AVOID_STEM_HINT_LIMIT = 8

QUESTIONS_SYSTEM_PROMPT = """You are MedQ Question Writer. Generate exam-style single-best-answer (SBA)
questions for medical students based on the provided topic blueprint.
Questions must be clinically relevant, non-repetitive, unambiguous, and have exactly one
correct answer.
Prioritize reasoning depth over trivial recall.
Output STRICT JSON only. No markdown, no commentary, no code fences."""

_RESPONSE_SCHEMA = """{
  "questions": [
    {
      "stem": "string (clinical vignette or direct question)",
      "options": ["string", "string", "string", "string", "string"],
      "correct_index": "integer 0-4",
      "difficulty": "integer 1-5",
      "tags": ["string (topic tags)"],
      "explanation": {
        "correct_why": "string (why the correct answer is right)",
        "why_others_wrong": ["string (one entry per option, in option order)"],
        "key_takeaway": "string (the one thing to remember)"
      },
      "source_ref": {
        "fileName": "string",
        "sectionLabel": "string (e.g. 'Slide 14' or 'Page 23')"
      }
    }
  ]
}"""


def build_questions_prompt(
  *,
  blueprint: dict[str, Any],
  count: int,
  distribution: dict[str, int],
  section_title: str | None,
  file_name: str | None,
  avoid_stems: Iterable[str] = (),
) -> str:
  """Render the user prompt for one generation call."""
  hints = [stem.strip() for stem in avoid_stems if stem and stem.strip()][:AVOID_STEM_HINT_LIMIT]
  lines = [
    f'Source file: "{file_name or "Unknown File"}"',
    f'Section: "{section_title or "Unknown Section"}"',
    "",
    "Topic blueprint (contains all learning objectives, key concepts, high-yield points, and terms):",
    json.dumps(blueprint, ensure_ascii=False),
    "",
    f"Generate exactly {count} SBA questions with this difficulty distribution:",
    f"- {distribution.get('easy', 0)} easy (difficulty 1-2)",
    f"- {distribution.get('medium', 0)} medium (difficulty 3)",
    f"- {distribution.get('hard', 0)} hard (difficulty 4-5)",
    "",
    "Quality rules:",
    "- Every question must test a concrete concept from key_concepts, high_yield_points, or terms_to_define.",
    "- Do not write generic stems; each stem must be specific to this section.",
    "- Vary question style across the set: diagnosis, mechanism, interpretation, and next-best-step management.",
    "- Do not paraphrase the same vignette pattern or repeat the same lead-in phrasing.",
    "- Keep explanations concise and precise (1-2 sentences per field), but include the decisive clue and mechanism.",
    "- why_others_wrong must be specific to this vignette for each option; avoid generic filler.",
  ]
  if hints:
    lines.append("")
    lines.append("Avoid repeating or closely paraphrasing these existing stems:")
    lines.extend(f"{index}. {stem}" for index, stem in enumerate(hints, start=1))
  lines.append("")
  lines.append("Return this exact JSON schema:")
  lines.append(_RESPONSE_SCHEMA)
  return "\n".join(lines)
