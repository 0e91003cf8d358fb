"""Normalized stem keys used to reject duplicate questions within a section."""

from __future__ import annotations

from collections.abc import Iterable


def normalize_stem_key(stem: str | None) -> str:
  """Return the dedup key for a stem: trimmed, case-folded, whitespace-collapsed."""
  if not stem:
    return ""
  return " ".join(stem.split()).casefold()


class DedupIndex:
  """Stem keys already persisted for a section plus those accepted in the current batch."""

  def __init__(self, existing_keys: Iterable[str] = ()) -> None:
    self._existing = {key for key in existing_keys if key}
    self._batch: set[str] = set()

  def __contains__(self, key: str) -> bool:
    return key in self._existing or key in self._batch

  def __len__(self) -> int:
    return len(self._existing) + len(self._batch)

  def add(self, key: str) -> bool:
    """Record ``key`` for this batch; returns False when it is already known."""
    if not key or key in self:
      return False
    self._batch.add(key)
    return True

  @property
  def batch_keys(self) -> frozenset[str]:
    return frozenset(self._batch)

  def all_keys(self) -> frozenset[str]:
    return frozenset(self._existing | self._batch)
