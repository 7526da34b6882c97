"""
Outcome classification for one task attempt.

Problem markers are a plain textual heuristic: a case-insensitive regex
match per output line. Natural-language agent output both over- and
under-counts, so the raw count is always kept next to the label.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from .models import Outcome


@dataclass(frozen=True)
class MarkerSet:
    """Case-insensitive problem-word patterns and the counting rule."""

    patterns: tuple = ("error", "exception", "failed")
    _compiled: List[re.Pattern] = field(default_factory=list, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "patterns", tuple(self.patterns))
        object.__setattr__(self, "_compiled", [re.compile(p, re.IGNORECASE) for p in self.patterns])

    def line_matches(self, line: str) -> bool:
        return any(rx.search(line) for rx in self._compiled)

    def count(self, text: str) -> int:
        """Number of lines containing at least one marker."""
        if not self._compiled:
            return 0
        return sum(1 for line in text.splitlines() if self.line_matches(line))

    def count_lines(self, lines: Iterable[str]) -> int:
        if not self._compiled:
            return 0
        return sum(1 for line in lines if self.line_matches(line))

    def count_file(self, path: Path) -> int:
        p = Path(path)
        if not p.exists():
            return 0
        with open(p, "r", encoding="utf-8", errors="replace") as fh:
            return self.count_lines(fh)


def classify(
    timed_out: bool,
    exit_code: Optional[int],
    artifacts_present: bool,
    marker_count: int,
) -> Outcome:
    """Map raw execution evidence to exactly one outcome; first rule wins."""
    if timed_out:
        return Outcome.TIMEOUT
    if exit_code != 0 or not artifacts_present:
        return Outcome.FAILED
    if marker_count > 0:
        return Outcome.SUCCEEDED_WITH_WARNINGS
    return Outcome.SUCCEEDED
