"""
Append-only result set.

Every append is written through to `results.jsonl` (one JSON object per
line, `kind` is "record" or "skip") and, for execution records, to
`metrics.csv`. Readers get tuples, never the internal list.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

from pydantic import ValidationError

from .errors import ResultsFileError
from .models import BackendSkip, ExecutionRecord

logger = logging.getLogger(__name__)

RESULTS_FILE = "results.jsonl"
METRICS_FILE = "metrics.csv"
METRICS_COLUMNS = [
    "model",
    "task",
    "duration_seconds",
    "artifact_count",
    "commit_count",
    "marker_count",
    "outcome",
]

Entry = Union[ExecutionRecord, BackendSkip]


class ResultAccumulator:
    """Ordered record of everything the harness attempted or skipped.

    With an output directory the files are (re)created on construction and
    appended to on every call; without one the accumulator is memory-only
    (used by `load`).
    """

    def __init__(self, output_dir: Optional[Path] = None):
        self._entries: List[Entry] = []
        self.output_dir = Path(output_dir) if output_dir is not None else None
        if self.output_dir is not None:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            self.results_path.write_text("")
            with open(self.metrics_path, "w", newline="") as fh:
                csv.writer(fh).writerow(METRICS_COLUMNS)

    @property
    def results_path(self) -> Path:
        return self.output_dir / RESULTS_FILE

    @property
    def metrics_path(self) -> Path:
        return self.output_dir / METRICS_FILE

    def append_record(self, record: ExecutionRecord) -> None:
        self._entries.append(record)
        if self.output_dir is not None:
            self._write_jsonl(record)
            with open(self.metrics_path, "a", newline="") as fh:
                csv.writer(fh).writerow([
                    record.model,
                    record.task,
                    f"{record.duration_s:.1f}",
                    record.artifact_count,
                    record.commit_count,
                    record.marker_count,
                    record.outcome.value,
                ])

    def append_skip(self, skip: BackendSkip) -> None:
        self._entries.append(skip)
        if self.output_dir is not None:
            self._write_jsonl(skip)

    def _write_jsonl(self, entry: Entry) -> None:
        with open(self.results_path, "a") as fh:
            fh.write(entry.model_dump_json() + "\n")
            fh.flush()

    # -- queries --------------------------------------------------------

    def entries(self) -> Tuple[Entry, ...]:
        return tuple(self._entries)

    def records(self) -> Tuple[ExecutionRecord, ...]:
        return tuple(e for e in self._entries if isinstance(e, ExecutionRecord))

    def skips(self) -> Tuple[BackendSkip, ...]:
        return tuple(e for e in self._entries if isinstance(e, BackendSkip))

    def records_for(self, model: str) -> Tuple[ExecutionRecord, ...]:
        return tuple(r for r in self.records() if r.model == model)

    def models(self) -> List[str]:
        """Models in first-seen order, skipped ones included."""
        seen: List[str] = []
        for e in self._entries:
            if e.model not in seen:
                seen.append(e.model)
        return seen

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def all_passed(self) -> bool:
        return not self.skips() and all(r.outcome.passed for r in self.records())

    def exit_code(self) -> int:
        return 0 if self.all_passed else 1

    # -- persistence ----------------------------------------------------

    @classmethod
    def load(cls, path: Path) -> "ResultAccumulator":
        """Rebuild a result set from results.jsonl (file or containing directory)."""
        path = Path(path)
        if path.is_dir():
            path = path / RESULTS_FILE
        acc = cls()
        try:
            lines = path.read_text().splitlines()
        except OSError as ex:
            raise ResultsFileError(f"Cannot read {path}: {ex}") from ex
        for lineno, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                raw = json.loads(line)
                kind = raw.get("kind")
                if kind == "record":
                    acc._entries.append(ExecutionRecord.model_validate(raw))
                elif kind == "skip":
                    acc._entries.append(BackendSkip.model_validate(raw))
                else:
                    raise ValueError(f"unknown kind {kind!r}")
            except (ValueError, AttributeError, ValidationError) as ex:
                raise ResultsFileError(f"{path}:{lineno}: {ex}") from ex
        logger.debug(f"Loaded {len(acc)} entries from {path}")
        return acc
