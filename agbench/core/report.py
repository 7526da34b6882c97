"""
Summary statistics and rendering for a persisted result set.

Everything here is derived from results.jsonl alone (see
ResultAccumulator.load); nothing is rerun.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from .models import BackendSkip, ExecutionRecord, Outcome
from .results import ResultAccumulator

logger = logging.getLogger(__name__)

REPORT_FILE = "REPORT.md"

_STATUS_STYLE = {
    Outcome.SUCCEEDED: "bold green",
    Outcome.SUCCEEDED_WITH_WARNINGS: "green",
    Outcome.FAILED: "bold red",
    Outcome.TIMEOUT: "magenta",
}


@dataclass
class ModelSummary:
    model: str
    attempted: int = 0
    passed: int = 0
    mean_duration: Optional[float] = None
    median_duration: Optional[float] = None
    total_markers: int = 0
    outcomes: Dict[str, Outcome] = field(default_factory=dict)
    skip: Optional[BackendSkip] = None

    @property
    def success_rate(self) -> Optional[float]:
        if not self.attempted:
            return None
        return self.passed / self.attempted


@dataclass
class RunSummary:
    models: List[ModelSummary]
    tasks: List[str]
    total_records: int
    total_passed: int
    fastest: Optional[str] = None
    most_reliable: Optional[str] = None

    @property
    def overall_success_rate(self) -> Optional[float]:
        if not self.total_records:
            return None
        return self.total_passed / self.total_records


def summarize(results: ResultAccumulator) -> RunSummary:
    tasks: List[str] = []
    for r in results.records():
        if r.task not in tasks:
            tasks.append(r.task)

    skips = {s.model: s for s in results.skips()}
    summaries: List[ModelSummary] = []
    for model in results.models():
        records = results.records_for(model)
        ms = ModelSummary(model=model, skip=skips.get(model))
        if records:
            durations = np.array([r.duration_s for r in records], dtype=float)
            ms.attempted = len(records)
            ms.passed = sum(1 for r in records if r.outcome.passed)
            ms.mean_duration = float(np.mean(durations))
            ms.median_duration = float(np.median(durations))
            ms.total_markers = int(sum(r.marker_count for r in records))
            ms.outcomes = {r.task: r.outcome for r in records}
        summaries.append(ms)

    attempted = [m for m in summaries if m.attempted]
    fastest = min(attempted, key=lambda m: m.mean_duration).model if attempted else None
    # ties on success rate go to the faster model
    most_reliable = (
        min(attempted, key=lambda m: (-m.success_rate, m.mean_duration)).model if attempted else None
    )
    records = results.records()
    return RunSummary(
        models=summaries,
        tasks=tasks,
        total_records=len(records),
        total_passed=sum(1 for r in records if r.outcome.passed),
        fastest=fastest,
        most_reliable=most_reliable,
    )


def _pct(rate: Optional[float]) -> str:
    return "N/A" if rate is None else f"{rate * 100:.0f}%"


def _secs(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.1f}s"


def render_markdown(results: ResultAccumulator, title: str = "agbench", run_info: Optional[dict] = None) -> str:
    summary = summarize(results)
    lines: List[str] = [f"# Benchmark Report: {title}", ""]
    lines.append(f"- **Generated**: {time.strftime('%Y-%m-%d %H:%M:%S')}")
    if run_info:
        if run_info.get("agent"):
            lines.append(f"- **Agent**: {run_info['agent']}")
        if run_info.get("cancelled"):
            lines.append("- **Run was cancelled before completion**")
    lines.append(f"- **Models**: {len(summary.models)}")
    lines.append(f"- **Tasks**: {len(summary.tasks)}")
    lines.append(f"- **Attempts**: {summary.total_records}")
    lines.append(f"- **Overall success rate**: {_pct(summary.overall_success_rate)}")
    lines.append("")

    lines.append("## Performance Matrix")
    lines.append("")
    header = ["Model", *summary.tasks, "Avg Time", "Median Time", "Success Rate"]
    lines.append("| " + " | ".join(header) + " |")
    lines.append("|" + "---|" * len(header))
    for m in summary.models:
        if m.skip is not None and not m.attempted:
            cells = ["SKIPPED"] * len(summary.tasks)
        else:
            cells = [m.outcomes[t].label if t in m.outcomes else "N/A" for t in summary.tasks]
        row = [m.model, *cells, _secs(m.mean_duration), _secs(m.median_duration), _pct(m.success_rate)]
        lines.append("| " + " | ".join(row) + " |")
    lines.append("")

    skipped = [m for m in summary.models if m.skip is not None]
    if skipped:
        lines.append("## Skipped Models")
        lines.append("")
        for m in skipped:
            lines.append(f"- **{m.model}**: {m.skip.reason} ({m.skip.detail})")
        lines.append("")

    lines.append("## Summary")
    lines.append("")
    fastest = next((m for m in summary.models if m.model == summary.fastest), None)
    reliable = next((m for m in summary.models if m.model == summary.most_reliable), None)
    lines.append(
        f"- **Fastest model**: {fastest.model} ({_secs(fastest.mean_duration)} average)"
        if fastest else "- **Fastest model**: N/A"
    )
    lines.append(
        f"- **Most reliable model**: {reliable.model} ({_pct(reliable.success_rate)} success)"
        if reliable else "- **Most reliable model**: N/A"
    )
    lines.append("")

    lines.append("## Attempts")
    lines.append("")
    lines.append("| Model | Task | Outcome | Duration | Exit | Markers | Files | Commits | Missing |")
    lines.append("|---|---|---|---|---|---|---|---|---|")
    for r in results.records():
        missing = ", ".join(r.missing_artifacts) or "-"
        exit_code = "-" if r.exit_code is None else str(r.exit_code)
        lines.append(
            f"| {r.model} | {r.task} | {r.outcome.label} | {r.duration_s:.1f}s | {exit_code} | "
            f"{r.marker_count} | {r.artifact_count} | {r.commit_count} | {missing} |"
        )
    lines.append("")
    lines.append("Markers are lines matching the configured problem patterns; they are a heuristic.")
    lines.append("")
    return "\n".join(lines)


def write_report(results_dir: Path, out: Optional[Path] = None) -> Path:
    """Load results_dir/results.jsonl and write the Markdown report."""
    results_dir = Path(results_dir)
    results = ResultAccumulator.load(results_dir)
    run_info = None
    run_file = results_dir / "run.json"
    if run_file.is_file():
        try:
            run_info = json.loads(run_file.read_text())
        except ValueError as ex:
            logger.warning(f"Ignoring unreadable {run_file}: {ex}")
    title = (run_info or {}).get("name") or results_dir.name
    out = Path(out) if out is not None else results_dir / REPORT_FILE
    out.write_text(render_markdown(results, title=title, run_info=run_info))
    logger.info(f"Report written to {out}")
    return out


def format_entry(entry):
    """One rich Text line for a record or skip, printed as soon as it is recorded."""
    from rich.text import Text

    if isinstance(entry, BackendSkip):
        return Text(f"SKIP     {entry.model}: {entry.reason} {entry.detail}".rstrip(), style="yellow")
    r: ExecutionRecord = entry
    line = Text()
    line.append(f"{r.outcome.label:<24}", style=_STATUS_STYLE.get(r.outcome, "white"))
    line.append(f" {r.model} / {r.task}")
    line.append(f"  {r.duration_s:.1f}s  exit={r.exit_code}  markers={r.marker_count}", style="dim")
    if r.missing_artifacts:
        line.append(f"  missing={','.join(r.missing_artifacts)}", style="red")
    if r.cancelled:
        line.append("  (cancelled)", style="dim italic")
    return line


def build_table(results: ResultAccumulator):
    """rich Table of every attempt and skip, in recorded order."""
    from rich.table import Table
    from rich.text import Text

    table = Table(expand=True, show_lines=False)
    table.add_column("model", style="bold")
    table.add_column("task")
    table.add_column("outcome")
    table.add_column("duration", justify="right")
    table.add_column("exit", justify="right")
    table.add_column("markers", justify="right")
    table.add_column("files", justify="right")
    table.add_column("commits", justify="right")
    for e in results.entries():
        if isinstance(e, BackendSkip):
            table.add_row(e.model, "-", Text(f"skipped: {e.reason}", style="yellow"), "", "", "", "", "")
            continue
        table.add_row(
            e.model,
            e.task,
            Text(e.outcome.label, style=_STATUS_STYLE.get(e.outcome, "white")),
            f"{e.duration_s:.1f}s",
            "-" if e.exit_code is None else str(e.exit_code),
            str(e.marker_count),
            str(e.artifact_count),
            str(e.commit_count),
        )
    return table
