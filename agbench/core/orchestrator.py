"""
Harness orchestration loop.

For each model: check the model file, start the backend, wait for it to be
ready, run every task in order inside the model's session, classify and
record each attempt, then validate and archive the project and tear the
backend down. A model that cannot be served is recorded as a skip and the
loop moves on to the next one.
"""

from __future__ import annotations

import json
import logging
import tarfile
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from agbench.agents import AgentTarget, get_command_builder
from agbench.utils.file_management import FileManager

from .backend import BackendServer
from .classifier import MarkerSet, classify
from .configuration import BenchConfiguration, model_slug
from .errors import BackendStartError
from .executor import BoundedExecutor
from .models import BackendSkip, ExecutionRecord, TaskSpec
from .results import Entry, ResultAccumulator
from .session import SessionContext
from .validation import validate_project

logger = logging.getLogger(__name__)

EXIT_CANCELLED = 130
RUN_FILE = "run.json"


class HarnessOrchestrator:
    """Drive every (model, task) pair of a configuration, strictly sequentially.

    Args:
        config: loaded benchmark configuration
        backend_factory: callable (backend_config, model, log_path) returning an
            object with start(), wait_ready(cancel) and stop(); BackendServer by default
        executor: BoundedExecutor (or compatible) used for every task
        on_event: called with each ExecutionRecord / BackendSkip right after it is recorded
        cancel: event that aborts the run; set by the CLI on SIGINT/SIGTERM
    """

    def __init__(
        self,
        config: BenchConfiguration,
        *,
        backend_factory: Optional[Callable] = None,
        executor: Optional[BoundedExecutor] = None,
        on_event: Optional[Callable[[Entry], None]] = None,
        cancel: Optional[threading.Event] = None,
    ):
        self.config = config
        self.output_dir = Path(config.run.output_dir)
        self.logs_dir = self.output_dir / "logs"
        self.projects_dir = self.output_dir / "projects"
        self.backend_factory = backend_factory or BackendServer
        self.executor = executor or BoundedExecutor(kill_grace=config.agent.kill_grace)
        self.on_event = on_event
        self.cancel = cancel or threading.Event()
        self.markers = MarkerSet(tuple(config.markers))
        self.builder = get_command_builder(config.agent)
        self.results: Optional[ResultAccumulator] = None
        self.cancelled = False

    # -- planning -------------------------------------------------------

    def target_for(self, model: str) -> AgentTarget:
        return AgentTarget(
            api_base=self.config.backend.api_base,
            model_name=model_slug(model),
            model_path=self.config.backend.model_path(model),
        )

    def plan(self) -> List[Tuple[str, str, List[str]]]:
        """(model, task, argv) for every pair, without running anything."""
        out = []
        for model in self.config.models:
            target = self.target_for(model)
            for task in self.config.tasks:
                inv = self.builder.build(task.instruction, target)
                out.append((model, task.name, list(inv.argv)))
        return out

    # -- run --------------------------------------------------------------

    def run(self) -> int:
        """Run the whole matrix; return the process exit code."""
        FileManager.ensure_directory(self.logs_dir)
        self.results = ResultAccumulator(self.output_dir)
        started = time.time()
        logger.info(
            f"Run '{self.config.run.name}': {len(self.config.models)} model(s), "
            f"{len(self.config.tasks)} task(s), agent={self.config.agent.kind}"
        )
        for model in self.config.models:
            if self.cancel.is_set():
                self.cancelled = True
            if self.cancelled:
                break
            self.run_model(model)

        self._write_run_info(started, time.time())
        if self.cancelled:
            logger.warning("Run cancelled")
            return EXIT_CANCELLED
        code = self.results.exit_code()
        logger.info(f"Run finished: {len(self.results.records())} record(s), "
                    f"{len(self.results.skips())} skip(s), exit={code}")
        return code

    def run_model(self, model: str) -> None:
        slug = model_slug(model)
        model_path = self.config.backend.model_path(model)
        if self.config.backend.manage and not model_path.is_file():
            self._skip(model, "model_missing", f"model file not found: {model_path}")
            return

        backend = self.backend_factory(self.config.backend, model, self.logs_dir / f"server_{slug}.log")
        try:
            try:
                backend.start()
            except BackendStartError as ex:
                self._skip(model, "backend_start_failed", str(ex))
                return
            ready = backend.wait_ready(cancel=self.cancel)
            if not ready.succeeded:
                if self.cancel.is_set():
                    self.cancelled = True
                    return
                self._skip(model, "backend_unready", ready.reason)
                return
            self._run_tasks(model)
        finally:
            backend.stop()

    def _run_tasks(self, model: str) -> None:
        session = SessionContext(model, self.projects_dir, self.config.session)
        session.prepare()
        target = self.target_for(model)
        for task in self.config.tasks:
            if self.cancel.is_set():
                self.cancelled = True
                break
            record = self.run_task(session, task, target)
            if record.cancelled:
                self.cancelled = True
                break
        if not self.cancelled:
            self._finish_model(session)

    def run_task(self, session: SessionContext, task: TaskSpec, target: AgentTarget) -> ExecutionRecord:
        workdir = session.begin_task(task)
        invocation = self.builder.build(task.instruction, target)
        log_path = self.logs_dir / f"{session.slug}__{task.name}.log"
        ceiling = self.config.task_timeout(task)
        logger.info(f"[{session.slug}] task {task.name} (ceiling {ceiling:.0f}s)")

        result = self.executor.run(invocation, workdir, ceiling, log_path, cancel=self.cancel)

        output = self._read_log(result.log_path)
        missing = session.missing_artifacts(task)
        marker_count = self.markers.count(output)
        # an interrupted attempt never counts as passed, whatever the agent exited with
        exit_code = None if result.cancelled else result.exit_code
        outcome = classify(result.timed_out, exit_code, not missing, marker_count)
        if self.config.session.collect_artifacts:
            session.collect_artifacts(task, self.output_dir / "artifacts")

        record = ExecutionRecord(
            model=session.model,
            task=task.name,
            started_at=result.started_at,
            duration_s=round(result.duration_s, 3),
            exit_code=result.exit_code,
            timed_out=result.timed_out,
            cancelled=result.cancelled,
            artifact_count=session.artifact_count(task),
            missing_artifacts=missing,
            commit_count=session.commit_count(task),
            output_lines=len(output.splitlines()),
            marker_count=marker_count,
            outcome=outcome,
            log_path=str(result.log_path),
        )
        session.end_task(task, outcome)
        self.results.append_record(record)
        logger.info(
            f"[{session.slug}] {task.name}: {outcome.label} in {record.duration_s:.1f}s "
            f"(exit={record.exit_code}, markers={marker_count}, missing={missing})"
        )
        self._emit(record)
        return record

    # -- helpers ----------------------------------------------------------

    def _skip(self, model: str, reason: str, detail: str) -> None:
        skip = BackendSkip(model=model, reason=reason, detail=detail, at=time.time())
        self.results.append_skip(skip)
        logger.warning(f"Skipping {model}: {reason} ({detail})")
        self._emit(skip)

    def _emit(self, entry: Entry) -> None:
        if self.on_event is not None:
            self.on_event(entry)

    @staticmethod
    def _read_log(path: Path) -> str:
        try:
            return Path(path).read_text(encoding="utf-8", errors="replace")
        except OSError:
            return ""

    def _finish_model(self, session: SessionContext) -> None:
        cfg = self.config.session
        if cfg.validate:
            validate_project(
                session.model_root,
                cfg.validate,
                report_path=self.logs_dir / f"{session.slug}_validation.log",
            )
        if cfg.archive:
            archive = self.output_dir / "archives" / f"{session.model_root.name}.tar.gz"
            try:
                FileManager.archive_directory(session.model_root, archive)
            except (OSError, tarfile.TarError) as ex:
                logger.warning(f"Could not archive {session.model_root}: {ex}")

    def _write_run_info(self, started: float, finished: float) -> None:
        info = {
            "name": self.config.run.name,
            "config": str(self.config.source) if self.config.source else None,
            "agent": self.config.agent.kind,
            "models": list(self.config.models),
            "tasks": [t.name for t in self.config.tasks],
            "started_at": started,
            "finished_at": finished,
            "cancelled": self.cancelled,
        }
        (self.output_dir / RUN_FILE).write_text(json.dumps(info, indent=2))
