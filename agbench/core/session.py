"""
Session context: the working directory a model's tasks run in, plus the
history of what has run there.

In `shared` mode every task of a model runs in the same directory, so a
task sees the files earlier tasks left behind. In `isolated` mode each task
gets a fresh directory under the model root.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

from agbench.utils.file_management import FileManager

from .configuration import SessionConfig, model_slug
from .models import Outcome, TaskSpec

logger = logging.getLogger(__name__)

GIT_USER = "agbench"
GIT_EMAIL = "agbench@localhost"


def _git(workdir: Path, *args: str) -> Optional[str]:
    try:
        res = subprocess.run(
            ["git", *args],
            cwd=str(workdir),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as ex:
        logger.debug(f"git {' '.join(args)} failed in {workdir}: {ex}")
        return None
    return res.stdout


class SessionContext:
    """Working directory and task history for one model."""

    def __init__(self, model: str, root: Path, config: SessionConfig):
        self.model = model
        self.slug = model_slug(model)
        self.config = config
        if config.mode == "shared":
            self.model_root = Path(root) / f"{self.slug}_project"
        else:
            self.model_root = Path(root) / self.slug
        self.history: List[Tuple[str, Outcome]] = []

    @property
    def shared(self) -> bool:
        return self.config.mode == "shared"

    def prepare(self) -> Path:
        """Create the model root; in shared mode it is also the task directory."""
        if self.model_root.exists():
            shutil.rmtree(self.model_root)
        FileManager.ensure_directory(self.model_root)
        if self.shared:
            self._init_repo(self.model_root)
        return self.model_root

    def workdir_for(self, task: TaskSpec) -> Path:
        if self.shared:
            return self.model_root
        return self.model_root / task.name

    def begin_task(self, task: TaskSpec) -> Path:
        workdir = self.workdir_for(task)
        if not self.shared:
            FileManager.ensure_directory(workdir)
            self._init_repo(workdir)
        FileManager.remove_matching(workdir, self._clean_patterns(task))
        return workdir

    def end_task(self, task: TaskSpec, outcome: Outcome) -> None:
        workdir = self.workdir_for(task)
        FileManager.remove_matching(workdir, self._clean_patterns(task))
        self.history.append((task.name, outcome))

    def _clean_patterns(self, task: TaskSpec) -> List[str]:
        return list(self.config.clean_patterns) + list(task.clean_patterns)

    def _init_repo(self, workdir: Path) -> None:
        if not self.config.git_init:
            return
        if _git(workdir, "init", "-q") is None:
            logger.warning(f"git init failed in {workdir}; commit counts will be 0")
            return
        _git(workdir, "config", "user.name", GIT_USER)
        _git(workdir, "config", "user.email", GIT_EMAIL)

    # -- evidence ---------------------------------------------------------

    def missing_artifacts(self, task: TaskSpec) -> List[str]:
        workdir = self.workdir_for(task)
        return [a for a in task.expected_artifacts if not (workdir / a).exists()]

    def artifact_count(self, task: TaskSpec) -> int:
        """Files in the working directory (tracked or untracked, .gitignore respected)."""
        workdir = self.workdir_for(task)
        if (workdir / ".git").exists():
            out = _git(workdir, "ls-files", "--cached", "--others", "--exclude-standard")
            if out is not None:
                return len([line for line in out.splitlines() if line.strip()])
        return sum(
            1 for p in workdir.rglob("*")
            if p.is_file() and ".git" not in p.relative_to(workdir).parts
        )

    def commit_count(self, task: TaskSpec) -> int:
        workdir = self.workdir_for(task)
        if not (workdir / ".git").exists():
            return 0
        out = _git(workdir, "rev-list", "--count", "HEAD")
        if out is None:
            return 0
        try:
            return int(out.strip())
        except ValueError:
            return 0

    def collect_artifacts(self, task: TaskSpec, dest_dir: Path) -> List[Path]:
        """Copy the task's expected artifacts to dest_dir as <slug>__<task>__<file>."""
        workdir = self.workdir_for(task)
        sources = [workdir / a for a in task.expected_artifacts]
        return FileManager.copy_files(sources, dest_dir, prefix=f"{self.slug}__{task.name}__")
