"""
Post-run project validation: byte-compile the listed Python files.

This only checks syntax, like `python -m py_compile`. It runs after all of a
model's tasks and never changes any task record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileCheck:
    path: str
    ok: bool
    message: str = ""


def check_syntax(path: Path) -> FileCheck:
    p = Path(path)
    if not p.is_file():
        return FileCheck(str(p), False, "missing")
    try:
        source = p.read_bytes()
        compile(source, str(p), "exec", dont_inherit=True)
    except SyntaxError as ex:
        return FileCheck(str(p), False, f"line {ex.lineno}: {ex.msg}")
    except (ValueError, OSError) as ex:
        return FileCheck(str(p), False, str(ex))
    return FileCheck(str(p), True)


def validate_project(
    project_dir: Path,
    patterns: Iterable[str],
    report_path: Optional[Path] = None,
) -> List[FileCheck]:
    """Check every file matching `patterns` under project_dir.

    A literal file name that matches nothing is reported as missing.
    """
    project_dir = Path(project_dir)
    checks: List[FileCheck] = []
    for pattern in patterns:
        matches = sorted(p for p in project_dir.glob(pattern) if p.is_file())
        if not matches:
            checks.append(FileCheck(str(project_dir / pattern), False, "missing"))
            continue
        checks.extend(check_syntax(m) for m in matches)

    for c in checks:
        if c.ok:
            logger.info(f"syntax ok: {c.path}")
        else:
            logger.warning(f"syntax check failed: {c.path}: {c.message}")

    if report_path is not None:
        report_path = Path(report_path)
        report_path.parent.mkdir(parents=True, exist_ok=True)
        with open(report_path, "w") as fh:
            for c in checks:
                status = "OK" if c.ok else f"FAIL {c.message}"
                fh.write(f"{c.path}: {status}\n")
    return checks
