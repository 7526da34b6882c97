"""
Logging configuration for agbench.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

LOG_NAME = "agbench.log"


class _FsyncFileHandler(logging.FileHandler):
    """File handler that can fsync on flush.

    Useful when the log is tailed while a long benchmark is running.
    """

    def __init__(self, filename, mode="a", encoding="utf-8", delay=False, *, fsync=False):
        super().__init__(filename, mode=mode, encoding=encoding, delay=delay)
        self._fsync = bool(fsync)

    def flush(self):
        super().flush()
        if self._fsync and self.stream is not None and hasattr(self.stream, "fileno"):
            try:
                os.fsync(self.stream.fileno())
            except OSError:
                pass


def _env_flag(name: str) -> bool:
    v = os.environ.get(name)
    if v is None:
        return False
    return v not in ("0", "false", "False", "no", "NO", "")


def setup_logging(
    output_dir: Path,
    level: str = "INFO",
    console_level: Optional[str] = None,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Setup logging for one benchmark run.

    Args:
        output_dir: Results directory; the log file goes to <output_dir>/agbench.log
        level: Level for the file handler (DEBUG, INFO, WARNING, ERROR)
        console_level: Level for the stdout handler, WARNING unless given
        format_string: Custom format string

    Returns:
        The package logger
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    log_path = Path(output_dir) / LOG_NAME
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fh = _FsyncFileHandler(log_path, fsync=_env_flag("AGBENCH_LOG_FSYNC"))
    fh.setFormatter(logging.Formatter(format_string))
    fh.setLevel(getattr(logging, level.upper()))
    root.addHandler(fh)

    # Console handler (quiet by default; the rich status lines are the operator view)
    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(getattr(logging, (console_level or "WARNING").upper()))
    ch.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    root.addHandler(ch)

    # urllib3 logs every refused connection while the backend boots
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return logging.getLogger("agbench")
