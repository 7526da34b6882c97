"""
File management utilities: directories, globs, archives.
"""

import logging
import shutil
import tarfile
from pathlib import Path
from typing import Iterable, List

logger = logging.getLogger(__name__)


class FileManager:
    """Utilities for file and directory management."""

    @staticmethod
    def ensure_directory(path: Path) -> Path:
        """Ensure directory exists, create if necessary."""
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        return path

    @staticmethod
    def remove_matching(directory: Path, patterns: Iterable[str]) -> List[Path]:
        """Delete files in `directory` matching any glob pattern; return what was removed."""
        removed: List[Path] = []
        directory = Path(directory)
        for pattern in patterns:
            for p in sorted(directory.glob(pattern)):
                if p.is_file() or p.is_symlink():
                    p.unlink()
                    removed.append(p)
                elif p.is_dir():
                    shutil.rmtree(p)
                    removed.append(p)
        if removed:
            logger.debug(f"Removed {len(removed)} path(s) from {directory}")
        return removed

    @staticmethod
    def copy_files(sources: Iterable[Path], dest_dir: Path, prefix: str = "") -> List[Path]:
        """Copy existing files into dest_dir, optionally prefixing their names."""
        dest_dir = FileManager.ensure_directory(dest_dir)
        copied: List[Path] = []
        for src in sources:
            src = Path(src)
            if not src.is_file():
                continue
            dst = dest_dir / f"{prefix}{src.name}"
            shutil.copy2(src, dst)
            copied.append(dst)
        return copied

    @staticmethod
    def archive_directory(source: Path, archive_path: Path) -> Path:
        """Write `source` as a gzip-compressed tarball rooted at its own name."""
        source = Path(source)
        archive_path = Path(archive_path)
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(archive_path, "w:gz") as tar:
            tar.add(str(source), arcname=source.name)
        logger.info(f"Archived {source} -> {archive_path}")
        return archive_path
