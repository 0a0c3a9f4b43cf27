"""Path resolution for tracked files and their history directories.

Layout of one tracked root::

    <root>/<log_dir>/<identity>/<relative-file-path>/concrete-history/<ms>
    <root>/<log_dir>/<identity>/<relative-file-path>/edits-history/<ms>
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from vacuum.types import Identity, Millis

CONCRETE_NAME = "concrete-history"
EDITS_NAME = "edits-history"


def now_ms() -> Millis:
    """Current wall-clock time in milliseconds."""
    return Millis(time.time_ns() // 1_000_000)


def mtime_ms(path: Path) -> Millis:
    """Modification time of ``path`` in milliseconds."""
    return Millis(path.stat().st_mtime_ns // 1_000_000)


def is_subpath(parent: Path, child: Path) -> bool:
    """True if ``child`` lies strictly inside ``parent``."""
    try:
        rel = child.relative_to(parent)
    except ValueError:
        return False
    return rel.parts != () and ".." not in rel.parts


def tracked_path(file: Path) -> Path:
    """Absolute form of ``file`` with its directories resolved.

    The final component is kept as-is, so a symlinked file is addressed by
    its link path, the same path the scanner reports.
    """
    file = Path(file)
    return file.parent.resolve() / file.name


def find_tracking_root(file: Path, roots: Iterable[Path]) -> Path | None:
    """Pick the innermost root containing ``file``.

    Nested roots are allowed; the longest matching root wins.
    """
    candidates = [root for root in roots if is_subpath(root, file)]
    if not candidates:
        return None
    return max(candidates, key=lambda root: len(root.parts))


@dataclass(frozen=True)
class LogLayout:
    """Where the history of files under one tracked root lives."""

    root: Path
    log_dir_name: str
    identity: Identity

    @property
    def log_root(self) -> Path:
        return self.root / self.log_dir_name / self.identity

    def relative(self, file: Path) -> Path:
        """Path of ``file`` relative to the tracked root.

        Raises:
            ValueError: if ``file`` is not inside the root
        """
        if not is_subpath(self.root, file):
            raise ValueError(f"{file} is not inside tracked root {self.root}")
        return file.relative_to(self.root)

    def file_dir(self, file: Path) -> Path:
        return self.log_root / self.relative(file)

    def checkpoint_dir(self, file: Path) -> Path:
        return self.file_dir(file) / CONCRETE_NAME

    def edits_dir(self, file: Path) -> Path:
        return self.file_dir(file) / EDITS_NAME


def record_keys(directory: Path) -> list[Millis]:
    """Sorted numeric record keys in a history directory.

    Entries whose names are not plain integers (temp files from an
    in-flight atomic write, editor droppings) are skipped.
    """
    if not directory.is_dir():
        return []
    keys = [
        Millis(int(entry.name))
        for entry in directory.iterdir()
        if entry.name.isascii() and entry.name.isdigit()
    ]
    return sorted(keys)
