"""Enumerate tracked files under a root."""

from __future__ import annotations

import logging
from pathlib import Path

from vacuum.classify import DEFAULT_CLASSIFIER, FileClassifier

logger = logging.getLogger(__name__)


def scan(root: Path, classifier: FileClassifier = DEFAULT_CLASSIFIER) -> list[Path]:
    """Recursively list tracked files under ``root``.

    Children are visited in lexicographic name order at every level, so the
    result is the same across runs and platforms. Symlinked directories are
    not followed.

    Args:
        root: Directory to walk
        classifier: Decides which files to keep and which directories to enter

    Returns:
        Tracked file paths in scan order

    Raises:
        OSError: if ``root`` (or a directory below it) cannot be listed
    """
    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")

    found: list[Path] = []
    _walk(root, classifier, found)
    logger.debug(f"Scanned {root}: {len(found)} tracked files")
    return found


def _walk(directory: Path, classifier: FileClassifier, found: list[Path]) -> None:
    for child in sorted(directory.iterdir(), key=lambda p: p.name):
        if child.is_symlink():
            if child.is_file() and classifier.is_tracked_file(child):
                found.append(child)
            continue
        if child.is_dir():
            if classifier.is_tracked_directory(child):
                _walk(child, classifier, found)
        elif child.is_file() and classifier.is_tracked_file(child):
            found.append(child)
