"""Shared fixtures for vacuum tests."""

import os
from pathlib import Path

import pytest

from vacuum.checkpoint import CheckpointStore
from vacuum.edits import EditLog
from vacuum.paths import LogLayout
from vacuum.types import Identity


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """An empty tracked root."""
    root = tmp_path / "project"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def write_file():
    """Write a source file and pin its mtime to a given millisecond value."""

    def _write(path: Path, contents: str, mtime: int | None = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(contents.encode("utf-8"))
        if mtime is not None:
            ns = mtime * 1_000_000
            os.utime(path, ns=(ns, ns))
        return path

    return _write


@pytest.fixture
def layout(project: Path) -> LogLayout:
    return LogLayout(root=project, log_dir_name=".changes", identity=Identity("no-git"))


@pytest.fixture
def store(layout: LogLayout) -> CheckpointStore:
    return CheckpointStore(layout)


@pytest.fixture
def edit_log(store: CheckpointStore) -> EditLog:
    return EditLog(store)
