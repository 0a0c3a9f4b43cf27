"""Decide which files and directories are in scope for tracking."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath

from vacuum.config import VacuumConfig


@dataclass(frozen=True)
class FileClassifier:
    """Name-based predicates over paths. Never touches the filesystem."""

    tracked_suffixes: frozenset[str]
    tracked_filenames: frozenset[str]
    ignored_dirs: frozenset[str]
    log_dir_name: str

    @classmethod
    def from_config(cls, config: VacuumConfig) -> FileClassifier:
        return cls(
            tracked_suffixes=frozenset(config.tracked_suffixes),
            tracked_filenames=frozenset(config.tracked_filenames),
            ignored_dirs=frozenset(config.ignored_dirs),
            log_dir_name=config.log_dir_name,
        )

    def is_tracked_file(self, path: PurePath) -> bool:
        name = path.name
        if name in self.tracked_filenames:
            return True
        return any(name.endswith(suffix) for suffix in self.tracked_suffixes)

    def is_tracked_directory(self, path: PurePath) -> bool:
        # The log directory is excluded so history never records itself
        name = path.name
        return name not in self.ignored_dirs and name != self.log_dir_name


DEFAULT_CLASSIFIER = FileClassifier.from_config(VacuumConfig())
