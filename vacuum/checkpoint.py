"""Checkpoint store for Vacuum.

Keeps full-content snapshots of tracked files under
``<log_root>/<relative-path>/concrete-history/<mtime-ms>``.

A refresh is a two-tier check:

1. mtime: if the file's mtime is not newer than the last checkpoint key,
   nothing has changed and no file content is read.
2. content: otherwise the last checkpoint is resolved to its full text and
   compared with the file. Identical bytes produce a small reference record
   (``{"type": "same"}``) instead of a second copy of the content.

Records are never rewritten or deleted here.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from vacuum.atomic import atomic_write_json
from vacuum.errors import CheckpointChainError, MalformedRecordError
from vacuum.paths import LogLayout, mtime_ms, record_keys
from vacuum.records import Checkpoint, ContentCheckpoint, ReferenceCheckpoint, parse_checkpoint
from vacuum.types import Millis

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHAIN_DEPTH = 1000


class RefreshOutcome(str, Enum):
    """What a refresh wrote."""

    CREATED = "created"  # new content checkpoint
    REFERENCED = "referenced"  # reference to identical earlier content
    UNCHANGED = "unchanged"  # mtime not newer, nothing written


def read_source(file: Path) -> str:
    """Read a tracked file exactly, without newline translation."""
    return file.read_bytes().decode("utf-8")


class CheckpointStore:
    """Checkpoint persistence for every file under one log root."""

    def __init__(self, layout: LogLayout, max_chain_depth: int = DEFAULT_MAX_CHAIN_DEPTH) -> None:
        self.layout = layout
        self.max_chain_depth = max_chain_depth

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def keys(self, file: Path) -> list[Millis]:
        """All checkpoint keys for ``file``, oldest first."""
        return record_keys(self.layout.checkpoint_dir(file))

    def last_key(self, file: Path) -> Millis | None:
        keys = self.keys(file)
        return keys[-1] if keys else None

    def load(self, file: Path, key: Millis) -> Checkpoint:
        """Load one checkpoint record.

        Raises:
            FileNotFoundError: if no record exists under ``key``
            MalformedRecordError: if the record does not parse
        """
        path = self.layout.checkpoint_dir(file) / str(key)
        text = path.read_text(encoding="utf-8")
        try:
            checkpoint = parse_checkpoint(text)
        except MalformedRecordError as e:
            raise MalformedRecordError(f"{path}: {e}", path=str(path)) from e
        if checkpoint.mtime != key:
            raise MalformedRecordError(
                f"{path}: mtime {checkpoint.mtime} does not match key {key}", path=str(path)
            )
        return checkpoint

    def last_checkpoint(self, file: Path) -> Checkpoint | None:
        """The checkpoint with the greatest key, or None if there is none yet."""
        key = self.last_key(file)
        if key is None:
            return None
        return self.load(file, key)

    def resolve(self, file: Path, checkpoint: Checkpoint) -> ContentCheckpoint:
        """Follow reference pointers to the checkpoint that holds the content.

        Raises:
            CheckpointChainError: if the chain dangles, cycles, or exceeds
                ``max_chain_depth`` hops
        """
        seen: set[int] = {checkpoint.mtime}
        current = checkpoint
        for _ in range(self.max_chain_depth):
            if isinstance(current, ContentCheckpoint):
                return current
            target = current.prev_mtime
            if target in seen:
                raise CheckpointChainError(
                    f"Cycle in checkpoint chain for {file} at {target}"
                )
            seen.add(target)
            try:
                current = self.load(file, target)
            except FileNotFoundError as e:
                raise CheckpointChainError(
                    f"Checkpoint {current.mtime} for {file} points at missing {target}"
                ) from e
        if isinstance(current, ContentCheckpoint):
            return current
        raise CheckpointChainError(
            f"Checkpoint chain for {file} exceeds {self.max_chain_depth} hops"
        )

    def content_at(self, file: Path, key: Millis) -> str:
        """Resolved content of the checkpoint stored under ``key``."""
        return self.resolve(file, self.load(file, key)).contents

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def refresh(self, file: Path) -> RefreshOutcome:
        """Record a checkpoint for ``file`` if it changed since the last one.

        Raises:
            OSError: if the file cannot be read or the record not written
            UnicodeDecodeError: if the file is not UTF-8 text
            MalformedRecordError: if the previous checkpoint is corrupt
            CheckpointChainError: if the previous checkpoint cannot be resolved
        """
        mtime = mtime_ms(file)
        last = self.last_checkpoint(file)

        if last is None:
            self._write(file, ContentCheckpoint(contents=read_source(file), mtime=mtime))
            return RefreshOutcome.CREATED

        if mtime <= last.mtime:
            return RefreshOutcome.UNCHANGED

        base = self.resolve(file, last)
        contents = read_source(file)
        if contents == base.contents:
            self._write(file, ReferenceCheckpoint(prev_mtime=base.mtime, mtime=mtime))
            return RefreshOutcome.REFERENCED

        self._write(file, ContentCheckpoint(contents=contents, mtime=mtime))
        return RefreshOutcome.CREATED

    def _write(self, file: Path, checkpoint: Checkpoint) -> Path:
        path = self.layout.checkpoint_dir(file) / str(checkpoint.mtime)
        result = atomic_write_json(path, checkpoint.to_dict())
        if result.is_err():
            raise OSError(f"Failed to save checkpoint: {result.unwrap_err().message}")
        logger.debug(f"Saved {type(checkpoint).__name__} for {file} at {checkpoint.mtime}")
        return path
