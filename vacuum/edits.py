"""Edit log for Vacuum.

Appends editor change events under
``<log_root>/<relative-path>/edits-history/<logged-at-ms>``, each anchored
to the most recent checkpoint of the file (``baseTime``).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from vacuum.atomic import atomic_write_json
from vacuum.checkpoint import CheckpointStore
from vacuum.errors import MalformedRecordError, MissingBaseError, TrackingError
from vacuum.paths import record_keys
from vacuum.records import ContentChange, Edit, parse_edit
from vacuum.types import Millis

logger = logging.getLogger(__name__)


class EditLog:
    """Edit persistence sharing a log root with a ``CheckpointStore``."""

    def __init__(self, store: CheckpointStore) -> None:
        self.store = store
        self.layout = store.layout

    def keys(self, file: Path) -> list[Millis]:
        """All edit keys for ``file``, oldest first."""
        return record_keys(self.layout.edits_dir(file))

    def load(self, file: Path, key: Millis) -> Edit:
        """Load one edit record.

        Raises:
            FileNotFoundError: if no record exists under ``key``
            MalformedRecordError: if the record does not parse
        """
        path = self.layout.edits_dir(file) / str(key)
        try:
            return parse_edit(path.read_text(encoding="utf-8"))
        except MalformedRecordError as e:
            raise MalformedRecordError(f"{path}: {e}", path=str(path)) from e

    def edits(self, file: Path, base_time: Millis | None = None) -> Iterator[Edit]:
        """Edits for ``file`` in logging order, optionally only those on one base."""
        for key in self.keys(file):
            edit = self.load(file, key)
            if base_time is None or edit.base_time == base_time:
                yield edit

    def append(self, file: Path, changes: Iterable[ContentChange], logged_at: Millis) -> Edit:
        """Record one change event for ``file``.

        If the file has no checkpoint yet one is taken first, so every
        edit has a base to replay from.

        Raises:
            MissingBaseError: if no checkpoint exists and none could be made
            OSError: if the edit record cannot be written
        """
        base = self.store.last_key(file)
        if base is None:
            try:
                self.store.refresh(file)
            except (OSError, UnicodeDecodeError, TrackingError) as e:
                raise MissingBaseError(f"Cannot checkpoint {file} before logging edit: {e}") from e
            base = self.store.last_key(file)
        if base is None:
            raise MissingBaseError(f"No checkpoint found for {file}")

        edit = Edit(
            file=file.as_posix(),
            time=logged_at,
            base_time=base,
            changes=tuple(changes),
        )

        path = self.layout.edits_dir(file) / str(logged_at)
        if path.exists():
            # Millisecond keys can collide under very fast edits or a clock step
            logger.warning(f"Edit key collision for {file} at {logged_at}; replacing earlier edit")

        result = atomic_write_json(path, edit.to_dict())
        if result.is_err():
            raise OSError(f"Failed to save edit: {result.unwrap_err().message}")
        logger.debug(f"Logged edit for {file} at {logged_at} (base {base})")
        return edit
