"""Rebuild file text by rolling edits forward from a checkpoint.

Editors report change offsets in UTF-16 code units and, within one change
event, every change addresses the text as it was before the event. Changes
of one event are therefore applied from the highest offset down, on the
UTF-16 encoding of the text.

No conflict policy is assumed: overlapping changes inside one event raise
``ReplayError``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from vacuum.checkpoint import CheckpointStore
from vacuum.edits import EditLog
from vacuum.errors import ReplayError
from vacuum.records import ContentChange, Edit
from vacuum.types import Millis

logger = logging.getLogger(__name__)

_CODEC = "utf-16-le"
_UNIT = 2  # bytes per UTF-16 code unit


def apply_changes(contents: str, changes: Iterable[ContentChange]) -> str:
    """Apply the changes of a single event to ``contents``."""
    buffer = contents.encode(_CODEC)
    size = len(buffer) // _UNIT

    ordered = sorted(changes, key=lambda c: (c.range_offset, c.range_length), reverse=True)
    limit = size
    first = True
    for change in ordered:
        start = change.range_offset
        end = start + change.range_length
        if start < 0 or change.range_length < 0 or end > size:
            raise ReplayError(
                f"Change [{start}, {end}) is outside text of length {size}"
            )
        # Two changes at one offset have no defined order either
        if end > limit or (not first and start == limit):
            raise ReplayError(f"Overlapping changes at offset {start}")
        buffer = buffer[: start * _UNIT] + change.text.encode(_CODEC) + buffer[end * _UNIT :]
        limit = start
        first = False

    try:
        return buffer.decode(_CODEC)
    except UnicodeDecodeError as e:
        raise ReplayError(f"Change splits a surrogate pair: {e}") from e


def roll_forward(contents: str, edits: Iterable[Edit]) -> str:
    """Apply edits in logging order on top of checkpoint ``contents``."""
    for edit in sorted(edits, key=lambda e: e.time):
        try:
            contents = apply_changes(contents, edit.changes)
        except ReplayError as e:
            raise ReplayError(f"Edit at {edit.time} for {edit.file}: {e}") from e
    return contents


def replay(
    store: CheckpointStore,
    log: EditLog,
    file: Path,
    base_time: Millis | None = None,
) -> str:
    """Text of ``file`` after every edit anchored to one checkpoint.

    Args:
        store: Checkpoint store holding the base
        log: Edit log for the same log root
        file: Tracked file
        base_time: Checkpoint key to start from (default: the latest one)

    Raises:
        ReplayError: if there is no checkpoint or an edit does not apply
    """
    if base_time is None:
        base_time = store.last_key(file)
        if base_time is None:
            raise ReplayError(f"No checkpoint recorded for {file}")

    contents = store.content_at(file, base_time)
    edits = list(log.edits(file, base_time=base_time))
    logger.debug(f"Replaying {len(edits)} edits for {file} from {base_time}")
    return roll_forward(contents, edits)
