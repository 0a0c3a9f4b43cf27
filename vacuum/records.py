"""Persisted record types.

Checkpoints and edits are immutable dataclasses serialized as compact JSON,
one record per file, keyed by a millisecond timestamp:

    concrete-history/<mtime>   {"type": "new", "contents": ..., "mtime": ...}
                               {"type": "same", "prevMtime": ..., "mtime": ...}
    edits-history/<time>       {"file": ..., "time": ..., "baseTime": ...,
                                "changes": [...]}

``from_dict`` validates shape and raises ``MalformedRecordError`` instead of
``KeyError``/``TypeError`` so callers can treat a corrupt record as a single
failed read.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from vacuum.errors import MalformedRecordError
from vacuum.types import Millis


def _require_int(data: dict, key: str) -> int:
    value = data.get(key)
    # bool is an int subclass, reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool):
        raise MalformedRecordError(f"'{key}' must be an integer, got {value!r}")
    return value


def _require_str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise MalformedRecordError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


def _require_dict(data: Any, what: str) -> dict:
    if not isinstance(data, dict):
        raise MalformedRecordError(f"{what} must be an object, got {type(data).__name__}")
    return data


# =============================================================================
# Checkpoints
# =============================================================================


@dataclass(frozen=True)
class ContentCheckpoint:
    """Full text of a file at capture time."""

    contents: str
    mtime: Millis

    @property
    def key(self) -> Millis:
        return self.mtime

    def to_dict(self) -> dict:
        return {"type": "new", "contents": self.contents, "mtime": self.mtime}

    @classmethod
    def from_dict(cls, data: dict) -> ContentCheckpoint:
        return cls(
            contents=_require_str(data, "contents"),
            mtime=Millis(_require_int(data, "mtime")),
        )


@dataclass(frozen=True)
class ReferenceCheckpoint:
    """The mtime moved but the bytes did not.

    ``prev_mtime`` is the key of an earlier checkpoint with identical
    content; following these pointers ends at a ``ContentCheckpoint``.
    """

    prev_mtime: Millis
    mtime: Millis

    @property
    def key(self) -> Millis:
        return self.mtime

    def to_dict(self) -> dict:
        return {"type": "same", "prevMtime": self.prev_mtime, "mtime": self.mtime}

    @classmethod
    def from_dict(cls, data: dict) -> ReferenceCheckpoint:
        return cls(
            prev_mtime=Millis(_require_int(data, "prevMtime")),
            mtime=Millis(_require_int(data, "mtime")),
        )


Checkpoint = ContentCheckpoint | ReferenceCheckpoint


def checkpoint_from_dict(data: Any) -> Checkpoint:
    """Parse a checkpoint record, dispatching on its ``type`` field."""
    data = _require_dict(data, "Checkpoint")
    kind = data.get("type")
    if kind == "new":
        return ContentCheckpoint.from_dict(data)
    if kind == "same":
        return ReferenceCheckpoint.from_dict(data)
    raise MalformedRecordError(f"Invalid checkpoint type: {kind!r}")


def parse_checkpoint(text: str) -> Checkpoint:
    """Parse checkpoint JSON text."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedRecordError(f"Checkpoint is not valid JSON: {e}") from e
    return checkpoint_from_dict(data)


# =============================================================================
# Edits
# =============================================================================


@dataclass(frozen=True)
class Position:
    """Zero-based line/character position."""

    line: int
    character: int

    def to_dict(self) -> dict:
        return {"line": self.line, "character": self.character}

    @classmethod
    def from_dict(cls, data: Any) -> Position:
        data = _require_dict(data, "Position")
        return cls(line=_require_int(data, "line"), character=_require_int(data, "character"))


@dataclass(frozen=True)
class Range:
    """Half-open text range."""

    start: Position
    end: Position

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def to_dict(self) -> dict:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}

    @classmethod
    def from_dict(cls, data: Any) -> Range:
        data = _require_dict(data, "Range")
        return cls(start=Position.from_dict(data.get("start")), end=Position.from_dict(data.get("end")))


@dataclass(frozen=True)
class ContentChange:
    """One range replacement inside an editor change event.

    The range is given twice: as line/character endpoints and as
    ``range_offset`` + ``range_length`` into the pre-change text.
    """

    range: Range
    text: str
    range_offset: int
    range_length: int

    @property
    def is_insertion(self) -> bool:
        return self.range_length == 0 and self.text != ""

    @property
    def is_deletion(self) -> bool:
        return self.range_length > 0 and self.text == ""

    def to_dict(self) -> dict:
        return {
            "range": self.range.to_dict(),
            "text": self.text,
            "rangeOffset": self.range_offset,
            "rangeLength": self.range_length,
        }

    @classmethod
    def from_dict(cls, data: Any) -> ContentChange:
        data = _require_dict(data, "ContentChange")
        return cls(
            range=Range.from_dict(data.get("range")),
            text=_require_str(data, "text"),
            range_offset=_require_int(data, "rangeOffset"),
            range_length=_require_int(data, "rangeLength"),
        )


@dataclass(frozen=True)
class Edit:
    """A logged change event anchored to checkpoint ``base_time``."""

    file: str
    time: Millis
    base_time: Millis
    changes: tuple[ContentChange, ...]

    @property
    def key(self) -> Millis:
        return self.time

    def to_dict(self) -> dict:
        return {
            "file": self.file,
            "time": self.time,
            "baseTime": self.base_time,
            "changes": [c.to_dict() for c in self.changes],
        }

    @classmethod
    def from_dict(cls, data: Any) -> Edit:
        data = _require_dict(data, "Edit")
        changes = data.get("changes")
        if not isinstance(changes, list):
            raise MalformedRecordError("'changes' must be a list")
        return cls(
            file=_require_str(data, "file"),
            time=Millis(_require_int(data, "time")),
            base_time=Millis(_require_int(data, "baseTime")),
            changes=tuple(ContentChange.from_dict(c) for c in changes),
        )


def parse_edit(text: str) -> Edit:
    """Parse edit JSON text."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedRecordError(f"Edit is not valid JSON: {e}") from e
    return Edit.from_dict(data)
