"""Tests for vacuum.edits module."""

import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from vacuum.errors import MalformedRecordError, MissingBaseError
from vacuum.records import ContentChange, Position, Range


def _insert(offset: int, text: str) -> ContentChange:
    return ContentChange(
        range=Range(Position(0, offset), Position(0, offset)),
        text=text,
        range_offset=offset,
        range_length=0,
    )


class TestAppend:
    """Tests for EditLog.append()."""

    def test_anchors_to_latest_checkpoint(self, store, edit_log, project, write_file):
        """baseTime is the key of the most recent checkpoint."""
        file = write_file(project / "A.lean", "theorem", mtime=1000)
        store.refresh(file)
        write_file(file, "theorem!", mtime=2000)
        store.refresh(file)

        edit = edit_log.append(file, [_insert(8, "?")], logged_at=2500)

        assert edit.base_time == 2000
        assert edit.time == 2500
        assert edit.file == file.as_posix()

    def test_writes_record_under_logged_time(self, store, edit_log, project, write_file):
        file = write_file(project / "A.lean", "theorem", mtime=1000)
        store.refresh(file)

        edit_log.append(file, [_insert(7, " foo")], logged_at=2000)

        record = project / ".changes" / "no-git" / "A.lean" / "edits-history" / "2000"
        data = json.loads(record.read_text())
        assert data["baseTime"] == 1000
        assert data["time"] == 2000
        assert data["changes"][0]["text"] == " foo"
        assert data["changes"][0]["rangeOffset"] == 7

    def test_takes_first_checkpoint_when_missing(self, store, edit_log, project, write_file):
        """An edit to a file with no history checkpoints it first."""
        file = write_file(project / "A.lean", "theorem", mtime=1000)

        edit = edit_log.append(file, [_insert(7, " foo")], logged_at=2000)

        assert store.keys(file) == [1000]
        assert edit.base_time == 1000

    def test_missing_file_raises_missing_base(self, edit_log, project):
        with pytest.raises(MissingBaseError):
            edit_log.append(project / "Gone.lean", [_insert(0, "x")], logged_at=2000)
        assert edit_log.keys(project / "Gone.lean") == []

    def test_refresh_writing_nothing_raises_missing_base(self, store, edit_log, project, write_file):
        file = write_file(project / "A.lean", "theorem", mtime=1000)

        with patch.object(store, "refresh", return_value=None):
            with pytest.raises(MissingBaseError, match="No checkpoint"):
                edit_log.append(file, [_insert(0, "x")], logged_at=2000)

    def test_does_not_refresh_existing_base(self, store, edit_log, project, write_file):
        """A file with history keeps its base even if it changed on disk since."""
        file = write_file(project / "A.lean", "theorem", mtime=1000)
        store.refresh(file)
        write_file(file, "changed", mtime=5000)

        edit = edit_log.append(file, [_insert(0, "x")], logged_at=6000)

        assert edit.base_time == 1000
        assert store.keys(file) == [1000]

    def test_empty_change_list(self, store, edit_log, project, write_file):
        file = write_file(project / "A.lean", "theorem", mtime=1000)

        edit = edit_log.append(file, [], logged_at=2000)

        assert edit.changes == ()
        assert edit_log.load(file, 2000) == edit

    def test_key_collision_replaces_with_warning(self, edit_log, project, write_file, caplog):
        file = write_file(project / "A.lean", "theorem", mtime=1000)
        edit_log.append(file, [_insert(0, "a")], logged_at=2000)

        with caplog.at_level(logging.WARNING, logger="vacuum.edits"):
            edit_log.append(file, [_insert(0, "b")], logged_at=2000)

        assert "collision" in caplog.text
        assert edit_log.keys(file) == [2000]
        assert edit_log.load(file, 2000).changes[0].text == "b"


class TestRead:
    """Tests for reading the edit log."""

    def test_edits_in_logging_order(self, store, edit_log, project, write_file):
        file = write_file(project / "A.lean", "theorem", mtime=1000)
        for t in (3000, 2000, 10000):
            edit_log.append(file, [_insert(0, str(t))], logged_at=t)

        assert [e.time for e in edit_log.edits(file)] == [2000, 3000, 10000]

    def test_filter_by_base(self, store, edit_log, project, write_file):
        file = write_file(project / "A.lean", "v1", mtime=1000)
        edit_log.append(file, [_insert(0, "a")], logged_at=1500)
        write_file(file, "v2", mtime=2000)
        store.refresh(file)
        edit_log.append(file, [_insert(0, "b")], logged_at=2500)

        assert [e.time for e in edit_log.edits(file, base_time=1000)] == [1500]
        assert [e.time for e in edit_log.edits(file, base_time=2000)] == [2500]

    def test_malformed_edit(self, edit_log, project):
        file = project / "A.lean"
        directory = edit_log.layout.edits_dir(file)
        directory.mkdir(parents=True)
        (directory / "2000").write_text('{"file": 1}')

        with pytest.raises(MalformedRecordError) as exc_info:
            edit_log.load(file, 2000)
        assert exc_info.value.path == str(directory / "2000")

    def test_no_history(self, edit_log, project):
        assert list(edit_log.edits(project / "A.lean")) == []
