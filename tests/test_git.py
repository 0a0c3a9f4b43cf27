"""Tests for vacuum.git module.

Covers:
- Git CLI helpers
- Identity namespace resolution
- Global excludes file handling
"""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from vacuum.git import (
    NO_GIT_IDENTITY,
    _run_git,
    add_gitignore_entry,
    get_commit,
    get_global_gitignore_path,
    gitignore_has_entry,
    ignore_log_dir,
    is_git_repo,
    resolve_identity,
)

SHA = "3f786850e387550fdab836ed7e6dc881de23001b"


# =============================================================================
# Git CLI Helper Tests (mocked)
# =============================================================================


class TestGitCliHelpers:
    """Tests for git CLI helper functions."""

    @patch("vacuum.git.subprocess.run")
    def test_run_git_success(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout=f"{SHA}\n")

        assert _run_git(["rev-parse", "HEAD"]) == SHA

    @patch("vacuum.git.subprocess.run")
    def test_run_git_failure(self, mock_run):
        mock_run.return_value = MagicMock(returncode=128, stdout="")

        assert _run_git(["rev-parse", "HEAD"]) is None

    @patch("vacuum.git.subprocess.run", side_effect=FileNotFoundError("git"))
    def test_run_git_not_installed(self, mock_run):
        assert _run_git(["status"]) is None

    @patch("vacuum.git.subprocess.run", side_effect=subprocess.TimeoutExpired("git", 5))
    def test_run_git_timeout(self, mock_run):
        assert _run_git(["status"]) is None

    @patch("vacuum.git._run_git")
    def test_is_git_repo(self, mock_run):
        mock_run.return_value = ".git"
        assert is_git_repo() is True
        mock_run.assert_called_once_with(["rev-parse", "--git-dir"], cwd=None)

    @patch("vacuum.git._run_git")
    def test_get_commit_short(self, mock_run):
        mock_run.return_value = "3f78685"
        assert get_commit(short=True) == "3f78685"
        mock_run.assert_called_once_with(["rev-parse", "--short", "HEAD"], cwd=None)

    @patch("vacuum.git._run_git", return_value=None)
    def test_get_commit_no_repo(self, mock_run):
        assert get_commit() == ""


# =============================================================================
# Identity Tests
# =============================================================================


class TestResolveIdentity:
    """Tests for resolve_identity()."""

    @patch("vacuum.git._run_git", return_value=SHA)
    def test_head_sha(self, mock_run, tmp_path: Path):
        assert resolve_identity(tmp_path) == SHA
        mock_run.assert_called_once_with(["rev-parse", "HEAD"], cwd=tmp_path)

    @patch("vacuum.git._run_git", return_value=None)
    def test_not_a_repo(self, mock_run, tmp_path: Path):
        assert resolve_identity(tmp_path) == NO_GIT_IDENTITY == "no-git"

    @patch("vacuum.git._run_git", return_value="../../etc")
    def test_rejects_non_sha_output(self, mock_run, tmp_path: Path):
        assert resolve_identity(tmp_path) == NO_GIT_IDENTITY

    @patch("vacuum.git._run_git")
    def test_git_namespacing_disabled(self, mock_run, tmp_path: Path):
        assert resolve_identity(tmp_path, use_git=False) == NO_GIT_IDENTITY
        mock_run.assert_not_called()


# =============================================================================
# Global Excludes Tests
# =============================================================================


class TestGitignore:
    """Tests for global excludes file helpers."""

    def test_has_entry(self, tmp_path: Path):
        path = tmp_path / ".gitignore_global"
        path.write_text("*.pyc\n  .changes/  \n")

        assert gitignore_has_entry(path, ".changes/")
        assert not gitignore_has_entry(path, ".history/")
        assert not gitignore_has_entry(tmp_path / "missing", ".changes/")

    def test_add_entry_with_comment(self, tmp_path: Path):
        path = tmp_path / "nested" / ".gitignore_global"

        add_gitignore_entry(path, ".changes/", comment="history")

        lines = path.read_text().splitlines()
        assert "# history" in lines
        assert ".changes/" in lines

    @patch("vacuum.git._run_git", return_value="~/.config/git/ignore")
    def test_configured_path_expanded(self, mock_run, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("HOME", str(tmp_path))

        assert get_global_gitignore_path() == tmp_path / ".config" / "git" / "ignore"


class TestIgnoreLogDir:
    """Tests for ignore_log_dir()."""

    @pytest.fixture
    def excludes(self, tmp_path: Path) -> Path:
        return tmp_path / ".gitignore_global"

    def test_appends_to_configured_file(self, excludes: Path):
        excludes.write_text("*.pyc\n")

        with patch("vacuum.git.get_global_gitignore_path", return_value=excludes):
            path, modified = ignore_log_dir(".changes")

        assert path == excludes
        assert modified is True
        assert ".changes/" in excludes.read_text().splitlines()
        assert excludes.read_text().startswith("*.pyc\n")

    def test_idempotent(self, excludes: Path):
        excludes.write_text(".changes/\n")

        with patch("vacuum.git.get_global_gitignore_path", return_value=excludes):
            path, modified = ignore_log_dir(".changes")

        assert modified is False
        assert excludes.read_text() == ".changes/\n"

    def test_creates_default_file_when_unconfigured(self, excludes: Path):
        with (
            patch("vacuum.git.get_global_gitignore_path", return_value=None),
            patch("vacuum.git.default_global_gitignore_path", return_value=excludes),
            patch("vacuum.git.set_global_gitignore_path", return_value=True) as mock_set,
        ):
            path, modified = ignore_log_dir(".changes")

        mock_set.assert_called_once_with(excludes)
        assert path == excludes
        assert modified is True
        assert excludes.exists()
