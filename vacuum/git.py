"""Git integration for Vacuum.

Used for:
- Naming the identity namespace of a tracked root (HEAD commit SHA), so
  histories recorded against different commits never intermix
- Keeping the history directory out of version control through the
  user's global excludes file

All functions gracefully handle non-git directories by returning None/empty
values.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path

from vacuum.types import Identity

logger = logging.getLogger(__name__)

NO_GIT_IDENTITY = Identity("no-git")


# =============================================================================
# Git CLI Helpers
# =============================================================================


def _run_git(args: list[str], cwd: Path | None = None) -> str | None:
    """Run a git command and return stdout, or None on failure.

    Args:
        args: Git command arguments (without 'git' prefix)
        cwd: Working directory (defaults to current)

    Returns:
        Stdout string on success, None on failure
    """
    try:
        # Security: shell=False (default), args are internal constants
        result = subprocess.run(
            ["git", *args],  # noqa: S603, S607
            capture_output=True,
            text=True,
            timeout=5,
            cwd=cwd,
        )
        if result.returncode == 0:
            return result.stdout.strip()
        return None
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as e:
        logger.debug(f"Git command failed: {e}")
        return None


def is_git_repo(path: Path | None = None) -> bool:
    """Check if path is inside a git repository."""
    return _run_git(["rev-parse", "--git-dir"], cwd=path) is not None


def get_commit(path: Path | None = None, short: bool = False) -> str:
    """Get current commit SHA.

    Args:
        path: Repository path
        short: Return short SHA (7 chars) if True

    Returns:
        Commit SHA or "" if not a git repo or there are no commits yet
    """
    args = ["rev-parse"]
    if short:
        args.append("--short")
    args.append("HEAD")

    return _run_git(args, cwd=path) or ""


# =============================================================================
# Identity namespace
# =============================================================================


def resolve_identity(root: Path, use_git: bool = True) -> Identity:
    """Directory segment that partitions the history of ``root``.

    Returns the full HEAD commit SHA when ``root`` is inside a git
    repository with at least one commit, otherwise ``"no-git"``.
    """
    if not use_git:
        return NO_GIT_IDENTITY

    commit = get_commit(root)
    # Anything but a hex SHA would be unsafe as a path segment
    if not commit or not re.fullmatch(r"[0-9a-f]{7,64}", commit):
        return NO_GIT_IDENTITY
    return Identity(commit)


# =============================================================================
# Global excludes file
# =============================================================================


def default_global_gitignore_path() -> Path:
    return Path.home() / ".gitignore_global"


def get_global_gitignore_path() -> Path | None:
    """Path configured as ``core.excludesfile``, if any."""
    configured = _run_git(["config", "--global", "core.excludesfile"])
    if not configured:
        return None
    return Path(os.path.expanduser(configured))


def gitignore_has_entry(gitignore_path: Path, entry: str) -> bool:
    """True if ``entry`` already appears as a line of the ignore file."""
    if not gitignore_path.exists():
        return False
    lines = [line.strip() for line in gitignore_path.read_text(encoding="utf-8").splitlines()]
    return entry in lines


def add_gitignore_entry(gitignore_path: Path, entry: str, comment: str | None = None) -> None:
    """Append ``entry`` (with an optional comment line) to an ignore file."""
    block = []
    if comment:
        block.append(f"# {comment}")
    block.append(entry)

    gitignore_path.parent.mkdir(parents=True, exist_ok=True)
    with open(gitignore_path, "a", encoding="utf-8") as f:
        f.write(os.linesep + os.linesep.join(block) + os.linesep)


def set_global_gitignore_path(gitignore_path: Path) -> bool:
    """Point ``core.excludesfile`` at ``gitignore_path``."""
    return _run_git(["config", "--global", "core.excludesfile", str(gitignore_path)]) is not None


def ignore_log_dir(log_dir_name: str) -> tuple[Path, bool]:
    """Ensure ``<log_dir_name>/`` is listed in the global excludes file.

    Creates ``~/.gitignore_global`` and registers it when git has no
    excludes file configured.

    Returns:
        (path of the excludes file, True if it was modified)
    """
    entry = f"{log_dir_name}/"
    gitignore_path = get_global_gitignore_path()

    if gitignore_path is None:
        gitignore_path = default_global_gitignore_path()
        if not set_global_gitignore_path(gitignore_path):
            logger.warning("Could not set core.excludesfile; is git installed?")

    if gitignore_has_entry(gitignore_path, entry):
        logger.debug(f"{entry} already in {gitignore_path}")
        return gitignore_path, False

    add_gitignore_entry(
        gitignore_path,
        entry,
        comment=f"Ignore the {log_dir_name} directory used by Vacuum to record edits",
    )
    logger.info(f"Added {entry} to {gitignore_path}")
    return gitignore_path, True
