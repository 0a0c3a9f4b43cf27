"""Atomic file write utilities for Vacuum.

Every checkpoint and edit record is written with the temp file + rename
pattern, which is atomic on POSIX systems. A reader listing a history
directory therefore never sees a half-written record, only complete ones
or none at all.

Temp files are created next to the target with a leading dot, so they never
parse as a numeric record key.

All functions return Result types for explicit error handling.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from vacuum.errors import Err, Ok, Result, VacuumError

logger = logging.getLogger(__name__)


def atomic_write_text(
    path: Path,
    content: str,
    mode: int = 0o600,
) -> Result[Path, VacuumError]:
    """Atomically write text content to a file.

    Uses temp file + rename pattern for crash safety.
    Creates parent directories if they don't exist.

    Args:
        path: Target file path
        content: Text content to write
        mode: File permissions (default 0o600 - owner read/write only)

    Returns:
        Ok(path) on success, Err(VacuumError) on failure
    """
    path = Path(path)
    temp_path: str | None = None

    try:
        path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)

        # Same directory as the target, required for an atomic rename
        fd, temp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}_",
            suffix=".tmp",
        )

        try:
            # newline="" keeps record text byte-exact on every platform
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)

            os.chmod(temp_path, mode)
            os.replace(temp_path, path)

            logger.debug(f"Atomic write complete: {path}")
            return Ok(path)

        except Exception:
            _cleanup_temp(temp_path)
            raise

    except PermissionError as e:
        logger.error(f"Permission denied writing {path}: {e}")
        return Err(
            VacuumError(
                code="ATOMIC_PERMISSION_DENIED",
                message=f"Permission denied writing to {path}",
                context={"path": str(path)},
            )
        )

    except OSError as e:
        logger.error(f"OS error writing {path}: {e}")
        return Err(
            VacuumError(
                code="ATOMIC_WRITE_FAILED",
                message=f"Failed to write {path}: {e}",
                context={"path": str(path), "error": str(e)},
            )
        )


def atomic_write_json(
    path: Path,
    data: Any,
    mode: int = 0o600,
    indent: int | None = None,
    ensure_ascii: bool = False,
) -> Result[Path, VacuumError]:
    """Atomically write JSON data to a file.

    Records are compact by default (``indent=None``), matching the format
    consumers of the history tree expect.

    Args:
        path: Target file path
        data: Data to serialize as JSON
        mode: File permissions (default 0o600)
        indent: JSON indentation (None for compact)
        ensure_ascii: Escape non-ASCII characters (default False)

    Returns:
        Ok(path) on success, Err(VacuumError) on failure
    """
    try:
        content = json.dumps(data, indent=indent, ensure_ascii=ensure_ascii)
    except (TypeError, ValueError) as e:
        logger.error(f"JSON serialization failed: {e}")
        return Err(
            VacuumError(
                code="JSON_SERIALIZATION_FAILED",
                message=f"Failed to serialize data to JSON: {e}",
                context={"error": str(e)},
            )
        )

    return atomic_write_text(path, content, mode)


def _cleanup_temp(temp_path: str | None) -> None:
    """Remove a leftover temp file, ignoring errors."""
    if temp_path is None:
        return

    try:
        os.unlink(temp_path)
        logger.debug(f"Cleaned up temp file: {temp_path}")
    except OSError:
        # Already gone
        pass
