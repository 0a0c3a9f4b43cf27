"""Error types and Result helpers for Vacuum.

Two layers:

- Exceptions (``TrackingError`` and subclasses) are raised inside the core
  components (checkpoint store, edit log, replay). Filesystem failures are
  left as plain ``OSError``.
- ``Result`` values (``Ok`` / ``Err`` carrying a ``VacuumError``) are what
  the tracking facade and the atomic writers hand back to callers, so a
  failure never escapes across the serialization gate as an exception.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E")


# =============================================================================
# Exceptions
# =============================================================================


class TrackingError(Exception):
    """Base class for tracking engine failures."""


class MalformedRecordError(TrackingError):
    """A persisted checkpoint or edit could not be parsed."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class CheckpointChainError(TrackingError):
    """A reference checkpoint chain dangles, cycles, or is too deep."""


class MissingBaseError(TrackingError):
    """An edit has no checkpoint to anchor to, even after a refresh."""


class ReplayError(TrackingError):
    """Edits could not be rolled forward onto a checkpoint."""


# =============================================================================
# Result type
# =============================================================================


@dataclass(frozen=True)
class VacuumError:
    """Structured error returned inside ``Err``."""

    code: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result."""

    value: T

    @property
    def ok(self) -> bool:
        return True

    @property
    def error(self) -> None:
        return None

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self):
        raise ValueError("Called unwrap_err() on an Ok result")


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed result."""

    error: E

    @property
    def ok(self) -> bool:
        return False

    @property
    def value(self) -> None:
        return None

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self):
        raise ValueError(f"Called unwrap() on an Err result: {self.error}")

    def unwrap_err(self) -> E:
        return self.error


Result = Ok[T] | Err[E]


def ok(value: T) -> Ok[T]:
    """Wrap a value in ``Ok``."""
    return Ok(value)


def err(error: E) -> Err[E]:
    """Wrap an error in ``Err``."""
    return Err(error)


def format_error(error: VacuumError | None) -> str:
    """Render an error for terminal output."""
    if error is None:
        return "Unknown error"
    text = f"{error.code}: {error.message}"
    if error.context:
        details = ", ".join(f"{k}={v}" for k, v in sorted(error.context.items()))
        text = f"{text} ({details})"
    return text
