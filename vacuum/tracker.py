"""Tracking facade for Vacuum.

The two entry points editor glue calls:

- ``refresh_all(root)``: scan a tracked root and checkpoint every file that
  changed since its last checkpoint (on save, on a timer).
- ``log_edit(event)``: append one editor change event to the file's edit
  log, taking a first checkpoint if the file has none.

Both run through the tracker's own ``SerializationGate`` and report failures
as ``Err`` results rather than raising.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path

from vacuum.checkpoint import CheckpointStore, RefreshOutcome
from vacuum.classify import FileClassifier
from vacuum.config import VacuumConfig
from vacuum.edits import EditLog
from vacuum.errors import (
    CheckpointChainError,
    Err,
    MalformedRecordError,
    MissingBaseError,
    Ok,
    Result,
    VacuumError,
)
from vacuum.gate import SerializationGate
from vacuum.git import resolve_identity
from vacuum.paths import LogLayout, find_tracking_root, now_ms, tracked_path
from vacuum.records import ContentChange, Edit
from vacuum.scanner import scan
from vacuum.types import Identity, Millis

logger = logging.getLogger(__name__)

IdentityResolver = Callable[[Path], Identity]


@dataclass(frozen=True)
class ChangeEvent:
    """One editor change notification."""

    file: Path
    changes: tuple[ContentChange, ...]
    time: Millis

    @classmethod
    def now(cls, file: Path, changes: Iterable[ContentChange]) -> ChangeEvent:
        return cls(file=file, changes=tuple(changes), time=now_ms())


@dataclass
class RefreshReport:
    """Outcome of a bulk refresh, one entry per scanned file."""

    root: Path
    created: list[Path] = field(default_factory=list)
    referenced: list[Path] = field(default_factory=list)
    unchanged: list[Path] = field(default_factory=list)
    failed: dict[Path, VacuumError] = field(default_factory=dict)

    @property
    def scanned(self) -> int:
        return len(self.created) + len(self.referenced) + len(self.unchanged) + len(self.failed)

    def record(self, file: Path, outcome: RefreshOutcome) -> None:
        {
            RefreshOutcome.CREATED: self.created,
            RefreshOutcome.REFERENCED: self.referenced,
            RefreshOutcome.UNCHANGED: self.unchanged,
        }[outcome].append(file)


def error_from_exception(exc: BaseException, file: Path | None = None) -> VacuumError:
    """Map a tracking failure onto a coded ``VacuumError``."""
    context = {"file": str(file)} if file is not None else {}
    if isinstance(exc, MissingBaseError):
        code = "MISSING_BASE"
    elif isinstance(exc, MalformedRecordError):
        code = "MALFORMED_RECORD"
        if exc.path:
            context["record"] = exc.path
    elif isinstance(exc, CheckpointChainError):
        code = "CHECKPOINT_CHAIN_BROKEN"
    else:
        code = "FILESYSTEM_ERROR"
    return VacuumError(code=code, message=str(exc), context=context)


# Failures isolated to one file or one edit
_EXPECTED_ERRORS = (
    OSError,
    UnicodeDecodeError,
    MissingBaseError,
    MalformedRecordError,
    CheckpointChainError,
)


class Tracker:
    """Records checkpoints and edits for files under a set of roots."""

    def __init__(
        self,
        roots: Sequence[Path],
        config: VacuumConfig | None = None,
        gate: SerializationGate | None = None,
        identity_resolver: IdentityResolver | None = None,
    ) -> None:
        self.roots = [Path(r).resolve() for r in roots]
        self.config = config or VacuumConfig()
        self.gate = gate or SerializationGate()
        self.classifier = FileClassifier.from_config(self.config)
        if identity_resolver is None:
            identity_resolver = partial(resolve_identity, use_git=self.config.namespace_by_git)
        self._identity_resolver = identity_resolver

    # ------------------------------------------------------------------
    # Path resolution
    # ------------------------------------------------------------------

    def tracking_root(self, file: Path) -> Path | None:
        """Innermost configured root containing ``file``."""
        return find_tracking_root(tracked_path(file), self.roots)

    def is_tracked(self, file: Path, root: Path) -> bool:
        """Whether the classifier keeps ``file``, including every directory above it."""
        if not self.classifier.is_tracked_file(file):
            return False
        rel_dirs = file.relative_to(root).parents
        return all(
            self.classifier.is_tracked_directory(root / d) for d in rel_dirs if d != Path(".")
        )

    def layout(self, root: Path) -> LogLayout:
        return LogLayout(
            root=root,
            log_dir_name=self.config.log_dir_name,
            identity=self._identity_resolver(root),
        )

    def store(self, root: Path) -> CheckpointStore:
        return CheckpointStore(self.layout(root), max_chain_depth=self.config.max_chain_depth)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def refresh_all(self, root: Path) -> Result[RefreshReport, VacuumError]:
        """Checkpoint every tracked file under ``root`` that changed.

        Returns:
            Ok(RefreshReport) even if some files failed (see
            ``report.failed``); Err(SCAN_FAILED) if the root itself could not
            be scanned.
        """
        root = Path(root).resolve()
        if not self.config.enabled:
            return Ok(RefreshReport(root=root))
        return await self.gate.run(self._refresh_all_sync, root)

    async def log_edit(self, event: ChangeEvent) -> Result[Edit | None, VacuumError]:
        """Append an editor change event to its file's edit log."""
        if not self.config.enabled:
            return Ok(None)

        file = tracked_path(event.file)
        root = self.tracking_root(file)
        if root is not None and not self.is_tracked(file, root):
            root = None
        if root is None:
            logger.debug(f"Ignoring edit to untracked file: {file}")
            return Err(
                VacuumError(
                    code="NOT_TRACKED",
                    message=f"{file} is not a tracked file",
                    context={"file": str(file)},
                )
            )
        return await self.gate.run(self._log_edit_sync, root, file, event)

    # ------------------------------------------------------------------
    # Gated bodies (run in a worker thread, one at a time)
    # ------------------------------------------------------------------

    def _refresh_all_sync(self, root: Path) -> Result[RefreshReport, VacuumError]:
        try:
            files = scan(root, self.classifier)
        except OSError as e:
            logger.error(f"Cannot scan {root}: {e}")
            return Err(
                VacuumError(
                    code="SCAN_FAILED",
                    message=f"Cannot scan {root}: {e}",
                    context={"root": str(root)},
                )
            )

        store = self.store(root)
        report = RefreshReport(root=root)
        for file in files:
            try:
                report.record(file, store.refresh(file))
            except _EXPECTED_ERRORS as e:
                logger.warning(f"Checkpoint failed for {file}: {e}")
                report.failed[file] = error_from_exception(e, file)

        logger.info(
            f"Refreshed {root}: {len(report.created)} new, {len(report.referenced)} same, "
            f"{len(report.unchanged)} unchanged, {len(report.failed)} failed"
        )
        return Ok(report)

    def _log_edit_sync(
        self, root: Path, file: Path, event: ChangeEvent
    ) -> Result[Edit, VacuumError]:
        log = EditLog(self.store(root))
        try:
            return Ok(log.append(file, event.changes, event.time))
        except _EXPECTED_ERRORS as e:
            logger.error(f"Dropping edit for {file} at {event.time}: {e}")
            return Err(error_from_exception(e, file))
