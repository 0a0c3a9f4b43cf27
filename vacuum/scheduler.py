"""Debounced refresh scheduling for editor glue.

Typing fires a change event per keystroke; snapshotting the whole root each
time would be wasteful. ``RefreshScheduler`` logs every edit immediately but
coalesces bulk refreshes: each change or save re-arms a per-root timer, and
``refresh_all`` runs once the root has been quiet for the configured delay.

This timing state lives here, outside the tracker, so the tracker itself
holds no timers.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from vacuum.errors import Result, VacuumError
from vacuum.records import Edit
from vacuum.tracker import ChangeEvent, Tracker

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Per-root debounce timers in front of a ``Tracker``."""

    def __init__(self, tracker: Tracker, delay: float | None = None) -> None:
        self.tracker = tracker
        self.delay = tracker.config.checkpoint_delay_seconds if delay is None else delay
        self._timers: dict[Path, asyncio.Task] = {}
        self._running: set[asyncio.Task] = set()

    def poke(self, root: Path) -> None:
        """(Re)start the quiet-period timer for ``root``."""
        existing = self._timers.pop(root, None)
        if existing is not None:
            existing.cancel()
        self._timers[root] = asyncio.get_running_loop().create_task(self._fire_later(root))

    async def _fire_later(self, root: Path) -> None:
        await asyncio.sleep(self.delay)
        # Past this point a new poke arms a fresh timer instead of cancelling us
        task = asyncio.current_task()
        if self._timers.get(root) is task:
            del self._timers[root]
        self._running.add(task)
        try:
            result = await self.tracker.refresh_all(root)
            if result.is_err():
                logger.warning(f"Scheduled refresh of {root} failed: {result.unwrap_err().message}")
        finally:
            self._running.discard(task)

    async def on_change(self, event: ChangeEvent) -> Result[Edit | None, VacuumError]:
        """Handle an editor change: re-arm the root's timer, then log the edit."""
        root = self.tracker.tracking_root(event.file)
        if root is not None:
            self.poke(root)
        return await self.tracker.log_edit(event)

    def on_save(self, file: Path) -> None:
        """Handle a save notification."""
        root = self.tracker.tracking_root(file)
        if root is not None:
            self.poke(root)

    @property
    def pending_roots(self) -> list[Path]:
        return sorted(self._timers)

    async def flush(self) -> None:
        """Wait for every armed or running refresh to finish."""
        while self._timers or self._running:
            await asyncio.gather(*self._timers.values(), *self._running, return_exceptions=True)

    async def close(self) -> None:
        """Cancel timers that have not fired yet."""
        timers = list(self._timers.values())
        self._timers.clear()
        for task in timers:
            task.cancel()
        await asyncio.gather(*timers, return_exceptions=True)
