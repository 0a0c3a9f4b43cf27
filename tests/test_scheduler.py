"""Tests for vacuum.scheduler module."""

import asyncio
import logging
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from vacuum.errors import Err, Ok, VacuumError
from vacuum.scheduler import RefreshScheduler
from vacuum.tracker import ChangeEvent, RefreshReport, Tracker

pytestmark = pytest.mark.asyncio


@pytest.fixture
def tracker(project: Path) -> Tracker:
    return Tracker([project], identity_resolver=lambda root: "no-git")


@pytest.fixture
def counted(tracker: Tracker, project: Path) -> AsyncMock:
    """Replace refresh_all with a mock that records calls."""
    mock = AsyncMock(return_value=Ok(RefreshReport(root=project)))
    tracker.refresh_all = mock
    return mock


class TestRefreshScheduler:
    """Tests for RefreshScheduler."""

    async def test_default_delay_from_config(self, tracker):
        assert RefreshScheduler(tracker).delay == 3.0

    async def test_pokes_coalesce(self, tracker, counted, project):
        """Several pokes inside the quiet period produce one refresh."""
        scheduler = RefreshScheduler(tracker, delay=0.05)

        for _ in range(5):
            scheduler.poke(project)
            await asyncio.sleep(0.01)
        await scheduler.flush()

        counted.assert_awaited_once_with(project)
        assert scheduler.pending_roots == []

    async def test_separate_quiet_periods_refresh_twice(self, tracker, counted, project):
        scheduler = RefreshScheduler(tracker, delay=0.01)

        scheduler.poke(project)
        await scheduler.flush()
        scheduler.poke(project)
        await scheduler.flush()

        assert counted.await_count == 2

    async def test_running_refresh_not_cancelled_by_poke(self, tracker, project):
        """A poke during a refresh arms a new timer instead of cancelling it."""
        started = asyncio.Event()
        release = asyncio.Event()
        finished: list[int] = []

        async def slow_refresh(root):
            started.set()
            await release.wait()
            finished.append(1)
            return Ok(RefreshReport(root=root))

        tracker.refresh_all = slow_refresh
        scheduler = RefreshScheduler(tracker, delay=0.01)

        scheduler.poke(project)
        await started.wait()
        scheduler.poke(project)
        release.set()
        await scheduler.flush()

        assert finished == [1, 1]

    async def test_on_change_logs_edit_and_arms_timer(self, tracker, project, write_file):
        file = write_file(project / "A.lean", "theorem", mtime=1000)
        scheduler = RefreshScheduler(tracker, delay=10)

        result = await scheduler.on_change(ChangeEvent(file, (), 2000))

        assert result.is_ok()
        assert scheduler.pending_roots == [project]
        await scheduler.close()
        assert scheduler.pending_roots == []

    async def test_on_save_outside_roots_ignored(self, tracker, tmp_path):
        scheduler = RefreshScheduler(tracker, delay=10)

        scheduler.on_save(tmp_path / "elsewhere" / "A.lean")

        assert scheduler.pending_roots == []

    async def test_close_cancels_pending(self, tracker, counted, project):
        scheduler = RefreshScheduler(tracker, delay=0.05)
        scheduler.on_save(project / "A.lean")

        await scheduler.close()
        await asyncio.sleep(0.1)

        counted.assert_not_awaited()

    async def test_failed_refresh_logged(self, tracker, project, caplog):
        tracker.refresh_all = AsyncMock(
            return_value=Err(VacuumError(code="SCAN_FAILED", message="gone"))
        )
        scheduler = RefreshScheduler(tracker, delay=0.01)

        with caplog.at_level(logging.WARNING, logger="vacuum.scheduler"):
            scheduler.poke(project)
            await scheduler.flush()

        assert "gone" in caplog.text
