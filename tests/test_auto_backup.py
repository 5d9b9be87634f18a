"""Tests for the AutoBackupWatcher."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from watchdog.events import DirModifiedEvent, FileModifiedEvent

from atss.core.auto_backup import AutoBackupWatcher, SaveWriteHandler
from atss.core.backup import BackupManager

if TYPE_CHECKING:
    from tests.conftest import FakeClock


class FakeObserver:
    def __init__(self) -> None:
        self.scheduled: list[tuple[object, str, bool]] = []
        self.started = False
        self.stopped = False

    def schedule(self, handler: object, path: str, recursive: bool = False) -> None:
        self.scheduled.append((handler, path, recursive))

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: float | None = None) -> None:
        pass


@pytest.fixture
def saves_dir(tmp_path: Path) -> Path:
    d = tmp_path / "Against the Storm"
    d.mkdir()
    (d / "MetaSave.save").write_text(json.dumps({"gameplay": {"hasActiveGame": False}}))
    (d / "WorldSave.save").write_text("world")
    return d


@pytest.fixture
def manager(tmp_path: Path, saves_dir: Path) -> BackupManager:
    return BackupManager(saves_dir, tmp_path / "backups")


@pytest.fixture
def observer() -> FakeObserver:
    return FakeObserver()


@pytest.fixture
def watcher(manager: BackupManager, clock: FakeClock, observer: FakeObserver):
    w = AutoBackupWatcher(manager, wait=5, max_wait=30, observer_factory=lambda: observer, timer_factory=clock.timer)
    yield w
    w.stop()


class TestAutoBackupWatcher:
    def test_start_schedules_watch_and_initial_backup(
        self, watcher: AutoBackupWatcher, manager: BackupManager, observer: FakeObserver, clock: FakeClock
    ) -> None:
        assert watcher.start()
        assert observer.started
        handler, path, recursive = observer.scheduled[0]
        assert isinstance(handler, SaveWriteHandler)
        assert Path(path) == manager.saves_dir
        assert recursive is False

        assert manager.list_backups() == []
        clock.advance(5)
        backups = manager.list_backups()
        assert len(backups) == 1
        assert backups[0].metadata.is_auto_save

        lines: list[str] = []
        assert watcher.drain(lines.append) == 1
        assert lines[0].startswith("created backup: ")
        assert "auto backup" in lines[0]
        assert "world map" in lines[0]

    def test_write_events_are_debounced(
        self, watcher: AutoBackupWatcher, manager: BackupManager, observer: FakeObserver, clock: FakeClock
    ) -> None:
        watcher.start()
        clock.advance(5)
        handler = observer.scheduled[0][0]
        file_path = str(manager.saves_dir / "WorldSave.save")

        for _ in range(3):
            handler.dispatch(FileModifiedEvent(file_path))
            clock.advance(1)
        handler.dispatch(DirModifiedEvent(str(manager.saves_dir)))
        clock.advance(10)

        lines: list[str] = []
        assert watcher.drain(lines.append) == 2

    def test_directory_events_ignored(self, watcher: AutoBackupWatcher, manager: BackupManager, observer: FakeObserver) -> None:
        watcher.start()
        watcher.debouncer.cancel()
        handler = observer.scheduled[0][0]
        handler.dispatch(DirModifiedEvent(str(manager.saves_dir)))
        assert not watcher.debouncer.pending

    def test_failure_is_reported(
        self, watcher: AutoBackupWatcher, saves_dir: Path, clock: FakeClock
    ) -> None:
        for f in saves_dir.glob("*.save"):
            f.unlink()
        watcher.start()
        clock.advance(5)

        lines: list[str] = []
        watcher.drain(lines.append)
        assert len(lines) == 1
        assert "failed to create auto backup" in lines[0]

    def test_stop_cancels_pending_backup(
        self, watcher: AutoBackupWatcher, manager: BackupManager, observer: FakeObserver, clock: FakeClock
    ) -> None:
        watcher.start()
        watcher.stop()
        clock.advance(60)
        assert observer.stopped
        assert not watcher.is_running
        assert manager.list_backups() == []


class TestSingletonLease:
    def test_second_instance_refused(self, manager: BackupManager, tmp_path: Path) -> None:
        lock_path = tmp_path / "watch.lock"
        first = AutoBackupWatcher(manager, lock_path=lock_path, observer_factory=FakeObserver)
        second = AutoBackupWatcher(manager, lock_path=lock_path, observer_factory=FakeObserver)
        try:
            assert first.start()
            assert not second.start()

            lines: list[str] = []
            second.run(lines.append)
            assert lines == ["Another instance of auto backup is already running. Exiting."]
        finally:
            first.stop()

        assert second.acquire_lease()
        second.release_lease()

    def test_release_allows_restart(self, manager: BackupManager, tmp_path: Path) -> None:
        watcher = AutoBackupWatcher(manager, lock_path=tmp_path / "watch.lock", observer_factory=FakeObserver)
        assert watcher.start()
        watcher.stop()
        assert watcher.start()
        watcher.stop()
