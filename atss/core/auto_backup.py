"""Auto backup — watch the save directory and back up after each settled change."""

from __future__ import annotations

import queue
from datetime import datetime
from pathlib import Path
from typing import Callable

from filelock import FileLock, Timeout
from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from atss.core.backup import BackupManager
from atss.core.debounce import Debouncer, TimerFactory, thread_timer
from atss.models.backup import BackupMetadata

LOCK_FILENAME = ".autobackup.lock"
DEFAULT_DEBOUNCE_SECONDS = 5.0
DEFAULT_MAX_WAIT_SECONDS = 30.0

DisplaySink = Callable[[str], None]


class SaveWriteHandler(FileSystemEventHandler):
    """Signals the debouncer for every file write in the save directory."""

    def __init__(self, signal: Callable[[], None]) -> None:
        self._signal = signal

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        logger.debug(f"Save file modified: {Path(event.src_path).name}")
        self._signal()


class AutoBackupWatcher:
    """
    Long-lived auto backup loop for one save directory.

    Only one watcher may run per backups directory; this is enforced with a
    lock file held for the watcher's lifetime. Results are queued as display
    lines and handed to the sink by ``drain()``/``run()`` on the caller's
    thread, so backups never wait on the display.
    """

    def __init__(
        self,
        backup_manager: BackupManager,
        wait: float = DEFAULT_DEBOUNCE_SECONDS,
        max_wait: float | None = DEFAULT_MAX_WAIT_SECONDS,
        lock_path: Path | None = None,
        observer_factory: Callable[[], Observer] = Observer,
        timer_factory: TimerFactory = thread_timer,
    ) -> None:
        self._backup_manager = backup_manager
        self._lock = FileLock(str(lock_path or backup_manager.backups_dir / LOCK_FILENAME))
        self._observer_factory = observer_factory
        self._observer: Observer | None = None
        self._messages: queue.Queue[str] = queue.Queue()
        self._debouncer = Debouncer(self._perform_backup, wait, max_wait, timer_factory=timer_factory)
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    # ── Singleton lease ──

    def acquire_lease(self) -> bool:
        """Take the system-wide lease; False if another watcher holds it."""
        self._backup_manager.backups_dir.mkdir(parents=True, exist_ok=True)
        try:
            self._lock.acquire(timeout=0)
        except Timeout:
            return False
        except OSError as e:
            logger.warning(
                f"Failed to create lock {self._lock.lock_file}, "
                f"cannot determine if auto backup is already running: {e}"
            )
        return True

    def release_lease(self) -> None:
        if self._lock.is_locked:
            self._lock.release()

    # ── Backups ──

    def _perform_backup(self) -> None:
        try:
            backup = self._backup_manager.create_backup(BackupMetadata(is_auto_save=True))
        except OSError as e:
            now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            logger.error(f"Failed to create auto backup: {e}")
            self._messages.put(f"[{now}] failed to create auto backup: {e}")
        else:
            self._messages.put(f"created backup: {backup.label}")

    # ── Lifecycle ──

    def start(self) -> bool:
        """Start watching. Returns False if another instance is already running."""
        if self._running:
            logger.warning("Auto backup already running")
            return True
        if not self.acquire_lease():
            return False

        saves_dir = self._backup_manager.saves_dir
        observer = self._observer_factory()
        try:
            observer.schedule(SaveWriteHandler(self._debouncer), str(saves_dir), recursive=False)
            observer.start()
        except OSError:
            self.release_lease()
            raise
        self._observer = observer
        self._running = True

        # The save may have changed before the watch began.
        self._debouncer()
        logger.info(f"Auto backup started, watching {saves_dir}")
        return True

    def stop(self) -> None:
        if not self._running:
            return
        self._debouncer.cancel()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        self._running = False
        self.release_lease()
        logger.info("Auto backup stopped")

    def drain(self, sink: DisplaySink, timeout: float | None = None) -> int:
        """Deliver queued display lines to *sink*; wait up to *timeout* for the first."""
        delivered = 0
        try:
            message = self._messages.get(timeout=timeout) if timeout else self._messages.get_nowait()
        except queue.Empty:
            return 0
        while True:
            sink(message)
            delivered += 1
            try:
                message = self._messages.get_nowait()
            except queue.Empty:
                return delivered

    def run(self, sink: DisplaySink, on_busy: DisplaySink | None = None) -> None:
        """Run until interrupted, delivering results to *sink*."""
        if not self.start():
            (on_busy or sink)("Another instance of auto backup is already running. Exiting.")
            return
        try:
            while self._running:
                self.drain(sink, timeout=0.5)
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            self.stop()
            self.drain(sink)
