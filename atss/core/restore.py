"""Restore manager — restore saves from backups behind safety checks."""

from __future__ import annotations

import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import psutil
from loguru import logger

from atss.core.backup import BackupManager
from atss.core.errors import BackupError, GameRunningError, ProcessCheckError, SnapshotNotFoundError
from atss.core.process import process_is_running
from atss.models.backup import Backup, BackupMetadata
from atss.models.save_snapshot import WORLD_SAVE_FILE, SaveSnapshot
from atss.utils import copy_file

DEFAULT_GAME_EXECUTABLE = "Against the Storm.exe"


@dataclass
class RestoreResult:
    """Result of a restore operation."""

    safety_backup: Backup
    restart_required: bool = False
    restored_files: list[str] = field(default_factory=list)


def _read_bytes(path: Path) -> bytes | None:
    try:
        return path.read_bytes()
    except OSError as e:
        logger.warning(f"Failed to read {path}: {e}")
        return None


class RestoreManager:
    """
    Restore a backup over the live save directory.

    The live state is always snapshotted into the overwritten backup first, and
    the restore is refused while the game runs if the world save would change.
    """

    def __init__(
        self,
        backup_manager: BackupManager,
        game_executable: str = DEFAULT_GAME_EXECUTABLE,
        is_running: Callable[[str], bool] = process_is_running,
    ) -> None:
        self._backup_manager = backup_manager
        self._game_executable = game_executable
        self._is_running = is_running

    @property
    def saves_dir(self) -> Path:
        return self._backup_manager.saves_dir

    def restart_required(self, backup: Backup) -> bool:
        """Whether restoring *backup* changes the world save (unreadable counts as changed)."""
        current = _read_bytes(self.saves_dir / WORLD_SAVE_FILE)
        restored = _read_bytes(backup.directory / WORLD_SAVE_FILE)
        return current is None or restored is None or current != restored

    def _game_is_running(self) -> bool:
        try:
            return self._is_running(self._game_executable)
        except (ProcessCheckError, OSError, psutil.Error) as e:
            logger.warning(f"Failed to check if game is running, assuming it's not: {e}")
            return False

    def restore_backup(self, backup: Backup) -> RestoreResult:
        """Copy the save files of *backup* over the live save directory.

        Raises SnapshotNotFoundError, GameRunningError, or BackupError; no live
        file is touched unless the safety backup was created.
        """
        logger.info(f"Restoring backup '{backup.directory}'")

        snapshot = SaveSnapshot.locate(backup.directory)
        if snapshot.is_empty:
            raise SnapshotNotFoundError(f"failed to find save files in backup directory '{backup.directory}'")
        for name in snapshot.missing_expected():
            logger.warning(f"Expected save file '{name}' not found in backup directory '{backup.directory}'")

        restart_required = self.restart_required(backup)
        if restart_required and self._game_is_running():
            raise GameRunningError(self._game_executable)

        # Stage the backup first: the safety backup replaces Bak.overwritten,
        # which may be the very backup being restored.
        with tempfile.TemporaryDirectory(prefix="atss_restore_") as tmp_dir:
            staged: list[Path] = []
            for source in snapshot.files:
                target = Path(tmp_dir) / source.name
                try:
                    copy_file(source, target)
                except OSError as e:
                    raise BackupError(f"failed to read save file '{source}' from backup: {e}") from e
                staged.append(target)

            logger.info("Creating auto backup of current state before overwriting")
            try:
                safety_backup = self._backup_manager.create_backup(BackupMetadata(is_overwritten=True))
            except OSError as e:
                raise BackupError(
                    f"failed to create auto backup of current state, refusing to overwrite: {e}"
                ) from e
            logger.info(f"Created auto backup '{safety_backup.directory}' of current state")

            result = RestoreResult(safety_backup=safety_backup, restart_required=restart_required)
            for source in staged:
                dest = self.saves_dir / source.name
                try:
                    copy_file(source, dest)
                except OSError as e:
                    raise BackupError(
                        f"failed to copy save file '{source.name}' to save directory '{self.saves_dir}': {e}"
                    ) from e
                result.restored_files.append(str(dest))

        logger.info(f"Restored {len(result.restored_files)} files from backup '{backup.directory}'")
        return result
