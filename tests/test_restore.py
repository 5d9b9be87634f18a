"""Tests for the RestoreManager safety gate."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import psutil
import pytest

from atss.core.backup import OVERWRITTEN_BACKUP_DIRNAME, BackupManager
from atss.core.errors import BackupError, GameRunningError, ProcessCheckError, SnapshotNotFoundError
from atss.core.restore import RestoreManager
from atss.models.backup import Backup, BackupMetadata


@pytest.fixture
def saves_dir(tmp_path: Path) -> Path:
    d = tmp_path / "Against the Storm"
    d.mkdir()
    (d / "MetaSave.save").write_text(json.dumps({"gameplay": {"hasActiveGame": True}}))
    (d / "Save.save").write_text(json.dumps({"gameplay": {"year": 1, "season": 0}}))
    (d / "Profiles.save").write_text("{}")
    (d / "WorldSave.save").write_text("world-A")
    return d


@pytest.fixture
def manager(tmp_path: Path, saves_dir: Path) -> BackupManager:
    return BackupManager(saves_dir, tmp_path / "backups")


def _overwritten(manager: BackupManager) -> list[Backup]:
    return [b for b in manager.list_backups() if b.metadata.is_overwritten]


class TestRestoreGate:
    def test_refuses_when_world_changes_and_game_running(self, manager: BackupManager, saves_dir: Path) -> None:
        backup = manager.create_backup()
        (saves_dir / "WorldSave.save").write_text("world-B")
        is_running = MagicMock(return_value=True)
        restorer = RestoreManager(manager, game_executable="Game.exe", is_running=is_running)

        with pytest.raises(GameRunningError):
            restorer.restore_backup(backup)

        is_running.assert_called_once_with("Game.exe")
        assert (saves_dir / "WorldSave.save").read_text() == "world-B"
        assert _overwritten(manager) == []

    def test_proceeds_when_game_not_running(self, manager: BackupManager, saves_dir: Path) -> None:
        backup = manager.create_backup()
        (saves_dir / "WorldSave.save").write_text("world-B")
        restorer = RestoreManager(manager, is_running=lambda name: False)

        result = restorer.restore_backup(backup)

        assert result.restart_required
        assert (saves_dir / "WorldSave.save").read_text() == "world-A"
        safety = _overwritten(manager)
        assert len(safety) == 1
        assert result.safety_backup.directory == safety[0].directory
        assert (safety[0].directory / "WorldSave.save").read_text() == "world-B"
        assert len(result.restored_files) == 4

    def test_same_world_skips_process_check(self, manager: BackupManager, saves_dir: Path) -> None:
        backup = manager.create_backup()
        (saves_dir / "Save.save").write_text(json.dumps({"gameplay": {"year": 1, "season": 2}}))
        is_running = MagicMock(return_value=True)
        restorer = RestoreManager(manager, is_running=is_running)

        result = restorer.restore_backup(backup)

        assert not result.restart_required
        is_running.assert_not_called()
        assert json.loads((saves_dir / "Save.save").read_text())["gameplay"]["season"] == 0

    def test_unreadable_world_save_requires_restart(self, manager: BackupManager, saves_dir: Path) -> None:
        backup = manager.create_backup()
        (backup.directory / "WorldSave.save").unlink()
        restorer = RestoreManager(manager, is_running=lambda name: True)

        with pytest.raises(GameRunningError):
            restorer.restore_backup(backup)

    @pytest.mark.parametrize(
        "error",
        [ProcessCheckError("denied"), PermissionError("denied"), psutil.AccessDenied()],
    )
    def test_failed_process_check_assumes_not_running(
        self, manager: BackupManager, saves_dir: Path, error: Exception
    ) -> None:
        backup = manager.create_backup()
        (saves_dir / "WorldSave.save").write_text("world-B")
        restorer = RestoreManager(manager, is_running=MagicMock(side_effect=error))

        restorer.restore_backup(backup)
        assert (saves_dir / "WorldSave.save").read_text() == "world-A"

    def test_backup_without_save_files(self, manager: BackupManager, tmp_path: Path) -> None:
        empty = tmp_path / "backups" / "Bak.2024-01-01_00.00.00"
        empty.mkdir(parents=True)
        restorer = RestoreManager(manager, is_running=lambda name: False)
        with pytest.raises(SnapshotNotFoundError):
            restorer.restore_backup(Backup(metadata=BackupMetadata(), directory=empty))

    def test_aborts_when_safety_backup_fails(self, manager: BackupManager, saves_dir: Path) -> None:
        backup = manager.create_backup()
        for f in saves_dir.glob("*.save"):
            f.unlink()
        restorer = RestoreManager(manager, is_running=lambda name: False)

        with pytest.raises(BackupError):
            restorer.restore_backup(backup)
        assert list(saves_dir.glob("*.save")) == []

    def test_restore_overwritten_backup(self, manager: BackupManager, saves_dir: Path) -> None:
        restorer = RestoreManager(manager, is_running=lambda name: False)
        original = manager.create_backup()
        (saves_dir / "WorldSave.save").write_text("world-B")

        restorer.restore_backup(original)
        assert (saves_dir / "WorldSave.save").read_text() == "world-A"

        # Undo the restore through the overwritten backup
        overwritten = manager.find_backup(OVERWRITTEN_BACKUP_DIRNAME)
        result = restorer.restore_backup(overwritten)

        assert (saves_dir / "WorldSave.save").read_text() == "world-B"
        assert (result.safety_backup.directory / "WorldSave.save").read_text() == "world-A"
