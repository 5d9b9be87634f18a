"""Save and backup directory discovery."""

from __future__ import annotations

import os
from pathlib import Path

from atss.core.errors import BackupError, SnapshotNotFoundError

PUBLISHER_DIRNAME = "Eremite Games"
GAME_DIRNAME = "Against the Storm"
BACKUPS_DIRNAME = "Against the Storm - AtSS Backups"


def _local_low_path() -> Path:
    """%USERPROFILE%\\AppData\\LocalLow, derived from LOCALAPPDATA when set."""
    local = os.environ.get("LOCALAPPDATA")
    if local:
        return Path(local).parent / "LocalLow"
    return Path.home() / "AppData" / "LocalLow"


def default_saves_directory() -> Path:
    """The game's save directory on this machine."""
    return _local_low_path() / PUBLISHER_DIRNAME / GAME_DIRNAME


def backups_directory_for(saves_dir: Path) -> Path:
    """Backups live beside the save directory so they aren't synced to Steam Cloud."""
    return Path(saves_dir).parent / BACKUPS_DIRNAME


def ensure_directories(saves_dir: Path, backups_dir: Path) -> None:
    """Check that *saves_dir* exists and create *backups_dir* if needed."""
    if not Path(saves_dir).is_dir():
        raise SnapshotNotFoundError(f"save directory '{saves_dir}' does not exist")
    try:
        Path(backups_dir).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise BackupError(f"failed to create backups directory '{backups_dir}': {e}") from e
