"""Backup store — timestamped snapshot directories with sidecar JSON metadata."""

from __future__ import annotations

import json
import re
import shutil
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from loguru import logger

from atss.core.errors import BackupError, SaveFormatError, SnapshotNotFoundError
from atss.core.save_inspector import hash_save, read_save
from atss.models.backup import Backup, BackupMetadata, ReadResult, normalize_timestamp, now_timestamp
from atss.models.save_snapshot import SaveSnapshot
from atss.utils import copy_file

BACKUP_DIR_PREFIX = "Bak."
BACKUP_DIR_TIME_FORMAT = "Bak.%Y-%m-%d_%H.%M.%S"
OVERWRITTEN_BACKUP_DIRNAME = "Bak.overwritten"
METADATA_FILENAME = "atss.json"

# Bak.2024-01-02_03.04.05, optionally suffixed -N for same-second backups
_BACKUP_DIRNAME_RE = re.compile(
    r"^Bak\.(?P<stamp>\d{4}-\d{2}-\d{2}_\d{2}\.\d{2}\.\d{2})(?:-(?P<seq>\d+))?$"
)


def parse_backup_dirname(dirname: str) -> datetime | None:
    """Creation time encoded in a backup directory name, if any."""
    m = _BACKUP_DIRNAME_RE.match(dirname)
    if not m:
        return None
    try:
        parsed = datetime.strptime(BACKUP_DIR_PREFIX + m.group("stamp"), BACKUP_DIR_TIME_FORMAT)
    except ValueError:
        return None
    return normalize_timestamp(parsed)


def _warn_missing_expected(snapshot: SaveSnapshot) -> None:
    for name in snapshot.missing_expected():
        logger.warning(f"Expected save file '{name}' not found in '{snapshot.directory}'")


class BackupManager:
    """
    Creates, enumerates, reads and deletes backups of one save directory.

    Directory structure:
      {backups_dir}/
        ├── Bak.2024-01-02_03.04.05/
        │     ├── *.save
        │     └── atss.json
        └── Bak.overwritten/     (safety copy taken by the last restore)
    """

    def __init__(self, saves_dir: Path, backups_dir: Path) -> None:
        self._saves_dir = Path(saves_dir)
        self._backups_dir = Path(backups_dir)

    @property
    def saves_dir(self) -> Path:
        return self._saves_dir

    @property
    def backups_dir(self) -> Path:
        return self._backups_dir

    def _ensure_backups_dir(self) -> Path:
        try:
            self._backups_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackupError(f"failed to create backups directory '{self._backups_dir}': {e}") from e
        return self._backups_dir

    # ── Create ──

    def create_backup(self, metadata: BackupMetadata | None = None) -> Backup:
        """Back up the current save directory.

        Missing metadata fields (creation time, season, hash) are filled in
        from the live save; failures to do so are logged and tolerated.
        """
        metadata = replace(metadata) if metadata else BackupMetadata()

        snapshot = SaveSnapshot.locate(self._saves_dir)
        if snapshot.is_empty:
            raise SnapshotNotFoundError(f"failed to find save files in '{self._saves_dir}'")
        _warn_missing_expected(snapshot)

        if metadata.created_at is None:
            metadata.created_at = now_timestamp()
        else:
            metadata.created_at = normalize_timestamp(metadata.created_at)

        if metadata.season is None:
            try:
                metadata.season = read_save(self._saves_dir).season_id()
            except SaveFormatError as e:
                logger.warning(f"Failed to determine season of current save: {e}")

        if not metadata.hash:
            try:
                metadata.hash = hash_save(self._saves_dir)
            except OSError as e:
                logger.warning(f"Failed to hash save: {e}")

        backup_dir = self._prepare_backup_dir(metadata)
        backup = Backup(metadata=metadata, directory=backup_dir)

        for source in snapshot.files:
            try:
                copy_file(source, backup_dir / source.name)
            except OSError as e:
                # A partial copy must never be listed as a backup.
                shutil.rmtree(backup_dir, ignore_errors=True)
                raise BackupError(
                    f"failed to copy save file '{source}' to backup directory '{backup_dir}': {e}"
                ) from e

        try:
            self.write_metadata(backup)
        except OSError as e:
            logger.warning(f"Failed to write backup metadata: {e}")

        logger.info(f"Created backup: {backup_dir.name} ({len(snapshot.files)} files)")
        return backup

    def _prepare_backup_dir(self, metadata: BackupMetadata) -> Path:
        """Create and return the (empty) directory a new backup is copied into."""
        root = self._ensure_backups_dir()

        if metadata.is_overwritten:
            target = root / OVERWRITTEN_BACKUP_DIRNAME
            if target.exists():
                try:
                    shutil.rmtree(target)
                except OSError as e:
                    raise BackupError(
                        f"failed to remove existing overwritten backup directory '{target}': {e}"
                    ) from e
            candidates = [target]
        else:
            base = metadata.created_at.strftime(BACKUP_DIR_TIME_FORMAT)
            # Same-second backups get a -2, -3, ... suffix instead of colliding.
            candidates = [root / base] + [root / f"{base}-{n}" for n in range(2, 100)]

        for target in candidates:
            try:
                target.mkdir()
                return target
            except FileExistsError:
                logger.debug(f"Backup directory already exists: {target.name}")
                continue
            except OSError as e:
                raise BackupError(f"failed to create backup directory '{target}': {e}") from e

        raise BackupError(f"failed to create backup directory, all names taken: '{candidates[0]}'")

    # ── Metadata ──

    def write_metadata(self, backup: Backup) -> None:
        """Write the sidecar metadata file of *backup*. Raises OSError on failure."""
        meta_path = backup.directory / METADATA_FILENAME
        with open(meta_path, "w", encoding="utf-8") as f:
            json.dump(backup.metadata.to_dict(), f, ensure_ascii=False, indent=2)

    # ── Read / list ──

    def read_backup(self, directory: Path) -> ReadResult:
        """Reconstruct the backup stored in *directory*.

        Metadata is taken from the sidecar file, falling back to the directory
        name and then to the directory's modification time. Hash and season
        are recomputed from the save files when absent. Nothing is written;
        see ReadResult.should_persist.
        """
        directory = Path(directory)
        try:
            stat = directory.stat()
        except OSError as e:
            raise SnapshotNotFoundError(f"failed to stat backup directory '{directory}': {e}") from e

        if SaveSnapshot.locate(directory).is_empty:
            raise SnapshotNotFoundError(f"failed to find .save files in backup directory '{directory}'")

        metadata = BackupMetadata()
        metadata_loaded = True
        needs_update = False

        meta_path = directory / METADATA_FILENAME
        try:
            with open(meta_path, encoding="utf-8") as f:
                metadata = BackupMetadata.from_dict(json.load(f))
        except OSError as e:
            metadata_loaded = False
            logger.warning(f"Failed to read backup metadata from '{meta_path}': {e}")
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError, TypeError) as e:
            metadata_loaded = False
            logger.warning(f"Failed to decode backup metadata from '{meta_path}': {e}")

        if metadata.created_at is None:
            if directory.name == OVERWRITTEN_BACKUP_DIRNAME:
                metadata.is_overwritten = True
            else:
                metadata.created_at = parse_backup_dirname(directory.name)
                if metadata.created_at is None:
                    logger.warning(f"Unrecognized backup directory name '{directory.name}'")

        if metadata.created_at is None:
            metadata.created_at = normalize_timestamp(datetime.fromtimestamp(stat.st_mtime))

        if not metadata.hash:
            try:
                metadata.hash = hash_save(directory)
                needs_update = True
            except OSError as e:
                logger.warning(f"Failed to hash backup '{directory}': {e}")

        if metadata.season is None:
            try:
                metadata.season = read_save(directory).season_id()
                needs_update = True
            except SaveFormatError as e:
                logger.warning(f"Failed to determine season of backup '{directory}': {e}")

        return ReadResult(
            backup=Backup(metadata=metadata, directory=directory),
            needs_update=needs_update,
            metadata_loaded=metadata_loaded,
        )

    def list_backups(self) -> list[Backup]:
        """List all readable backups, newest first.

        Back-filled metadata is written back for backups whose sidecar loaded.
        """
        root = self._ensure_backups_dir()
        backups: list[Backup] = []

        for directory in root.glob(f"{BACKUP_DIR_PREFIX}*"):
            if not directory.is_dir():
                continue
            try:
                result = self.read_backup(directory)
            except SnapshotNotFoundError as e:
                logger.warning(f"Skipping backup: {e}")
                continue

            if result.should_persist:
                try:
                    self.write_metadata(result.backup)
                    logger.debug(f"Updated metadata of backup '{directory.name}'")
                except OSError as e:
                    logger.warning(f"Failed to write back metadata of backup '{directory}': {e}")

            backups.append(result.backup)

        # Newest first; identical timestamps ordered by directory path, descending
        backups.sort(key=lambda b: (b.metadata.created_at, str(b.directory)), reverse=True)
        return backups

    def latest_backup(self) -> Backup | None:
        backups = self.list_backups()
        return backups[0] if backups else None

    def find_backup(self, name: str) -> Backup | None:
        """Look up a backup by directory name."""
        for backup in self.list_backups():
            if backup.name == name:
                return backup
        return None

    # ── Delete ──

    def delete_backup(self, backup: Backup) -> None:
        """Remove the backup's directory and everything in it."""
        try:
            shutil.rmtree(backup.directory)
        except OSError as e:
            logger.error(f"Failed to delete backup '{backup.directory}': {e}")
            raise BackupError(f"failed to delete backup '{backup.directory}': {e}") from e
        logger.info(f"Deleted backup '{backup.directory}'")
