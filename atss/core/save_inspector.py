"""Save inspection — content hashing, progress classification, save age."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from atss.core.errors import SaveFormatError, SnapshotNotFoundError
from atss.models.save_snapshot import META_SAVE_FILE, SAVE_FILE, SaveSnapshot
from atss.models.season import SeasonId

_FILE_SEPARATOR = b"\x00"


@dataclass
class CompositeSave:
    """The fields of MetaSave.save and Save.save needed to classify progress."""

    has_active_game: bool
    year: int | None = None  # 1-based
    season: int | None = None  # 0 drizzle, 1 clearance, 2 storm

    def season_id(self) -> SeasonId:
        if not self.has_active_game:
            return SeasonId.WORLD_MAP
        if self.year is None or self.season is None:
            return SeasonId.INVALID
        return SeasonId.from_year_season(self.year, self.season)


def _load_json(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8-sig") as f:
            return json.load(f)
    except OSError as e:
        raise SaveFormatError(f"failed to read '{path}': {e}") from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SaveFormatError(f"failed to parse '{path}': {e}") from e


def _require(data: Any, path: Path, section: str, key: str, kind: type) -> Any:
    """Fetch ``data[section][key]`` and check its type, or raise SaveFormatError."""
    block = data.get(section) if isinstance(data, dict) else None
    if not isinstance(block, dict):
        raise SaveFormatError(f"failed to validate parsed '{path}': '{section}' is required")
    if block.get(key) is None:
        raise SaveFormatError(f"failed to validate parsed '{path}': '{section}.{key}' is required")
    value = block[key]
    # bool is a subclass of int; a flag is never a valid year or season
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise SaveFormatError(
            f"failed to validate parsed '{path}': '{section}.{key}' must be {kind.__name__}, got {value!r}"
        )
    return value


def read_save(directory: Path) -> CompositeSave:
    """Parse the progress fields of the save in *directory*.

    Save.save is only consulted while a settlement is active.
    Raises SaveFormatError on any read, parse, or validation failure.
    """
    directory = Path(directory)
    meta_path = directory / META_SAVE_FILE
    has_active_game = _require(_load_json(meta_path), meta_path, "gameplay", "hasActiveGame", bool)
    if not has_active_game:
        return CompositeSave(has_active_game=False)

    save_path = directory / SAVE_FILE
    data = _load_json(save_path)
    year = _require(data, save_path, "gameplay", "year", int)
    season = _require(data, save_path, "gameplay", "season", int)
    return CompositeSave(has_active_game=True, year=year, season=season)


def classify(directory: Path) -> SeasonId:
    """Season identifier of the save in *directory*, INVALID if it can't be determined."""
    try:
        return read_save(directory).season_id()
    except SaveFormatError as e:
        logger.debug(f"Could not classify save in {directory}: {e}")
        return SeasonId.INVALID


def hash_save(directory: Path) -> str:
    """BLAKE2b-512 digest over the save files of *directory*.

    Each file's bytes are followed by a NUL separator so that different file
    boundaries can't produce the same digest.
    """
    snapshot = SaveSnapshot.locate(directory)
    if snapshot.is_empty:
        raise SnapshotNotFoundError(f"failed to find save files in '{directory}'")

    h = hashlib.blake2b(digest_size=64)
    for path in snapshot.files:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(65536), b""):
                h.update(chunk)
        h.update(_FILE_SEPARATOR)
    return h.hexdigest()


def save_age(directory: Path) -> tuple[datetime, float]:
    """Return ``(last_modified, age_seconds)`` of the newest save file in *directory*."""
    snapshot = SaveSnapshot.locate(directory)
    if snapshot.is_empty:
        raise SnapshotNotFoundError(f"failed to find save files in '{directory}'")

    latest = max(p.stat().st_mtime for p in snapshot.files)
    last_modified = datetime.fromtimestamp(latest).astimezone()
    age = (datetime.now().astimezone() - last_modified).total_seconds()
    if age < 0:
        raise ValueError(f"last modified time of save files is in the future, probably wrong: {last_modified}")
    return last_modified, age
