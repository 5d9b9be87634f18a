"""Backup models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from atss.models.season import SeasonId

LABEL_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def normalize_timestamp(value: datetime) -> datetime:
    """Return *value* as an aware datetime truncated to whole seconds.

    Naive values are interpreted as local time.
    """
    return value.astimezone().replace(microsecond=0)


def now_timestamp() -> datetime:
    return normalize_timestamp(datetime.now())


@dataclass
class BackupMetadata:
    """Sidecar metadata for a backup directory (written as JSON)."""

    created_at: datetime | None = None
    is_auto_save: bool = False
    is_overwritten: bool = False  # Safety copy taken right before a restore
    hash: str = ""
    note: str = ""
    season: SeasonId | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "isAutoSave": self.is_auto_save,
            "isOverwritten": self.is_overwritten,
            "hash": self.hash,
            "note": self.note,
            "season": int(self.season) if self.season is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackupMetadata:
        """Reconstruct metadata from a decoded sidecar.

        Raises ValueError/TypeError on malformed field values.
        """
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")

        created_at = None
        raw_created = data.get("createdAt")
        if raw_created:
            parsed = datetime.fromisoformat(raw_created)
            # Legacy sidecars may carry the zero time for "unset".
            if parsed.year > 1:
                created_at = normalize_timestamp(parsed)

        season = None
        raw_season = data.get("season")
        if raw_season is not None:
            if isinstance(raw_season, bool) or not isinstance(raw_season, int):
                raise TypeError(f"season must be an integer, got {raw_season!r}")
            season = SeasonId(raw_season)

        return cls(
            created_at=created_at,
            is_auto_save=bool(data.get("isAutoSave", False)),
            is_overwritten=bool(data.get("isOverwritten", False)),
            hash=str(data.get("hash") or ""),
            note=str(data.get("note") or ""),
            season=season,
        )


@dataclass
class Backup:
    """A persisted copy of a save snapshot plus its metadata."""

    metadata: BackupMetadata
    directory: Path

    @property
    def name(self) -> str:
        return self.directory.name

    @property
    def label(self) -> str:
        """Human-readable one-line description."""
        meta = self.metadata
        text = meta.created_at.strftime(LABEL_TIME_FORMAT) if meta.created_at else "unknown time"
        season = meta.season if meta.season is not None else SeasonId.INVALID
        text += f" [{season}]"
        if meta.note:
            text += f" {meta.note}"
        elif meta.is_auto_save:
            text += " auto backup"
        if meta.is_overwritten:
            text = "[overwritten] " + text
        return text

    def __str__(self) -> str:
        return self.label


@dataclass
class ReadResult:
    """Outcome of reading a backup directory.

    ``needs_update`` is set when fields were back-filled from the save content;
    ``metadata_loaded`` is False when the sidecar was missing or undecodable, in
    which case it must not be overwritten with the reconstruction.
    """

    backup: Backup
    needs_update: bool = False
    metadata_loaded: bool = True

    @property
    def should_persist(self) -> bool:
        return self.metadata_loaded and self.needs_update
