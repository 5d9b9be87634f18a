"""Save snapshot model — the fixed set of save files in one directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

SAVE_FILE_PATTERN = "*.save"

EXPECTED_SAVE_FILES: tuple[str, ...] = (
    "MetaSave.save",
    "Profiles.save",
    "Save.save",
    "WorldSave.save",
)

META_SAVE_FILE = "MetaSave.save"
SAVE_FILE = "Save.save"
WORLD_SAVE_FILE = "WorldSave.save"


@dataclass
class SaveSnapshot:
    """Save files found together in one directory, ordered by file name."""

    directory: Path
    files: list[Path] = field(default_factory=list)

    @classmethod
    def locate(cls, directory: Path) -> SaveSnapshot:
        """Collect the save files currently present in *directory*."""
        directory = Path(directory)
        files = sorted(p for p in directory.glob(SAVE_FILE_PATTERN) if p.is_file())
        return cls(directory=directory, files=files)

    @property
    def is_empty(self) -> bool:
        return not self.files

    @property
    def names(self) -> list[str]:
        return [f.name for f in self.files]

    def missing_expected(self) -> list[str]:
        """Expected save file names absent from this snapshot."""
        present = set(self.names)
        return [name for name in EXPECTED_SAVE_FILES if name not in present]
