"""Exception hierarchy for backup, restore and save inspection."""

from __future__ import annotations


class AtssError(Exception):
    """Base class for all save scummer errors."""


class SnapshotNotFoundError(AtssError, FileNotFoundError):
    """No save files were found where a snapshot was expected."""


class BackupError(AtssError, OSError):
    """A backup directory could not be created, copied, or removed."""


class GameRunningError(AtssError):
    """Restore refused because the game must be restarted but is still running."""

    def __init__(self, executable: str) -> None:
        super().__init__(
            f"{executable} is running, refusing to restore backup since the changes won't apply properly"
        )
        self.executable = executable

    @property
    def guidance(self) -> str:
        return (
            "You need to quit the game before performing this restore, "
            "or the changes won't take full effect. "
            "Please quit the game (quitting to main menu isn't enough) and try the restore again."
        )


class SaveFormatError(AtssError, ValueError):
    """A save file could not be parsed or is missing required fields."""


class ProcessCheckError(AtssError):
    """The list of running processes could not be inspected."""
