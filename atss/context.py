"""Application context — service container for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from atss.config import Config
    from atss.core.auto_backup import AutoBackupWatcher
    from atss.core.backup import BackupManager
    from atss.core.restore import RestoreManager


@dataclass
class AppContext:
    """
    Central service container.

    Built once by ``create_context()`` and handed to every command.
    """

    config: Config
    backup_manager: BackupManager
    restore_manager: RestoreManager
    auto_backup: AutoBackupWatcher
