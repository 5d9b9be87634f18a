"""Application entry point — wires services and dispatches subcommands.

Usage:
    atss save [-n NOTE]     back up the current save
    atss autosave           back up automatically whenever the save changes
    atss list               list backups, newest first
    atss restore NAME       restore a backup (directory name or list index)
    atss delete NAME...     delete backups
    atss open               open the saves directory
"""

from __future__ import annotations

import argparse
import sys

from loguru import logger

from atss.config import Config, get_config
from atss.context import AppContext
from atss.core.auto_backup import AutoBackupWatcher
from atss.core.backup import OVERWRITTEN_BACKUP_DIRNAME, BackupManager
from atss.core.errors import AtssError, GameRunningError
from atss.core.path_resolver import backups_directory_for, default_saves_directory, ensure_directories
from atss.core.restore import RestoreManager
from atss.core.save_inspector import save_age
from atss.logger import setup_logger
from atss.models.backup import Backup, BackupMetadata
from atss.utils import format_age, open_folder


def create_context(config: Config | None = None) -> AppContext:
    """Wire all services and return an AppContext."""
    config = config or get_config()

    # Logger
    setup_logger(config.data_dir / "logs", level=config.log_level)

    saves_dir = config.saves_directory or default_saves_directory()
    backups_dir = config.backups_directory or backups_directory_for(saves_dir)
    ensure_directories(saves_dir, backups_dir)

    # Remember discovered locations so later runs skip discovery
    if config.saves_directory is None or config.backups_directory is None:
        with config.batch_update():
            config.saves_directory = saves_dir
            config.backups_directory = backups_dir
        logger.info(f"Saved discovered directories: {saves_dir}, {backups_dir}")

    backup_manager = BackupManager(saves_dir, backups_dir)
    restore_manager = RestoreManager(backup_manager, game_executable=config.game_executable)
    auto_backup = AutoBackupWatcher(
        backup_manager,
        wait=config.debounce_seconds,
        max_wait=config.max_wait_seconds,
    )

    return AppContext(
        config=config,
        backup_manager=backup_manager,
        restore_manager=restore_manager,
        auto_backup=auto_backup,
    )


def _resolve_backup(ctx: AppContext, name: str) -> Backup:
    """Find a backup by directory name or by its 1-based position in ``list``."""
    backups = ctx.backup_manager.list_backups()
    if name.isdigit():
        index = int(name)
        if 1 <= index <= len(backups):
            return backups[index - 1]
    for backup in backups:
        if backup.name == name:
            return backup
    raise AtssError(f"no such backup: {name}")


def cmd_save(ctx: AppContext, args: argparse.Namespace) -> int:
    try:
        _, age = save_age(ctx.backup_manager.saves_dir)
        print(f"Your current game save is from {format_age(age)}.")
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to determine the age of your current game save: {e}")

    backup = ctx.backup_manager.create_backup(BackupMetadata(note=args.note))
    print(f"created backup: {backup.label}")
    return 0


def cmd_autosave(ctx: AppContext, args: argparse.Namespace) -> int:
    print(
        "Watching for changes to the game save; a backup is created a few seconds after each change.\n"
        "Press Ctrl+C to stop."
    )
    ctx.auto_backup.run(print)
    return 0


def cmd_list(ctx: AppContext, args: argparse.Namespace) -> int:
    backups = ctx.backup_manager.list_backups()
    if not backups:
        print("No backups yet.")
        return 0
    for i, backup in enumerate(backups, start=1):
        print(f"{i:>3}. {backup.label}  ({backup.name})")
    return 0


def cmd_restore(ctx: AppContext, args: argparse.Namespace) -> int:
    backup = _resolve_backup(ctx, args.name)
    try:
        result = ctx.restore_manager.restore_backup(backup)
    except GameRunningError as e:
        print(e.guidance, file=sys.stderr)
        return 1
    print(f"restored backup: {backup.label}")
    print(f"previous state saved as: {result.safety_backup.label}")
    return 0


def cmd_delete(ctx: AppContext, args: argparse.Namespace) -> int:
    status = 0
    # Resolve everything first so list indices don't shift between deletes
    targets = [_resolve_backup(ctx, name) for name in args.names]
    for backup in targets:
        if backup.name == OVERWRITTEN_BACKUP_DIRNAME:
            # Only one copy of this backup exists; it is replaced by the next restore.
            print(f"skipping {backup.name}: the overwritten backup can't be deleted", file=sys.stderr)
            status = 1
            continue
        try:
            ctx.backup_manager.delete_backup(backup)
        except AtssError:
            status = 1
            continue
        print(f"deleted backup: {backup.label}")
    return status


def cmd_open(ctx: AppContext, args: argparse.Namespace) -> int:
    open_folder(ctx.backup_manager.saves_dir)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="atss", description="Against the Storm Save Scummer")
    sub = parser.add_subparsers(dest="command", required=True)

    save = sub.add_parser("save", help="save the current state")
    save.add_argument("-n", "--note", default="", help="note to attach to the backup")
    save.set_defaults(func=cmd_save)

    sub.add_parser("autosave", help="save current and future states automatically").set_defaults(
        func=cmd_autosave
    )
    sub.add_parser("list", help="list previously saved states").set_defaults(func=cmd_list)

    restore = sub.add_parser("restore", help="restore a previously saved state")
    restore.add_argument("name", help="backup directory name or index shown by 'list'")
    restore.set_defaults(func=cmd_restore)

    delete = sub.add_parser("delete", help="delete previously saved states")
    delete.add_argument("names", nargs="+", help="backup directory names or indices shown by 'list'")
    delete.set_defaults(func=cmd_delete)

    sub.add_parser("open", help="open the saves directory").set_defaults(func=cmd_open)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)
    try:
        ctx = create_context()
        return args.func(ctx, args)
    except AtssError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
