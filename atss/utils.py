"""Shared utility functions."""

from __future__ import annotations

import os
import platform
import shutil
import subprocess
from pathlib import Path


def copy_file(src: Path, dst: Path) -> None:
    """Copy *src* over *dst*, preserving the source modification time.

    Raises OSError on failure.
    """
    shutil.copyfile(src, dst)
    stat = os.stat(src)
    os.utime(dst, (stat.st_mtime, stat.st_mtime))


def format_age(seconds: float) -> str:
    """Format an elapsed duration as a short relative time."""
    seconds = max(0, int(seconds))
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60), ("second", 1)):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''} ago"
    return "just now"


def open_folder(path: str | Path) -> None:
    """Open a folder in the system file manager."""
    path = Path(path)
    target = path if path.is_dir() else path.parent

    system = platform.system()
    if system == "Windows":
        os.startfile(str(target))  # noqa: S606
    elif system == "Darwin":
        subprocess.Popen(["open", str(target)])  # noqa: S603, S607
    else:
        subprocess.Popen(["xdg-open", str(target)])  # noqa: S603, S607
