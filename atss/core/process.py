"""Running-process lookup."""

from __future__ import annotations

import psutil

from atss.core.errors import ProcessCheckError


def process_is_running(executable: str) -> bool:
    """Whether a process with the given executable name is currently running.

    Raises ProcessCheckError if the process table can't be listed.
    """
    target = executable.lower()
    try:
        for proc in psutil.process_iter(["name"]):
            name = proc.info.get("name") or ""
            if name.lower() == target:
                return True
    except psutil.Error as e:
        raise ProcessCheckError(f"failed to list running processes: {e}") from e
    return False
