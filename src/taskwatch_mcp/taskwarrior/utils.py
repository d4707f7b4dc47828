"""Utility helpers for the Taskwarrior runner."""

from __future__ import annotations

import os
from pathlib import Path

_SANITIZED_VARS = {
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
}


def task_environment(
    *,
    taskrc: Path | None = None,
    taskdata: Path | None = None,
) -> dict[str, str]:
    """Return the environment used for ``task`` and helper command invocations."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    if taskrc is not None:
        env["TASKRC"] = str(taskrc)
    if taskdata is not None:
        env["TASKDATA"] = str(taskdata)
    return env
