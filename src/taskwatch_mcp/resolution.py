"""Turn a descriptor into a concrete Taskwarrior task."""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import Sequence

from .descriptor import Descriptor, Fragment
from .taskwarrior import Task, TaskRunner
from .taskwarrior.utils import task_environment

logger = logging.getLogger(__name__)


class ResolutionError(RuntimeError):
    """Raised when a descriptor cannot be resolved to a task."""


def extract(output: str, pattern: str) -> str | None:
    """Return the first group of ``pattern`` in ``output``, or the whole match."""

    match = re.search(pattern, output)
    if match is None:
        return None
    if match.re.groups:
        return match.group(1)
    return match.group(0)


def run_helper(command: Sequence[str], *, cwd: Path, timeout: float) -> str:
    """Run a helper command to completion and return its joined stdout lines."""

    completed = subprocess.run(
        list(command),
        cwd=str(cwd),
        stdin=subprocess.DEVNULL,
        capture_output=True,
        text=True,
        timeout=timeout,
        env=task_environment(),
    )
    return "".join(completed.stdout.splitlines()).strip()


class TaskResolver:
    """Resolve descriptors by direct lookup or by composing and matching a description."""

    def __init__(
        self,
        runner: TaskRunner,
        *,
        export_filter: Sequence[str] = ("status:pending",),
        helper_timeout: float = 30.0,
    ) -> None:
        self._runner = runner
        self._export_filter = tuple(export_filter)
        self._helper_timeout = helper_timeout

    def resolve(self, descriptor: Descriptor, cwd: Path) -> Task:
        if descriptor.id is not None:
            return self._resolve_identifier(descriptor.id)
        if not descriptor.description:
            raise ResolutionError("The field id or description is absent")
        return self._resolve_composition(descriptor, Path(cwd))

    def compose(self, descriptor: Descriptor, cwd: Path) -> tuple[str, str, str]:
        """Build the description, project and comma-joined tags strings."""

        description = "".join(self._compose_list("description", descriptor.description, cwd))
        project = "".join(self._compose_list("project", descriptor.project, cwd))
        tags = ",".join(self._compose_list("tags", descriptor.tags, cwd))
        return description, project, tags

    def _resolve_identifier(self, identifier: str) -> Task:
        task = self._runner.export_by_identifier_sync(identifier)
        if task is None:
            raise ResolutionError(f"task not found for identifier {identifier}")
        return task

    def _resolve_composition(self, descriptor: Descriptor, cwd: Path) -> Task:
        description, project, tags = self.compose(descriptor, cwd)

        for task in self._runner.export_all_sync(self._export_filter):
            if task.description == description:
                logger.debug("Matched existing task", extra={"task_uuid": task.uuid})
                return task

        args = [description]
        if project:
            args.append(f"project:{project}")
        if tags:
            args.append(f"tag:{tags}")
        identifier = self._runner.create_sync(args)
        logger.info("Created task", extra={"task_id": identifier, "description": description})

        task = self._runner.export_by_identifier_sync(identifier)
        if task is None:
            raise ResolutionError(f"cannot find created task for description {description}")
        return task

    def _compose_list(self, field: str, fragments: Sequence[Fragment], cwd: Path) -> list[str]:
        parts: list[str] = []
        for index, fragment in enumerate(fragments, start=1):
            if fragment.command is None:
                parts.append(fragment.text or "")
                continue
            parts.append(self._run_fragment(field, index, fragment.command, fragment.regex, cwd))
        return parts

    def _run_fragment(
        self, field: str, index: int, command: Sequence[str], regex: str | None, cwd: Path
    ) -> str:
        label = f"The configuration command [{index}] for {field}"
        try:
            output = run_helper(command, cwd=cwd, timeout=self._helper_timeout)
        except OSError as exc:
            raise ResolutionError(f"{label} cannot be executed: {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ResolutionError(f"{label} timed out after {exc.timeout} seconds") from exc

        if not output:
            raise ResolutionError(f"{label} returns an empty string.")
        if regex is None:
            return output

        extracted = extract(output, regex)
        if not extracted:
            raise ResolutionError(f"{label} output does not match '{regex}'.")
        return extracted


__all__ = ["ResolutionError", "TaskResolver", "extract", "run_helper"]
