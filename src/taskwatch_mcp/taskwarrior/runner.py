"""Async and blocking runner for the Taskwarrior CLI."""

from __future__ import annotations

import asyncio
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .models import Task, parse_export
from .utils import task_environment

_CREATED_ID = re.compile(r"\d+")


class TaskRunnerError(RuntimeError):
    """Base class for Taskwarrior runner errors."""


class TaskBinaryNotFoundError(TaskRunnerError):
    """Raised when the ``task`` executable cannot be located."""


class TaskCommandError(TaskRunnerError):
    """Raised when a ``task`` invocation exits with a non-zero status."""

    def __init__(self, message: str, result: "TaskExecutionResult | None" = None) -> None:
        super().__init__(message)
        self.result = result


@dataclass(slots=True)
class TaskExecutionResult:
    """Holds the outcome of a Taskwarrior CLI invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def lines(self) -> list[str]:
        return [line for line in self.stdout.splitlines() if line]

    @property
    def message(self) -> str:
        return (self.stderr.strip() or self.stdout.strip()) or f"exit code {self.returncode}"


def _start_args(uuid: str) -> tuple[str, ...]:
    return (uuid, "start")


def _stop_args(uuid: str) -> tuple[str, ...]:
    return (uuid, "stop")


def _create_args(args: Sequence[str]) -> tuple[str, ...]:
    return ("add", *args)


def _export_identifier_args(identifier: str | int) -> tuple[str, ...]:
    return ("rc.json.array=0", str(identifier), "export")


def _export_all_args(filter_args: Sequence[str]) -> tuple[str, ...]:
    return ("rc.verbose=nothing", "rc.json.array=0", *filter_args, "export")


def _require_ok(result: TaskExecutionResult) -> TaskExecutionResult:
    if not result.ok:
        raise TaskCommandError(f"task {' '.join(result.args[1:])} failed: {result.message}", result)
    return result


def _created_id(result: TaskExecutionResult) -> int:
    _require_ok(result)
    for line in result.lines:
        match = _CREATED_ID.search(line)
        if match:
            return int(match.group(0))
    raise TaskCommandError("task add did not report a task id", result)


def _first_task(result: TaskExecutionResult) -> Task | None:
    _require_ok(result)
    tasks = parse_export(result.stdout)
    return tasks[0] if tasks else None


def _all_tasks(result: TaskExecutionResult) -> list[Task]:
    _require_ok(result)
    return parse_export(result.stdout)


def _match_field(tasks: Iterable[Task], key: str, value: object) -> Task | None:
    for task in tasks:
        if getattr(task, key, None) == value:
            return task
    return None


class TaskRunner:
    """Execute Taskwarrior commands asynchronously or blocking."""

    def __init__(
        self,
        executable: Path | None = None,
        *,
        taskrc: Path | None = None,
        taskdata: Path | None = None,
    ) -> None:
        self._executable_path = self._resolve_executable(executable)
        self._taskrc = taskrc
        self._taskdata = taskdata

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            raise TaskBinaryNotFoundError(f"Taskwarrior executable not found at {candidate}")

        binary = shutil.which("task")
        if binary is None:
            raise TaskBinaryNotFoundError("Taskwarrior executable not found on PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    def _command(self, args: Sequence[str]) -> list[str]:
        return [str(self._executable_path), "rc.confirmation=0", *args]

    async def run(self, args: Sequence[str]) -> TaskExecutionResult:
        """Run an arbitrary ``task`` command."""

        return await self._invoke(*args)

    def run_sync(self, args: Sequence[str]) -> TaskExecutionResult:
        return self._invoke_sync(*args)

    async def start(self, uuid: str) -> TaskExecutionResult:
        return await self._invoke(*_start_args(uuid))

    def start_sync(self, uuid: str) -> TaskExecutionResult:
        return self._invoke_sync(*_start_args(uuid))

    async def stop(self, uuid: str) -> TaskExecutionResult:
        return await self._invoke(*_stop_args(uuid))

    def stop_sync(self, uuid: str) -> TaskExecutionResult:
        return self._invoke_sync(*_stop_args(uuid))

    async def create(self, args: Sequence[str]) -> int:
        """Add a task and return the numeric id Taskwarrior assigned to it."""

        return _created_id(await self._invoke(*_create_args(args)))

    def create_sync(self, args: Sequence[str]) -> int:
        return _created_id(self._invoke_sync(*_create_args(args)))

    async def export_by_identifier(self, identifier: str | int) -> Task | None:
        return _first_task(await self._invoke(*_export_identifier_args(identifier)))

    def export_by_identifier_sync(self, identifier: str | int) -> Task | None:
        return _first_task(self._invoke_sync(*_export_identifier_args(identifier)))

    async def export_all(self, filter_args: Sequence[str] = ()) -> list[Task]:
        return _all_tasks(await self._invoke(*_export_all_args(filter_args)))

    def export_all_sync(self, filter_args: Sequence[str] = ()) -> list[Task]:
        return _all_tasks(self._invoke_sync(*_export_all_args(filter_args)))

    async def export_by_field(
        self, key: str, value: object, filter_args: Sequence[str] = ()
    ) -> Task | None:
        return _match_field(await self.export_all(filter_args), key, value)

    def export_by_field_sync(
        self, key: str, value: object, filter_args: Sequence[str] = ()
    ) -> Task | None:
        return _match_field(self.export_all_sync(filter_args), key, value)

    async def _invoke(self, *args: str) -> TaskExecutionResult:
        cmd = self._command(args)
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=task_environment(taskrc=self._taskrc, taskdata=self._taskdata),
        )
        stdout_bytes, stderr_bytes = await process.communicate()
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        return TaskExecutionResult(args=tuple(cmd), returncode=process.returncode, stdout=stdout, stderr=stderr)

    def _invoke_sync(self, *args: str) -> TaskExecutionResult:
        cmd = self._command(args)
        completed = subprocess.run(
            cmd,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            env=task_environment(taskrc=self._taskrc, taskdata=self._taskdata),
        )
        stdout = completed.stdout.decode("utf-8", errors="replace")
        stderr = completed.stderr.decode("utf-8", errors="replace")
        return TaskExecutionResult(args=tuple(cmd), returncode=completed.returncode, stdout=stdout, stderr=stderr)


Responder = Callable[[tuple[str, ...]], TaskExecutionResult]


class FakeTaskRunner(TaskRunner):
    """Test double that simulates Taskwarrior CLI responses.

    Scripted ``responses`` are consumed first; after that ``responder`` (when
    given) builds a result from the arguments, otherwise an empty success is
    returned.
    """

    def __init__(  # type: ignore[override]
        self,
        responses: Iterable[TaskExecutionResult] | None = None,
        *,
        responder: Responder | None = None,
    ) -> None:
        self._responses = list(responses or [])
        self._responder = responder
        self._invocations: list[tuple[str, ...]] = []
        self._executable_path = Path("/tmp/fake-task")
        self._taskrc = None
        self._taskdata = None

    def _respond(self, args: tuple[str, ...]) -> TaskExecutionResult:
        self._invocations.append(args)
        if self._responses:
            return self._responses.pop(0)
        if self._responder is not None:
            return self._responder(args)
        return TaskExecutionResult(args=args, returncode=0, stdout="", stderr="")

    async def _invoke(self, *args: str) -> TaskExecutionResult:  # type: ignore[override]
        return self._respond(tuple(args))

    def _invoke_sync(self, *args: str) -> TaskExecutionResult:  # type: ignore[override]
        return self._respond(tuple(args))

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations

