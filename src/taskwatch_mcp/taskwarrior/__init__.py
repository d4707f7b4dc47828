"""Taskwarrior CLI orchestration utilities."""

from .models import Task, TaskExportError, parse_export
from .runner import (
    FakeTaskRunner,
    TaskBinaryNotFoundError,
    TaskCommandError,
    TaskExecutionResult,
    TaskRunner,
    TaskRunnerError,
)

__all__ = [
    "FakeTaskRunner",
    "Task",
    "TaskBinaryNotFoundError",
    "TaskCommandError",
    "TaskExecutionResult",
    "TaskExportError",
    "TaskRunner",
    "TaskRunnerError",
    "parse_export",
]
