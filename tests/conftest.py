from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from taskwatch_mcp.config import TaskwatchSettings
from taskwatch_mcp.taskwarrior import FakeTaskRunner, TaskExecutionResult

DESCRIPTOR_NAME = ".taskwatch-test.json"


class TaskDatabase:
    """Responder emulating the handful of ``task`` invocations taskwatch issues."""

    def __init__(self) -> None:
        self.tasks: list[dict[str, Any]] = []
        self.failures: dict[str, int] = {}

    def add(self, description: str, *, project: str | None = None, tags: tuple[str, ...] = ()) -> dict[str, Any]:
        number = len(self.tasks) + 1
        task: dict[str, Any] = {
            "id": number,
            "uuid": f"{number:08d}-aaaa-bbbb-cccc-000000000000",
            "description": description,
            "status": "pending",
            "entry": "20240101T120000Z",
            "modified": "20240101T120000Z",
            "urgency": float(number),
        }
        if project:
            task["project"] = project
        if tags:
            task["tags"] = list(tags)
        self.tasks.append(task)
        return task

    def find(self, identifier: str) -> dict[str, Any] | None:
        for task in self.tasks:
            if task["uuid"] == identifier or str(task["id"]) == identifier:
                return task
        return None

    def __call__(self, args: tuple[str, ...]) -> TaskExecutionResult:
        def result(stdout: str = "", returncode: int = 0, stderr: str = "") -> TaskExecutionResult:
            return TaskExecutionResult(args=args, returncode=returncode, stdout=stdout, stderr=stderr)

        if args == ("_version",):
            return result(stdout="3.1.0\n")

        if args[-1] in {"start", "stop"} and len(args) == 2:
            operation = args[1]
            if operation in self.failures:
                return result(returncode=self.failures[operation], stderr=f"cannot {operation}")
            task = self.find(args[0])
            if task is None:
                return result(returncode=1, stderr="No tasks specified.")
            if operation == "start":
                task["start"] = "20240101T130000Z"
            else:
                task.pop("start", None)
            return result(stdout=f"{operation.title()}ing task {task['id']} '{task['description']}'.\n")

        if args[0] == "add":
            if "add" in self.failures:
                return result(returncode=self.failures["add"], stderr="cannot add")
            description = args[1]
            project = None
            tags: tuple[str, ...] = ()
            for extra in args[2:]:
                if extra.startswith("project:"):
                    project = extra.split(":", 1)[1]
                elif extra.startswith("tag:"):
                    tags = tuple(extra.split(":", 1)[1].split(","))
            task = self.add(description, project=project, tags=tags)
            return result(stdout=f"Created task {task['id']}.\n")

        if args[-1] == "export" and args[0] == "rc.json.array=0":
            task = self.find(args[1])
            return result(stdout=json.dumps(task) + "\n" if task else "")

        if args[-1] == "export":
            pending = [task for task in self.tasks if task["status"] == "pending"]
            return result(stdout="".join(json.dumps(task) + "\n" for task in pending))

        return result(returncode=2, stderr=f"unexpected arguments {args}")


def operations(runner: FakeTaskRunner) -> list[tuple[str, str]]:
    """Start/stop invocations in dispatch order as ``(operation, uuid)``."""

    return [
        (args[1], args[0])
        for args in runner.invocations
        if len(args) == 2 and args[1] in {"start", "stop"}
    ]


def write_descriptor(directory: Path, document: dict[str, Any] | str) -> Path:
    path = directory / DESCRIPTOR_NAME
    text = document if isinstance(document, str) else json.dumps(document)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture()
def database() -> TaskDatabase:
    return TaskDatabase()


@pytest.fixture()
def fake_runner(database: TaskDatabase) -> FakeTaskRunner:
    return FakeTaskRunner(responder=database)


@pytest.fixture()
def settings() -> TaskwatchSettings:
    return TaskwatchSettings(descriptor_file_name=DESCRIPTOR_NAME, granularity=900.0)
