from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from taskwatch_mcp import server as server_module
from taskwatch_mcp.config import TaskwatchSettings
from taskwatch_mcp.server import create_server
from taskwatch_mcp.sessions import DirectoryVisited
from taskwatch_mcp.taskwarrior import FakeTaskRunner, TaskExecutionResult

from conftest import TaskDatabase, write_descriptor


class StubFastMCP:
    def __init__(self, *args, **kwargs) -> None:
        self.name = kwargs.get("name")
        self.tools: dict[str, object] = {}
        self.resources: dict[str, object] = {}

    def tool(self, *args, **kwargs):
        def decorator(fn):
            self.tools[kwargs.get("name", fn.__name__)] = fn
            return fn

        return decorator

    def resource(self, uri, **kwargs):
        def decorator(fn):
            self.resources[uri] = fn
            return fn

        return decorator

    def run(self):  # pragma: no cover - not used in tests
        return None


@pytest.fixture()
def stub_fastmcp(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(server_module, "FastMCP", StubFastMCP)


def test_create_server_wires_tools_and_status(
    stub_fastmcp, database: TaskDatabase, settings: TaskwatchSettings, tmp_path: Path
) -> None:
    runner = FakeTaskRunner(responder=database)
    write_descriptor(tmp_path, {"description": [{"text": "fix bug"}]})

    server = create_server(settings, runner, register_teardown=False)

    assert server.name == "taskwatch"
    assert "visit_directory" in server.tools
    assert "resource://taskwatch/status" in server.resources
    assert server.task_metadata["version"] == "3.1.0"

    asyncio.run(server.session_manager.dispatch(DirectoryVisited(str(tmp_path), "buf-1")))
    payload = json.loads(server.status_resource())

    assert payload["sessions"]["count"] == 1
    assert payload["sessions"]["running"] == 1
    assert payload["sessions"]["items"][0]["task"]["description"] == "fix bug"
    assert payload["taskwarrior"]["error"] is None

    server.session_manager.teardown()
    assert ("00000001-aaaa-bbbb-cccc-000000000000", "stop") in runner.invocations


def test_create_server_records_version_failure(stub_fastmcp, settings: TaskwatchSettings) -> None:
    runner = FakeTaskRunner(
        [TaskExecutionResult(args=("_version",), returncode=1, stdout="", stderr="broken taskrc")]
    )

    server = create_server(settings, runner, register_teardown=False)

    assert server.task_metadata["version"] is None
    assert server.task_metadata["error"] == "broken taskrc"


def test_create_server_registers_teardown(stub_fastmcp, monkeypatch: pytest.MonkeyPatch, settings: TaskwatchSettings) -> None:
    registered = []
    monkeypatch.setattr(server_module.atexit, "register", registered.append)

    server = create_server(settings, FakeTaskRunner())

    assert registered == [server.session_manager.teardown]
