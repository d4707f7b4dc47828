from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from taskwatch_mcp.taskwarrior import Task, TaskExportError, parse_export
from taskwatch_mcp.taskwarrior.models import normalize_date


def test_normalize_date_converts_export_stamp() -> None:
    assert normalize_date("20220101T154500Z") == "2022-01-01 15:45:00"
    assert normalize_date("2022-01-01 15:45:00") == "2022-01-01 15:45:00"
    assert normalize_date(None) is None


def test_normalize_date_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        normalize_date("yesterday")


def test_parse_export_accepts_lines_and_arrays() -> None:
    lines = '{"id":1,"uuid":"a","description":"one"}\n{"id":2,"uuid":"b","description":"two"}\n'
    array = '[{"id":1,"uuid":"a","description":"one"},{"id":2,"uuid":"b","description":"two"}]'

    assert [task.uuid for task in parse_export(lines)] == ["a", "b"]
    assert [task.uuid for task in parse_export(array)] == ["a", "b"]
    assert parse_export("  \n") == []


def test_parse_export_reports_error_documents() -> None:
    with pytest.raises(TaskExportError, match="database locked"):
        parse_export('{"error": {"message": "database locked"}}')


def test_parse_export_rejects_invalid_json() -> None:
    with pytest.raises(TaskExportError):
        parse_export("Created task 1.")


def test_task_elapsed_prefers_start() -> None:
    task = Task(
        uuid="u",
        description="d",
        entry="20240101T100000Z",
        start="20240101T120000Z",
        tags=["a", "b"],
    )

    assert task.is_started
    assert task.tags == frozenset({"a", "b"})
    assert task.elapsed(datetime(2024, 1, 1, 12, 30)) == timedelta(minutes=30)
    assert task.summary()["tags"] == ["a", "b"]


def test_task_is_immutable() -> None:
    task = Task(uuid="u", description="d")

    with pytest.raises(Exception):
        task.description = "changed"  # type: ignore[misc]


def test_summary_reports_elapsed_seconds() -> None:
    started = Task(uuid="u", description="d", entry="20240101T100000Z", start="20240101T120000Z")
    never_started = Task(uuid="v", description="e")

    assert started.summary(datetime(2024, 1, 1, 12, 1, 30))["elapsed_seconds"] == 90
    assert never_started.summary()["elapsed_seconds"] is None
