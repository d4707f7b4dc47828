"""Task snapshots parsed from ``task export`` output."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

_EXPORT_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
DISPLAY_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class TaskExportError(RuntimeError):
    """Raised when ``task export`` output cannot be turned into tasks."""


def normalize_date(value: str | None) -> str | None:
    """Convert Taskwarrior's ``20220101T154500Z`` stamps to ``2022-01-01 15:45:00``."""

    if value is None or value == "":
        return None
    try:
        return datetime.strptime(value, _EXPORT_DATE_FORMAT).strftime(DISPLAY_DATE_FORMAT)
    except ValueError:
        pass
    try:
        datetime.strptime(value, DISPLAY_DATE_FORMAT)
    except ValueError as exc:
        raise ValueError(f"Unrecognized task date '{value}'") from exc
    return value


class Task(BaseModel):
    """Immutable snapshot of a Taskwarrior task."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int = 0
    uuid: str
    description: str
    project: str | None = None
    tags: frozenset[str] = Field(default_factory=frozenset)
    status: Literal["pending", "completed", "deleted", "recurring", "waiting"] = "pending"
    entry: str | None = None
    start: str | None = None
    modified: str | None = None
    end: str | None = None
    urgency: float = 0.0

    @field_validator("entry", "start", "modified", "end", mode="before")
    @classmethod
    def _normalize_dates(cls, value: Any) -> str | None:
        return normalize_date(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _ensure_tags(cls, value: Any):
        if value is None:
            return frozenset()
        if isinstance(value, str):
            raise ValueError("Task tags must be a sequence of strings")
        return frozenset(value)

    @property
    def is_started(self) -> bool:
        return self.start is not None

    def elapsed(self, now: datetime | None = None) -> timedelta | None:
        """Time since the task was started, or since it was entered when never started.

        Taskwarrior stamps are UTC; ``now`` defaults to the current UTC time.
        """

        reference = self.start or self.entry
        if reference is None:
            return None
        started_at = datetime.strptime(reference, DISPLAY_DATE_FORMAT)
        current = now or datetime.now(timezone.utc).replace(tzinfo=None)
        return current - started_at

    def summary(self, now: datetime | None = None) -> dict[str, Any]:
        elapsed = self.elapsed(now)
        return {
            "id": self.id,
            "uuid": self.uuid,
            "description": self.description,
            "project": self.project,
            "tags": sorted(self.tags),
            "status": self.status,
            "start": self.start,
            "urgency": self.urgency,
            "elapsed_seconds": int(elapsed.total_seconds()) if elapsed is not None else None,
        }


def task_from_json(document: dict[str, Any]) -> Task:
    if "error" in document:
        error = document["error"]
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise TaskExportError(message or "Taskwarrior reported an error")
    try:
        return Task.model_validate(document)
    except ValidationError as exc:
        raise TaskExportError(f"Invalid task in export output: {exc}") from exc


def parse_export(text: str) -> list[Task]:
    """Parse ``task export`` output.

    Both the ``rc.json.array=0`` form (one object per line) and the JSON array
    form are accepted.
    """

    stripped = text.strip()
    if not stripped:
        return []

    try:
        if stripped.startswith("["):
            documents = json.loads(stripped)
        else:
            documents = [json.loads(line) for line in stripped.splitlines() if line.strip()]
    except json.JSONDecodeError as exc:
        raise TaskExportError(f"Unable to extract tasks from JSON: {exc}") from exc

    tasks: list[Task] = []
    for document in documents:
        if not isinstance(document, dict):
            raise TaskExportError("Unable to extract tasks from JSON: expected objects")
        tasks.append(task_from_json(document))
    return tasks


__all__ = ["DISPLAY_DATE_FORMAT", "Task", "TaskExportError", "normalize_date", "parse_export"]
