"""Session state and the events that drive it."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Hashable, Literal

from ..taskwarrior import Task, TaskExecutionResult

Consumer = Hashable


@dataclass(slots=True)
class Session:
    """Tracking state for one working directory."""

    path: str
    task: Task | None = None
    descriptor_text: str | None = None
    timer: asyncio.TimerHandle | None = None
    timer_token: int = 0
    watchers: dict[Consumer, int] = field(default_factory=dict)
    running: bool = False
    pending: Literal["start", "stop"] | None = None
    command: asyncio.Task[TaskExecutionResult] | None = None
    resume_consumer: Consumer | None = None

    @property
    def state(self) -> str:
        if self.task is None:
            return "dormant"
        return "active" if self.running else "suspended"

    def snapshot(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "state": self.state,
            "running": self.running,
            "pending": self.pending,
            "timer_armed": self.timer is not None,
            "watchers": sorted(str(consumer) for consumer in self.watchers),
            "task": self.task.summary() if self.task is not None else None,
        }


@dataclass(slots=True, frozen=True)
class DirectoryVisited:
    path: str
    consumer: Consumer
    buffer_type: str | None = None


@dataclass(slots=True, frozen=True)
class ActivityObserved:
    path: str
    consumer: Consumer


@dataclass(slots=True, frozen=True)
class IdleTimerExpired:
    path: str
    uuid: str
    token: int


@dataclass(slots=True, frozen=True)
class CommandCompleted:
    path: str
    uuid: str
    operation: Literal["start", "stop"]
    result: TaskExecutionResult
    consumer: Consumer | None = None


@dataclass(slots=True, frozen=True)
class Teardown:
    pass


Event = DirectoryVisited | ActivityObserved | IdleTimerExpired | CommandCompleted | Teardown


__all__ = [
    "ActivityObserved",
    "CommandCompleted",
    "Consumer",
    "DirectoryVisited",
    "Event",
    "IdleTimerExpired",
    "Session",
    "Teardown",
]
