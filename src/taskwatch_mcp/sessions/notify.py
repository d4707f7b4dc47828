"""Notification sink for task lifecycle and error messages."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Protocol

Severity = Literal["info", "error"]

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Notification:
    message: str
    severity: Severity
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier(Protocol):
    def notify(self, message: str, severity: Severity = "info") -> None:
        ...


class LoggingNotifier:
    """Log notifications and keep the most recent ones for inspection."""

    def __init__(self, history: int = 100) -> None:
        self._history: deque[Notification] = deque(maxlen=history)

    def notify(self, message: str, severity: Severity = "info") -> None:
        notification = Notification(message=message, severity=severity)
        self._history.append(notification)
        if severity == "error":
            logger.error(message)
        else:
            logger.info(message)

    def recent(self, limit: int | None = None) -> list[Notification]:
        items = list(self._history)
        if limit is not None and limit > 0:
            items = items[-limit:]
        return items


__all__ = ["LoggingNotifier", "Notification", "Notifier", "Severity"]
