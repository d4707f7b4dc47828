"""Session tracking: store, events, activity hub, notifications and state machine."""

from .activity import ActivityHub
from .manager import SessionManager
from .models import (
    ActivityObserved,
    CommandCompleted,
    DirectoryVisited,
    IdleTimerExpired,
    Session,
    Teardown,
)
from .notify import LoggingNotifier, Notification, Notifier
from .store import SessionStore

__all__ = [
    "ActivityHub",
    "ActivityObserved",
    "CommandCompleted",
    "DirectoryVisited",
    "IdleTimerExpired",
    "LoggingNotifier",
    "Notification",
    "Notifier",
    "Session",
    "SessionManager",
    "SessionStore",
    "Teardown",
]
