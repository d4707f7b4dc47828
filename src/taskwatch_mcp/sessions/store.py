"""Process-wide mapping from directory path to session."""

from __future__ import annotations

from typing import Iterator

from .models import Session


class SessionStore:
    """Owns every session created during the life of the process."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def get(self, path: str) -> Session | None:
        return self._sessions.get(path)

    def add(self, session: Session) -> Session:
        if session.path in self._sessions:
            raise ValueError(f"Session for '{session.path}' already exists")
        self._sessions[session.path] = session
        return session

    def running(self) -> list[Session]:
        return [session for session in self._sessions.values() if session.running]

    def clear(self) -> None:
        self._sessions.clear()

    def __contains__(self, path: object) -> bool:
        return path in self._sessions

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    def __len__(self) -> int:
        return len(self._sessions)


__all__ = ["SessionStore"]
