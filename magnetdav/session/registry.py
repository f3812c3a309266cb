"""Identifier to live session map."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from magnetdav.engine.types import SwarmSession


class SessionRegistry:
    """Mutex-guarded map from content identifier to swarm session.

    Every operation is a constant-time dict operation under the lock; callers
    release swarm resources after the lock is dropped.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, SwarmSession] = {}

    def register(self, identifier: str, session: SwarmSession) -> SwarmSession | None:
        """Store ``session``, returning any session it replaced."""
        with self._lock:
            previous = self._sessions.get(identifier)
            self._sessions[identifier] = session
            return previous

    def lookup(self, identifier: str) -> SwarmSession | None:
        with self._lock:
            return self._sessions.get(identifier)

    def remove(self, identifier: str) -> SwarmSession | None:
        with self._lock:
            return self._sessions.pop(identifier, None)

    def pop_all(self) -> list[SwarmSession]:
        """Empty the map and return what it held."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            return sessions

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
