"""In-memory swarm engine.

Serves content registered up front, with metadata published either on
acquisition or on demand. Deterministic, so it doubles as the engine used by
the test-suite and by local demos (``torrent.engine = "memory"``).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from magnetdav.utils.exceptions import EngineRejectedError, StreamError

logger = logging.getLogger(__name__)


@dataclass
class MemoryContent:
    """Content known to the engine: a name and an ordered file list."""

    name: str
    files: list[tuple[str, bytes]]
    auto_metadata: bool = True

    @property
    def total_length(self) -> int:
        return sum(len(data) for _, data in self.files)


class MemoryReader:
    """Reader over an in-memory file."""

    def __init__(self, session: MemorySwarmSession, data: bytes, start: int = 0):
        self._session = session
        self._data = data
        self._pos = start
        self.readahead = 0
        self.closed = False

    def set_readahead(self, nbytes: int) -> None:
        self.readahead = nbytes

    async def read(self, size: int) -> bytes:
        if self.closed:
            msg = "Reader is closed"
            raise StreamError(msg)
        if self._session.dropped:
            msg = f"Session {self._session.identifier} was dropped"
            raise StreamError(msg)
        await asyncio.sleep(0)
        chunk = self._data[self._pos : self._pos + size]
        self._pos += len(chunk)
        return chunk

    def close(self) -> None:
        self.closed = True


@dataclass
class MemoryFile:
    """A file of a memory session."""

    session: MemorySwarmSession
    path: str
    data: bytes = field(repr=False)

    @property
    def length(self) -> int:
        return len(self.data)

    def open_reader(self, start: int = 0) -> MemoryReader:
        reader = MemoryReader(self.session, self.data, start)
        self.session.readers.append(reader)
        return reader


class MemorySwarmSession:
    """Session over :class:`MemoryContent`."""

    def __init__(self, identifier: str, content: MemoryContent | None):
        self.identifier = identifier
        self._content = content
        self._ready = asyncio.Event()
        self._failure: BaseException | None = None
        self.dropped = False
        self.readers: list[MemoryReader] = []

    def publish(self, content: MemoryContent | None = None) -> None:
        """Make metadata available, optionally replacing the content."""
        if content is not None:
            self._content = content
        if self._content is None:
            msg = f"No content registered for {self.identifier}"
            raise ValueError(msg)
        self._ready.set()

    def fail(self, exc: BaseException) -> None:
        """Make ``wait_metadata`` raise ``exc``."""
        self._failure = exc
        self._ready.set()

    async def wait_metadata(self) -> None:
        await self._ready.wait()
        if self._failure is not None:
            raise self._failure

    def has_metadata(self) -> bool:
        return self._ready.is_set() and self._failure is None and not self.dropped

    def name(self) -> str:
        return self._content.name if self._content else ""

    def total_length(self) -> int:
        return self._content.total_length if self._content else 0

    def files(self) -> list[MemoryFile]:
        if not self.has_metadata() or self._content is None:
            return []
        return [MemoryFile(self, path, data) for path, data in self._content.files]

    def drop(self) -> None:
        self.dropped = True


class MemorySwarmEngine:
    """Swarm engine backed by registered in-memory content."""

    def __init__(self) -> None:
        self._content: dict[str, MemoryContent] = {}
        self._rejected: dict[str, str] = {}
        self.sessions: dict[str, MemorySwarmSession] = {}
        self.acquire_calls: list[str] = []
        self.closed = False

    def add_content(
        self,
        identifier: str,
        name: str,
        files: list[tuple[str, bytes]],
        *,
        auto_metadata: bool = True,
    ) -> MemoryContent:
        """Register content; with ``auto_metadata`` metadata is ready on acquire."""
        content = MemoryContent(name=name, files=list(files), auto_metadata=auto_metadata)
        self._content[identifier] = content
        return content

    def reject(self, identifier: str, reason: str = "invalid identifier") -> None:
        self._rejected[identifier] = reason

    def publish(self, identifier: str) -> None:
        """Publish metadata for a session acquired with ``auto_metadata=False``."""
        self.sessions[identifier].publish(self._content.get(identifier))

    def fail_metadata(self, identifier: str, exc: BaseException) -> None:
        self.sessions[identifier].fail(exc)

    async def acquire(self, uri: str, identifier: str) -> MemorySwarmSession:
        self.acquire_calls.append(identifier)
        if identifier in self._rejected:
            raise EngineRejectedError(
                self._rejected[identifier], {"identifier": identifier}
            )
        content = self._content.get(identifier)
        session = MemorySwarmSession(identifier, content)
        self.sessions[identifier] = session
        if content is not None and content.auto_metadata:
            session.publish()
        logger.debug("Acquired memory session %s", identifier)
        return session

    async def close(self) -> None:
        for session in self.sessions.values():
            session.drop()
        self.closed = True
