"""Capability protocols for swarm engines.

The session layer depends only on these protocols; concrete engines wrap a
peer-to-peer library (or, for tests, in-memory content).
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class SwarmReader(Protocol):
    """Sequential byte reader over one file of a session."""

    def set_readahead(self, nbytes: int) -> None: ...

    async def read(self, size: int) -> bytes:
        """Return up to ``size`` bytes; ``b""`` at end of file.

        Raises:
            StreamError: the underlying session went away or the read failed

        """
        ...

    def close(self) -> None: ...


@runtime_checkable
class SwarmFile(Protocol):
    """One file as reported by the engine."""

    path: str
    length: int

    def open_reader(self, start: int = 0) -> SwarmReader: ...


@runtime_checkable
class SwarmSession(Protocol):
    """Live handle into the engine for one content identifier."""

    identifier: str

    async def wait_metadata(self) -> None:
        """Return once metadata is available (never returns otherwise)."""
        ...

    def has_metadata(self) -> bool: ...

    def name(self) -> str: ...

    def total_length(self) -> int: ...

    def files(self) -> list[SwarmFile]: ...

    def drop(self) -> None: ...


@runtime_checkable
class SwarmEngine(Protocol):
    """Factory for swarm sessions."""

    async def acquire(self, uri: str, identifier: str) -> SwarmSession:
        """Start (or join) retrieval for ``uri``.

        Raises:
            EngineRejectedError: the engine refuses the identifier

        """
        ...

    async def close(self) -> None: ...
