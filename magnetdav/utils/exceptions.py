"""Exception hierarchy for magnetdav.

Provides the error taxonomy shared by the session lifecycle, the catalog
and the streaming surface.
"""

from __future__ import annotations

from typing import Any


class MagnetDAVError(Exception):
    """Base exception for all magnetdav errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize magnetdav error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ValidationError(MagnetDAVError):
    """Data validation errors."""


class ConfigurationError(ValidationError):
    """Configuration validation errors."""


class NotFoundError(MagnetDAVError):
    """Unknown content identifier or file path."""


class NotReadyError(MagnetDAVError):
    """Session exists but its metadata is not available yet."""


class SwarmError(MagnetDAVError):
    """Errors raised by a swarm engine."""


class EngineRejectedError(SwarmError):
    """The swarm engine refused the identifier."""


class MetadataTimeoutError(SwarmError):
    """Metadata never arrived within the time budget."""


class StreamError(SwarmError):
    """Reading from a swarm file failed mid-stream."""


class PersistenceError(MagnetDAVError):
    """Catalog read/write errors."""


class RangeNotSatisfiableError(ValidationError):
    """Requested byte range starts past the end of the file."""

    def __init__(self, start: int, length: int):
        """Initialize with the rejected start offset and the file length."""
        super().__init__(
            f"Range start {start} is beyond file length {length}",
            {"start": start, "length": length},
        )
        self.start = start
        self.length = length
