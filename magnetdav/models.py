"""Pydantic models for magnetdav.

Provides validated configuration sections and the catalog row models shared
by the session layer, the streaming handler and the HTTP API.
"""

from __future__ import annotations

import time
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ContentStatus(str, Enum):
    """Lifecycle status of a content record."""

    PENDING = "pending"
    METADATA = "metadata"
    READY = "ready"
    ERROR = "error"


class EngineKind(str, Enum):
    """Available swarm engine implementations."""

    LIBTORRENT = "libtorrent"
    MEMORY = "memory"


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = Field(default="0.0.0.0", description="Address to bind to")
    port: int = Field(default=3000, ge=0, le=65535, description="HTTP port")
    env: str = Field(
        default="production",
        description="Deployment environment (development enables debug logging)",
    )
    domain: str | None = Field(None, description="Public domain used in log hints")


class DatabaseConfig(BaseModel):
    """Catalog database configuration."""

    path: str = Field(
        default="data/magnetdav.db",
        description="SQLite database file (':memory:' for an ephemeral catalog)",
    )


class TorrentConfig(BaseModel):
    """Swarm engine and streaming configuration."""

    engine: EngineKind = Field(
        default=EngineKind.LIBTORRENT, description="Swarm engine implementation"
    )
    download_dir: str = Field(default="data/downloads", description="Download directory")
    listen_port: int = Field(default=42069, ge=0, le=65535, description="Peer listen port")
    user_agent: str = Field(default="magnetdav/1.0", description="Peer/tracker user agent")
    max_connections: int = Field(default=200, ge=1, description="Connection limit")
    metadata_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Seconds to wait for metadata before marking a record as failed",
    )
    readahead_bytes: int = Field(
        default=2 * 1024 * 1024,
        ge=0,
        description="Read-ahead hint for sequential playback",
    )
    chunk_size: int = Field(
        default=64 * 1024,
        ge=1024,
        description="Bytes copied per write while streaming",
    )


class AuthConfig(BaseModel):
    """HTTP Basic authentication for the WebDAV routes."""

    enabled: bool = Field(default=False, description="Require authentication")
    username: str = Field(default="", description="Username")
    password: str = Field(default="", description="Password")
    realm: str = Field(default="Magnet WebDAV", description="Authentication realm")

    @model_validator(mode="after")
    def _credentials_required(self) -> AuthConfig:
        if self.enabled and (not self.username or not self.password):
            msg = "auth.username and auth.password are required when auth is enabled"
            raise ValueError(msg)
        return self


class CacheConfig(BaseModel):
    """Cache-Control lifetimes for served files."""

    video_full_max_age: int = Field(
        default=86400, ge=0, description="max-age for whole video files"
    )
    video_range_max_age: int = Field(
        default=1800, ge=0, description="max-age for video range requests"
    )
    default_max_age: int = Field(default=3600, ge=0, description="max-age for other files")
    expires_after: int = Field(default=3600, ge=0, description="Seconds for the Expires header")


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    structured_logging: bool = Field(
        default=False, description="Write JSON records to the log file"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper(cls, value: object) -> object:
        if isinstance(value, str):
            return value.upper()
        return value


class Config(BaseModel):
    """Main configuration model."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    torrent: TorrentConfig = Field(default_factory=TorrentConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    def ensure_directories(self) -> None:
        """Create directories the configuration points at."""
        Path(self.torrent.download_dir).mkdir(parents=True, exist_ok=True)
        if self.database.path != ":memory:":
            Path(self.database.path).parent.mkdir(parents=True, exist_ok=True)


class ContentRecord(BaseModel):
    """One content item, keyed by its content identifier."""

    id: str = Field(..., description="Content identifier")
    magnet_uri: str = Field(..., description="Source URI")
    name: str = Field(default="", description="Display name")
    total_size: int = Field(default=0, ge=0, description="Total length in bytes")
    file_count: int = Field(default=0, ge=0, description="Number of files")
    status: ContentStatus = Field(default=ContentStatus.PENDING)
    error: str | None = Field(None, description="Diagnostic for the error status")
    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)
    last_accessed: float = Field(default_factory=time.time)
    access_count: int = Field(default=0, ge=0)

    @property
    def is_ready(self) -> bool:
        return self.status == ContentStatus.READY


class FileEntry(BaseModel):
    """One file inside a content record."""

    id: int | None = Field(None, description="Surrogate id, None until persisted")
    magnet_id: str = Field(..., description="Owning content identifier")
    file_path: str = Field(..., description="Relative path, unique per owner")
    file_name: str = Field(..., description="Last path component")
    file_size: int = Field(default=0, ge=0)
    file_index: int = Field(default=0, ge=0, description="Position in the swarm's list")
    mime_type: str = Field(default="application/octet-stream")
    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)


class CatalogStats(BaseModel):
    """Aggregate counters reported by the stats endpoint."""

    total_magnets: int = 0
    total_files: int = 0
    active_torrents: int = 0
