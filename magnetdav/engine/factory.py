"""Factory for the configured swarm engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

from magnetdav.engine.memory import MemorySwarmEngine
from magnetdav.models import EngineKind, TorrentConfig
from magnetdav.utils.exceptions import ConfigurationError

if TYPE_CHECKING:  # pragma: no cover
    from magnetdav.engine.types import SwarmEngine


def create_engine(config: TorrentConfig) -> SwarmEngine:
    """Build the engine named by ``torrent.engine``."""
    if config.engine == EngineKind.MEMORY:
        return MemorySwarmEngine()
    if config.engine == EngineKind.LIBTORRENT:
        # Imported here so the libtorrent bindings stay an optional extra
        from magnetdav.engine.libtorrent_engine import LibtorrentSwarmEngine

        return LibtorrentSwarmEngine(
            download_dir=config.download_dir,
            listen_port=config.listen_port,
            user_agent=config.user_agent,
            max_connections=config.max_connections,
        )
    msg = f"Unsupported engine: {config.engine}"
    raise ConfigurationError(msg)
