"""Server process entry point.

Wires configuration, logging, the catalog, the swarm engine, the lifecycle
manager and the HTTP server together, and tears them down in reverse order.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import TYPE_CHECKING

from magnetdav import APP_NAME, __version__
from magnetdav.config.config import init_config
from magnetdav.engine.factory import create_engine
from magnetdav.models import LogLevel
from magnetdav.server.app import HTTPServer
from magnetdav.session.manager import LifecycleManager
from magnetdav.storage.catalog import Catalog
from magnetdav.utils.logging_config import get_logger, setup_logging

if TYPE_CHECKING:  # pragma: no cover
    from pathlib import Path

    from magnetdav.engine.types import SwarmEngine
    from magnetdav.models import Config

logger = get_logger(__name__)


class DaemonMain:
    """Main server process manager."""

    def __init__(
        self,
        config_file: str | Path | None = None,
        config: Config | None = None,
        engine: SwarmEngine | None = None,
    ):
        """Initialize the process manager.

        Args:
            config_file: Path to config file
            config: Pre-built configuration; skips file and env loading
            engine: Swarm engine to use instead of the configured one

        """
        self.config = config if config is not None else init_config(config_file).config
        self._engine_override = engine

        self.catalog: Catalog | None = None
        self.engine: SwarmEngine | None = None
        self.manager: LifecycleManager | None = None
        self.server: HTTPServer | None = None

        self._shutdown_event = asyncio.Event()
        self._stopping = False

    async def start(self) -> None:
        """Start every component and schedule recovery."""
        logger.info("Starting %s %s", APP_NAME, __version__)
        self.config.ensure_directories()

        self.catalog = Catalog(self.config.database.path)
        self.engine = self._engine_override or create_engine(self.config.torrent)
        self.manager = LifecycleManager(
            self.catalog,
            self.engine,
            metadata_timeout=self.config.torrent.metadata_timeout,
        )
        await self.manager.recover()

        self.server = HTTPServer(self.manager, self.catalog, self.config)
        await self.server.start()

    async def stop(self) -> None:
        """Stop components in reverse start order. Safe to call twice."""
        if self._stopping:
            return
        self._stopping = True
        logger.info("Shutting down %s", APP_NAME)

        if self.server is not None:
            await self.server.stop()
        if self.manager is not None:
            await self.manager.shutdown()
        if self.engine is not None:
            await self.engine.close()
        if self.catalog is not None:
            await self.catalog.close()
        self._shutdown_event.set()
        logger.info("Shutdown complete")

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    def _setup_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        if sys.platform == "win32":
            signal.signal(signal.SIGINT, lambda *_: loop.call_soon_threadsafe(self.request_shutdown))
            return
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self._on_signal, signum)

    def _on_signal(self, signum: int) -> None:
        logger.info("Received signal %d, initiating shutdown", signum)
        self.request_shutdown()

    async def run(self) -> None:
        """Run until a shutdown signal arrives."""
        self._setup_signal_handlers()
        try:
            await self.start()
            await self._shutdown_event.wait()
        finally:
            await self.stop()


def apply_overrides(
    config: Config, host: str | None = None, port: int | None = None
) -> Config:
    """Apply command-line overrides; ``development`` turns on debug logging."""
    server = config.server.model_copy(
        update={
            k: v for k, v in (("host", host), ("port", port)) if v is not None
        }
    )
    observability = config.observability
    if server.env == "development":
        observability = observability.model_copy(update={"log_level": LogLevel.DEBUG})
    return config.model_copy(update={"server": server, "observability": observability})


def main(
    config_file: str | Path | None = None,
    host: str | None = None,
    port: int | None = None,
) -> int:
    """Run the server with logging configured from the loaded config."""
    config = apply_overrides(init_config(config_file).config, host, port)
    setup_logging(config.observability)
    daemon = DaemonMain(config=config)
    try:
        asyncio.run(daemon.run())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0
